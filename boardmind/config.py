"""Application configuration.

Values come from, in order of precedence: explicit arguments, environment
variables, the database ``settings`` table, and the defaults below.
"""

import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Optional

from boardmind.database import DATA_DIR_ENV, Database, get_data_dir
from boardmind.logging_config import LOG_LEVEL_ENV

SETTING_PREFIX = "config."


@dataclass
class AppConfig:
    """User-tunable settings."""
    data_dir: Optional[Path] = None
    log_level: str = "INFO"
    show_grid: bool = True
    grid_size: int = 20
    export_scale: float = 2.0
    export_padding: float = 50.0

    # Fields persisted in the settings table
    PERSISTED = ("show_grid", "grid_size", "export_scale", "export_padding")

    @property
    def resolved_data_dir(self) -> Path:
        if self.data_dir is None:
            return get_data_dir()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir

    @property
    def db_path(self) -> Path:
        return self.resolved_data_dir / "boardmind.db"

    @property
    def exports_dir(self) -> Path:
        path = self.resolved_data_dir / "exports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @classmethod
    def load(cls, db: Optional[Database] = None, **overrides: Any) -> "AppConfig":
        config = cls()

        if db is not None:
            for name in cls.PERSISTED:
                default = getattr(config, name)
                value = db.get_setting(SETTING_PREFIX + name, default)
                if isinstance(value, type(default)) or (
                        isinstance(default, float) and isinstance(value, int)):
                    setattr(config, name, type(default)(value))

        data_dir = os.environ.get(DATA_DIR_ENV)
        if data_dir:
            config.data_dir = Path(data_dir).expanduser()
        log_level = os.environ.get(LOG_LEVEL_ENV)
        if log_level:
            config.log_level = log_level.upper()

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key in known and value is not None:
                setattr(config, key, value)

        if config.grid_size <= 0:
            config.grid_size = 20
        if config.export_scale <= 0:
            config.export_scale = 2.0
        return config

    def save(self, db: Database):
        """Persist the canvas and export settings."""
        for name in self.PERSISTED:
            db.set_setting(SETTING_PREFIX + name, getattr(self, name))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir) if self.data_dir else None
        return data
