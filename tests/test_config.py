from pathlib import Path

import pytest

from boardmind.config import SETTING_PREFIX, AppConfig
from boardmind.database import DATA_DIR_ENV, Database
from boardmind.logging_config import LOG_LEVEL_ENV


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "config.db")
    yield database
    database.close()


def test_defaults():
    config = AppConfig.load()
    assert config.log_level == "INFO"
    assert config.show_grid is True
    assert (config.grid_size, config.export_scale) == (20, 2.0)


def test_settings_round_trip(db):
    config = AppConfig.load(db)
    config.show_grid = False
    config.grid_size = 32
    config.save(db)
    assert db.get_setting(SETTING_PREFIX + "grid_size") == 32

    loaded = AppConfig.load(db)
    assert (loaded.show_grid, loaded.grid_size) == (False, 32)


def test_mistyped_setting_is_ignored(db):
    db.set_setting(SETTING_PREFIX + "grid_size", "large")
    db.set_setting(SETTING_PREFIX + "export_scale", 3)
    config = AppConfig.load(db)
    assert config.grid_size == 20
    assert config.export_scale == 3.0


def test_environment_beats_settings_and_arguments_beat_environment(db, tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "env"))
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")
    config = AppConfig.load(db)
    assert config.data_dir == tmp_path / "env"
    assert config.log_level == "DEBUG"

    config = AppConfig.load(db, data_dir=tmp_path / "arg", log_level=None)
    assert config.data_dir == tmp_path / "arg"
    assert config.log_level == "DEBUG"


def test_invalid_sizes_fall_back(db):
    config = AppConfig.load(db, grid_size=0, export_scale=-1.0)
    assert (config.grid_size, config.export_scale) == (20, 2.0)


def test_paths_follow_data_dir(tmp_path):
    config = AppConfig(data_dir=tmp_path)
    assert config.db_path == tmp_path / "boardmind.db"
    assert config.exports_dir.is_dir()
    assert config.to_dict()["data_dir"] == str(tmp_path)
    assert isinstance(config.exports_dir, Path)


def test_missing_data_dir_is_created(tmp_path):
    config = AppConfig(data_dir=tmp_path / "fresh" / "data")
    Database(config.db_path).close()
    assert (tmp_path / "fresh" / "data" / "boardmind.db").exists()
