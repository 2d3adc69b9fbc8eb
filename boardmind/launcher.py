"""BoardMind launcher.

Configures logging and the data directory before importing GTK-related
modules, so a missing GTK stack is reported as a plain error message.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from boardmind.config import AppConfig
from boardmind.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="boardmind")
    parser.add_argument("--data-dir", help="Directory holding boardmind.db and exports")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG")
    parser.add_argument("--log-file", help="Also write logs to this file")
    args = parser.parse_args(argv)

    config = AppConfig.load(
        data_dir=Path(args.data_dir).expanduser() if args.data_dir else None,
        log_level=args.log_level.upper() if args.log_level else None,
    )
    setup_logging(config.log_level, args.log_file)

    try:
        from boardmind.app import main as app_main
    except (ImportError, ValueError) as e:
        # gi.require_version raises ValueError for a missing typelib
        logger.error("GTK 4 / libadwaita are not available: %s", e)
        sys.stderr.write("BoardMind needs PyGObject with GTK 4 and libadwaita: "
                         "pip install 'boardmind[gui]'\n")
        return 1

    return int(app_main(config))


if __name__ == "__main__":
    raise SystemExit(main())
