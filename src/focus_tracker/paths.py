"""Locations of the local database and log file."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "FocusTracker"
APP_AUTHOR = "FocusTracker"

# Explicit override, mostly for running several isolated profiles side by side.
HOME_ENV_VAR = "FOCUS_TRACKER_HOME"

DB_FILENAME = "focus.sqlite3"
LOG_FILENAME = "focus-tracker.log"


def get_data_dir() -> Path:
    """Return the directory holding the database, creating it on first use."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_log_path() -> Path:
    return get_data_dir() / LOG_FILENAME
