"""
Filesystem locations for persisted bot state.

The state directory defaults to ./data under the working directory and can
be moved with CONVENTION_BOT_STATE_DIR. Nothing is created on import.
"""

from __future__ import annotations

import os
from pathlib import Path

STATE_DIR_ENV = "CONVENTION_BOT_STATE_DIR"


def state_dir() -> Path:
    override = os.getenv(STATE_DIR_ENV)
    return Path(override) if override else Path.cwd() / "data"


def get_state_path(name: str) -> Path:
    """
    Return a path inside the state directory, creating parent directories.

    This function DOES NOT write the file itself.
    """
    path = state_dir() / name
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
