"""
Command Logging Adapter

Turns every command execution into one structured log line and keeps
in-process success/failure tallies per command name.

IMPORTANT:
- This module MUST NOT send network requests
- This module MUST NOT depend on discord.py objects directly
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Optional

from shared.logging.logger import get_logger

log = get_logger("discord.commands.audit", runtime="discord")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class CommandLogAdapter:
    def __init__(self):
        self._succeeded: Counter = Counter()
        self._failed: Counter = Counter()

    # --------------------------------------------------
    # Structured records
    # --------------------------------------------------

    def log_event(
        self,
        *,
        event: str,
        level: str = "info",
        user_id: Optional[str] = None,
        channel_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        fields = " ".join(f"{k}={v!r}" for k, v in (data or {}).items())
        log.log(
            _LEVELS.get(level, logging.INFO),
            f"[{event}] user={user_id} channel={channel_id} {fields}".rstrip(),
        )

    def log_command(
        self,
        *,
        command: str,
        user_id: Optional[str],
        channel_id: Optional[str],
        success: bool,
        extra: Optional[Dict[str, Any]] = None,
    ):
        (self._succeeded if success else self._failed)[command] += 1
        self.log_event(
            event=command,
            level="info" if success else "warning",
            user_id=user_id,
            channel_id=channel_id,
            data={"ok": success, **(extra or {})},
        )

    # --------------------------------------------------

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        """Per-command {"ok": n, "failed": n} since process start."""
        names = set(self._succeeded) | set(self._failed)
        return {
            name: {"ok": self._succeeded[name], "failed": self._failed[name]}
            for name in sorted(names)
        }
