"""Runtime version metadata for the convention bot.

This module is import-safe and exposes authoritative version identifiers for
other runtime modules without executing side effects on import.
"""

from __future__ import annotations

PROJECT_NAME = "convention-bot"
VERSION = "v1.4.0"
BUILD = "2026.10"
DATA_SOURCE = "https://www.allcpp.cn 无差别同人站"

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "BUILD",
    "DATA_SOURCE",
    "as_string",
    "attribution",
]


def as_string() -> str:
    """Return a concise version string."""

    return f"{PROJECT_NAME} {VERSION} (Build {BUILD})"


def attribution() -> str:
    """Footer line stamped on rendered images."""

    return f"generated by {PROJECT_NAME} {VERSION}"
