"""
Custom font embedding.

Resolves the configured font path into an inline @font-face rule. Any
problem (empty path, missing file, unreadable file) yields None and the
renderer falls back to the platform font stack. Nothing is cached: the file
is read on every render so config edits apply without a restart.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from shared.logging.logger import get_logger

log = get_logger("render.fonts")

BASE_FONT_STACK = (
    '-apple-system, BlinkMacSystemFont, "Segoe UI", "Microsoft YaHei", '
    '"PingFang SC", sans-serif'
)
CUSTOM_FONT_FAMILY = "ConventionCustomFont"

# extension -> (css format, mime type); anything else is embedded as TrueType
_FONT_FORMATS = {
    ".otf": ("opentype", "font/otf"),
    ".woff2": ("woff2", "font/woff2"),
    ".woff": ("woff", "font/woff"),
}
_DEFAULT_FORMAT = ("truetype", "font/ttf")


@dataclass(frozen=True)
class FontConfig:
    path: Path
    data_base64: str
    css: str
    family: str = CUSTOM_FONT_FAMILY


def font_format(path: Path) -> tuple[str, str]:
    return _FONT_FORMATS.get(path.suffix.lower(), _DEFAULT_FORMAT)


def resolve_font(raw_path: Any) -> Optional[FontConfig]:
    if not isinstance(raw_path, str) or not raw_path.strip():
        return None

    # expanduser raises RuntimeError for an unknown ~user
    try:
        resolved = Path(raw_path.strip()).expanduser().resolve()
        if not resolved.is_file():
            log.warning(f"Custom font not found: {resolved}")
            return None
        data = base64.b64encode(resolved.read_bytes()).decode("ascii")
    except (OSError, RuntimeError) as e:
        log.warning(f"Failed to load custom font {raw_path!r}: {e}")
        return None

    fmt, mime = font_format(resolved)
    css = (
        "@font-face {\n"
        f"  font-family: '{CUSTOM_FONT_FAMILY}';\n"
        f"  src: url('data:{mime};base64,{data}') format('{fmt}');\n"
        "  font-weight: normal;\n"
        "  font-style: normal;\n"
        "}\n"
    )
    log.debug(f"Custom font embedded: {resolved} ({fmt})")
    return FontConfig(path=resolved, data_base64=data, css=css)


def font_family(font: Optional[FontConfig]) -> str:
    if font is None:
        return BASE_FONT_STACK
    return f"'{font.family}', {BASE_FONT_STACK}"
