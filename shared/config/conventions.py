"""
Bot configuration loader.

Reads shared/config/conventions.json (optional), validates it against
schemas/conventions.schema.json and coerces every field into typed
dataclasses. Invalid values are logged as warnings and replaced by defaults
so the bot can still boot.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

from shared.conventions.display import DisplayMode, ImageType
from shared.logging.logger import get_logger

log = get_logger("shared.config.conventions")

_CONFIG_PATH = Path(__file__).parent / "conventions.json"
_SCHEMA_PATH = Path(__file__).resolve().parents[2] / "schemas" / "conventions.schema.json"

DEFAULT_API_URL = "http://xwl.vincentzyu233.cn:51225/search"


@dataclass
class RenderConfig:
    enable_image_query: bool = False
    enable_image_batch_query: bool = False
    image_display_mode: DisplayMode = DisplayMode.GRADIENT
    custom_font_path: str = ""
    enable_dark_mode: bool = False
    image_type: ImageType = ImageType.PNG
    screenshot_quality: int = 80
    browser_enabled: bool = True


@dataclass
class ConventionConfig:
    api_url: str = DEFAULT_API_URL
    add_quote: bool = True
    command_prefix: str = ""
    render: RenderConfig = field(default_factory=RenderConfig)


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"conventions.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except Exception as e:
        log.warning(f"Failed to load conventions.json ({e}); using defaults")
        return {}


def validate_payload(payload: Dict[str, Any], schema_path: Path = _SCHEMA_PATH) -> list[str]:
    """
    Validate a raw config document and return human-readable problems.
    """
    if not schema_path.exists():
        log.debug(f"Config schema not found at {schema_path}; skipping")
        return []

    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    validator = Draft7Validator(schema)
    problems = []
    for err in sorted(validator.iter_errors(payload), key=lambda e: list(e.path)):
        loc = "/".join(str(p) for p in err.path) or "<root>"
        problems.append(f"{loc}: {err.message}")
    return problems


def _bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    log.warning(f"{key} must be boolean; defaulting to {default}")
    return default


def _str(raw: Dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key, default)
    if isinstance(value, str):
        return value
    log.warning(f"{key} must be a string; defaulting to {default!r}")
    return default


def _load_render(raw: Optional[Dict[str, Any]]) -> RenderConfig:
    if not isinstance(raw, dict):
        return RenderConfig()

    try:
        mode = DisplayMode(raw.get("image_display_mode", RenderConfig.image_display_mode.value))
    except ValueError:
        log.warning("image_display_mode is not a known mode; defaulting to gradient")
        mode = RenderConfig.image_display_mode

    try:
        image_type = ImageType(raw.get("image_type", RenderConfig.image_type.value))
    except ValueError:
        log.warning("image_type must be png, jpeg or webp; defaulting to png")
        image_type = RenderConfig.image_type

    quality = raw.get("screenshot_quality", RenderConfig.screenshot_quality)
    try:
        quality_int = max(0, min(100, int(quality)))
    except Exception:
        log.warning("screenshot_quality must be an integer; defaulting to 80")
        quality_int = RenderConfig.screenshot_quality

    return RenderConfig(
        enable_image_query=_bool(raw, "enable_image_query", RenderConfig.enable_image_query),
        enable_image_batch_query=_bool(
            raw, "enable_image_batch_query", RenderConfig.enable_image_batch_query
        ),
        image_display_mode=mode,
        custom_font_path=_str(raw, "custom_font_path", RenderConfig.custom_font_path),
        enable_dark_mode=_bool(raw, "enable_dark_mode", RenderConfig.enable_dark_mode),
        image_type=image_type,
        screenshot_quality=quality_int,
        browser_enabled=_bool(raw, "browser_enabled", RenderConfig.browser_enabled),
    )


def load_convention_config(
    raw: Optional[Dict[str, Any]] = None,
    *,
    path: Path = _CONFIG_PATH,
) -> ConventionConfig:
    raw = raw if raw is not None else _load_json(path)
    if not isinstance(raw, dict):
        raw = {}

    for problem in validate_payload(raw):
        log.warning(f"conventions config validation warning at {problem}")

    api_url = _str(raw, "api_url", DEFAULT_API_URL).strip() or DEFAULT_API_URL

    return ConventionConfig(
        api_url=api_url,
        add_quote=_bool(raw, "add_quote", ConventionConfig.add_quote),
        command_prefix=_str(raw, "command_prefix", ConventionConfig.command_prefix),
        render=_load_render(raw.get("render")),
    )
