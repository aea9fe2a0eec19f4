"""
Configuration validation script.

Validates shared/config/conventions.json against
schemas/conventions.schema.json and reports the effective values the bot
would boot with.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.config.conventions import load_convention_config, validate_payload  # noqa: E402


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

DEFAULT_CONFIG = ROOT / "shared" / "config" / "conventions.json"


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except Exception as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: root JSON value must be an object")
    return data


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Validate the convention bot config")
    parser.add_argument("path", nargs="?", type=Path, default=DEFAULT_CONFIG)
    args = parser.parse_args(argv)

    try:
        data = _load_json(args.path)
    except ValueError as e:
        _error(str(e))
        return 1

    problems = validate_payload(data)
    for problem in problems:
        _error(problem)

    if problems:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    config = load_convention_config(data)
    render = config.render
    print(f"api_url: {config.api_url}")
    print(f"image_query: {render.enable_image_query}")
    print(f"image_batch_query: {render.enable_image_batch_query}")
    print(f"display_mode: {render.image_display_mode.value}")
    print(f"image_type: {render.image_type.value} (quality {render.screenshot_quality})")
    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
