"""Closed sets of presentation options shared by config and renderer."""

from __future__ import annotations

from enum import Enum


class DisplayMode(str, Enum):
    """How cover imagery is composited into a rendered card."""

    NONE = "none"
    COMPACT = "compact"
    GRADIENT = "gradient"
    FLIP_HORIZONTAL = "flip-horizontal"
    FULL_BLUR_BG_TEXT = "full-blur-bg-text"


class ImageType(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def lossy(self) -> bool:
        return self is not ImageType.PNG

    @property
    def mime(self) -> str:
        return f"image/{self.value}"


__all__ = ["DisplayMode", "ImageType"]
