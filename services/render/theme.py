"""Fixed light and dark palettes for rendered images (allcpp orange-yellow)."""

from __future__ import annotations

from dataclasses import dataclass

from shared.conventions.records import EventStatus


@dataclass(frozen=True)
class DisplayTheme:
    dark: bool
    background: str
    card_background: str
    text_primary: str
    text_secondary: str
    primary: str
    secondary: str
    accent: str
    border: str
    ongoing: str
    ended: str
    upcoming: str
    link: str

    # Tones derived from the light/dark axis
    shadow_alpha: str
    soft_shadow: str
    header_shadow: str
    keyword_badge_bg: str
    tag_bg: str
    tag_border: str
    panel_bg: str
    footer_bg: str
    footer_source: str
    divider: str
    glass_bg: str
    glass_full_bg: str
    glass_stat_bg: str
    glass_divider: str
    veil: str
    veil_strong: str

    def status_color(self, status: EventStatus) -> str:
        if status is EventStatus.ENDED:
            return self.ended
        if status is EventStatus.UPCOMING:
            return self.upcoming
        return self.ongoing


LIGHT_THEME = DisplayTheme(
    dark=False,
    background="#f8f9fa",
    card_background="#ffffff",
    text_primary="#333333",
    text_secondary="#888888",
    primary="#f5a623",
    secondary="#e8a000",
    accent="#667eea",
    border="#eaeaea",
    ongoing="#f5a623",
    ended="#cccccc",
    upcoming="#4ecdc4",
    link="#f5a623",
    shadow_alpha="0.05",
    soft_shadow="rgba(255,255,255,0.6)",
    header_shadow="rgba(0,0,0,0.12)",
    keyword_badge_bg="#f0f0f0",
    tag_bg="#fff3e0",
    tag_border="#ffe0b2",
    panel_bg="#fafafa",
    footer_bg="#fafafa",
    footer_source="#666",
    divider="#eee",
    glass_bg="rgba(255,255,255,0.1)",
    glass_full_bg="rgba(255,255,255,0.2)",
    glass_stat_bg="rgba(250,250,250,0.4)",
    glass_divider="rgba(0,0,0,0.05)",
    veil="rgba(255,255,255,0.1)",
    veil_strong="rgba(255,255,255,0.15)",
)

DARK_THEME = DisplayTheme(
    dark=True,
    background="#1a1a1a",
    card_background="#252525",
    text_primary="#ffffff",
    text_secondary="#a0a0a0",
    primary="#f5a623",
    secondary="#e8a000",
    accent="#667eea",
    border="#3a3a3a",
    ongoing="#f5a623",
    ended="#666666",
    upcoming="#4ecdc4",
    link="#f5a623",
    shadow_alpha="0.25",
    soft_shadow="rgba(0,0,0,0.35)",
    header_shadow="rgba(0,0,0,0.35)",
    keyword_badge_bg="#444",
    tag_bg="#3a3a3a",
    tag_border="#4a4a4a",
    panel_bg="#2a2a2a",
    footer_bg="#1f1f1f",
    footer_source="#d0d0d0",
    divider="#3a3a3a",
    glass_bg="rgba(0,0,0,0.15)",
    glass_full_bg="rgba(0,0,0,0.35)",
    glass_stat_bg="rgba(42,42,42,0.4)",
    glass_divider="rgba(255,255,255,0.08)",
    veil="rgba(0,0,0,0.2)",
    veil_strong="rgba(0,0,0,0.25)",
)


def theme_for(dark: bool) -> DisplayTheme:
    return DARK_THEME if dark else LIGHT_THEME
