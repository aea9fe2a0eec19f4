"""
HTML composition for convention images.

Pure functions only: records + display mode + theme (+ optional font) in,
a complete HTML document out. No I/O happens here; covers arrive already
embedded as data URIs and the timestamp can be injected for tests.

Two documents are produced:
- the list document (header band with status counts, one card per record)
- the detail document (one record, large cover, link section)
Both share the same badge, info row and stat box fragments.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence, Tuple

from runtime.version import DATA_SOURCE, attribution
from services.render.fonts import FontConfig, font_family
from services.render.theme import DisplayTheme
from shared.conventions.display import DisplayMode
from shared.conventions.records import EventRecord, EventStatus

TAG_SPLIT_RE = re.compile(r"[|,，、\s]+")
TAG_PLACEHOLDER = "-"

LIST_CONTAINER_WIDTH = 800
LIST_VIEWPORT_WIDTH = 900
DETAIL_CONTAINER_WIDTH = 600
DETAIL_VIEWPORT_WIDTH = 700


def _esc(value) -> str:
    return html.escape("" if value is None else str(value), quote=True)


# ----------------------------------------------------------------------
# Field helpers
# ----------------------------------------------------------------------

def split_tags(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in TAG_SPLIT_RE.split(raw) if t.strip()]


def counter_text(value) -> str:
    return _esc(value if value else 0)


def status_badge(record: EventRecord, theme: DisplayTheme) -> Tuple[str, str]:
    status = record.status
    return status.value, theme.status_color(status)


@dataclass(frozen=True)
class StatusCounts:
    total: int
    ongoing: int
    upcoming: int
    ended: int


def count_statuses(records: Sequence[EventRecord]) -> StatusCounts:
    statuses = [r.status for r in records]
    return StatusCounts(
        total=len(statuses),
        ongoing=statuses.count(EventStatus.ONGOING),
        upcoming=statuses.count(EventStatus.UPCOMING),
        ended=statuses.count(EventStatus.ENDED),
    )


def format_timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime("%Y/%m/%d %H:%M:%S")


# ----------------------------------------------------------------------
# Per-mode imagery strategies
# ----------------------------------------------------------------------

def _compact_css(theme: DisplayTheme) -> str:
    return """
    .event-logo {
      flex: 0 0 100px;
      height: 75px;
      border-radius: 5px;
      overflow: hidden;
    }

    .event-logo img {
      width: 100%;
      height: 100%;
      object-fit: cover;
    }
    """


def _gradient_css(theme: DisplayTheme) -> str:
    bg = theme.card_background
    return f"""
    .event-card.has-gradient-bg {{
      padding: 0;
      min-height: 140px;
    }}

    .event-bg-gradient {{
      position: absolute;
      left: 0;
      top: 0;
      bottom: 0;
      width: 60%;
      pointer-events: none;
      z-index: 0;
      overflow: hidden;
    }}

    .bg-layer {{
      position: absolute;
      inset: 0;
      display: flex;
    }}

    .bg-layer img {{
      height: 100%;
      object-fit: cover;
    }}

    .event-bg-gradient:not(.is-full) .img-orig {{
      width: 100%;
      object-position: left center;
    }}

    .event-bg-gradient .img-blur {{
      filter: blur(4px);
      -webkit-mask-image: linear-gradient(to right, transparent 0%, transparent 30%, black 70%, black 100%);
      mask-image: linear-gradient(to right, transparent 0%, transparent 30%, black 70%, black 100%);
    }}

    .event-bg-gradient:not(.is-full)::after {{
      content: '';
      position: absolute;
      inset: 0;
      background: linear-gradient(to right,
        transparent 0%,
        transparent 30%,
        {bg}22 45%,
        {bg}66 55%,
        {bg}aa 70%,
        {bg}dd 85%,
        {bg} 100%
      );
      z-index: 1;
    }}

    .event-card.has-gradient-bg .event-main {{
      position: relative;
      z-index: 1;
      margin-left: 38.2%;
      padding: 8px 12px;
      background: {theme.glass_bg};
      backdrop-filter: blur(8px);
      -webkit-backdrop-filter: blur(8px);
    }}

    .event-card.has-gradient-bg .event-title,
    .event-card.has-gradient-bg .info-label,
    .event-card.has-gradient-bg .info-value,
    .event-card.has-gradient-bg .stat-num,
    .event-card.has-gradient-bg .stat-text {{
      text-shadow:
        -1px -1px 0 {bg},
         1px -1px 0 {bg},
        -1px  1px 0 {bg},
         1px  1px 0 {bg},
         0 1px 3px rgba(0,0,0,0.2);
    }}

    .event-card.has-gradient-bg .stat-box {{
      background: {theme.glass_stat_bg};
    }}

    .event-card.has-gradient-bg .info-row {{
      border-bottom: 1px solid {theme.glass_divider};
    }}
    """


def _mirror_css(theme: DisplayTheme) -> str:
    return f"""
    .event-bg-gradient.is-full {{
      width: 100%;
    }}

    .event-bg-gradient.is-full .img-orig,
    .event-bg-gradient.is-full .img-mirror {{
      width: 50%;
      object-position: center;
    }}

    .event-bg-gradient.is-full .img-mirror {{
      transform: scaleX(-1);
    }}

    .event-bg-gradient.is-full::after {{
      content: '';
      position: absolute;
      inset: 0;
      background: linear-gradient(to right,
        transparent 0%,
        transparent 30%,
        {theme.veil} 100%
      );
      z-index: 1;
    }}
    """


def _full_text_css(theme: DisplayTheme) -> str:
    bg = theme.card_background
    return f"""
    .event-bg-gradient.is-full-text {{
      filter: blur(3px);
      opacity: 0.92;
    }}

    .event-bg-gradient.is-full-text::after {{
      background: linear-gradient(to right,
        transparent 0%,
        transparent 35%,
        {theme.veil_strong} 100%
      );
    }}

    .event-card.has-gradient-full-text .event-main {{
      margin-left: 0;
      padding: 12px 16px;
      width: 100%;
      background: {theme.glass_full_bg};
    }}

    .event-card.has-gradient-full-text .event-title,
    .event-card.has-gradient-full-text .info-value {{
      text-shadow:
        -2px -2px 0 {bg},
         2px -2px 0 {bg},
        -2px  2px 0 {bg},
         2px  2px 0 {bg},
         0 2px 6px rgba(0,0,0,0.35);
    }}
    """


@dataclass(frozen=True)
class _CardImagery:
    """How one display mode places a cover image inside a list card."""

    card_class: str = ""
    thumbnail: bool = False
    background_class: Optional[str] = None
    mirrored: bool = False
    css: Tuple[Callable[[DisplayTheme], str], ...] = ()

    def thumbnail_html(self, cover_uri: str) -> str:
        if not self.thumbnail:
            return ""
        return f'<div class="event-logo"><img src="{_esc(cover_uri)}" alt="封面" /></div>'

    def background_html(self, cover_uri: str) -> str:
        if self.background_class is None:
            return ""
        src = _esc(cover_uri)
        images = f'<img class="img-orig" src="{src}" alt="封面" />'
        if self.mirrored:
            images += f'<img class="img-mirror" src="{src}" alt="封面" />'
        classes = " ".join(c for c in ("event-bg-gradient", self.background_class) if c)
        return (
            f'<div class="{classes}">'
            f'<div class="bg-layer img-clear">{images}</div>'
            f'<div class="bg-layer img-blur">{images}</div>'
            f"</div>"
        )

    def stylesheet(self, theme: DisplayTheme) -> str:
        return "".join(fragment(theme) for fragment in self.css)


_NO_IMAGERY = _CardImagery()

CARD_IMAGERY: Dict[DisplayMode, _CardImagery] = {
    DisplayMode.NONE: _NO_IMAGERY,
    DisplayMode.COMPACT: _CardImagery(thumbnail=True, css=(_compact_css,)),
    DisplayMode.GRADIENT: _CardImagery(
        card_class="has-gradient-bg",
        background_class="",
        css=(_gradient_css,),
    ),
    DisplayMode.FLIP_HORIZONTAL: _CardImagery(
        card_class="has-gradient-bg",
        background_class="is-full",
        mirrored=True,
        css=(_gradient_css, _mirror_css),
    ),
    DisplayMode.FULL_BLUR_BG_TEXT: _CardImagery(
        card_class="has-gradient-bg has-gradient-full-text",
        background_class="is-full is-full-text",
        mirrored=True,
        css=(_gradient_css, _mirror_css, _full_text_css),
    ),
}


def imagery_for(mode: DisplayMode) -> _CardImagery:
    return CARD_IMAGERY[DisplayMode(mode)]


# ----------------------------------------------------------------------
# Shared fragments
# ----------------------------------------------------------------------

def tag_chips_html(raw: Optional[str]) -> str:
    tags = split_tags(raw)
    if not tags:
        return f'<span class="tag-empty">{TAG_PLACEHOLDER}</span>'
    return "".join(f'<span class="tag-item">{_esc(t)}</span>' for t in tags)


def _badges_html(record: EventRecord, theme: DisplayTheme) -> str:
    label, color = status_badge(record, theme)
    parts = [
        f'<span class="status-badge" style="background: {color};">{label}</span>',
        f'<span class="online-badge">{_esc(record.participation_text)}</span>',
    ]
    if record.keyword:
        parts.append(f'<span class="keyword-badge">🔖 {_esc(record.keyword)}</span>')
    return "".join(parts)


def _info_list_html(record: EventRecord) -> str:
    rows = (
        ("📍", "地点", _esc(record.location or "-"), ""),
        ("📮", "地址", _esc(record.address or "-"), ""),
        ("📅", "时间", _esc(record.time or "-"), ""),
        ("🏷️", "标签", tag_chips_html(record.tag), " tags-container"),
    )
    return '<div class="info-list">' + "".join(
        f'<div class="info-row">'
        f'<span class="info-icon">{icon}</span>'
        f'<span class="info-label">{label}</span>'
        f'<span class="info-value{extra}">{value}</span>'
        f"</div>"
        for icon, label, value, extra in rows
    ) + "</div>"


def _stat_boxes_html(record: EventRecord) -> str:
    stats = (
        (record.wanna_go_count, "❤️ 想去"),
        (record.circle_count, "🏠 社团"),
        (record.doujinshi_count, "📚 同人作"),
    )
    return "".join(
        f'<div class="stat-box">'
        f'<span class="stat-num">{counter_text(value)}</span>'
        f'<span class="stat-text">{label}</span>'
        f"</div>"
        for value, label in stats
    )


def _footer_html(generated_at: Optional[datetime]) -> str:
    return (
        '<div class="footer">'
        f'<span class="footer-timestamp">{format_timestamp(generated_at)}</span>'
        f'<span class="footer-source">数据来源：{_esc(DATA_SOURCE)}</span>'
        f'<span class="footer-plugin">{_esc(attribution())}</span>'
        "</div>"
    )


def _common_css(
    theme: DisplayTheme,
    font: Optional[FontConfig],
    *,
    container_width: int,
    viewport_width: int,
) -> str:
    return f"""
    {font.css if font else ''}
    * {{
      margin: 0;
      padding: 0;
      box-sizing: border-box;
    }}

    html, body {{
      width: {viewport_width}px;
      background: {theme.background};
      font-family: {font_family(font)};
      color: {theme.text_primary};
    }}

    body {{
      padding: 10px;
    }}

    .main-container {{
      max-width: {container_width}px;
      margin: 0 auto;
      background: {theme.card_background};
      border-radius: 10px;
      box-shadow: 0 1px 8px rgba(0,0,0,{theme.shadow_alpha});
      overflow: hidden;
    }}

    .header {{
      background: linear-gradient(135deg, {theme.primary} 0%, {theme.secondary} 100%);
      padding: 14px 16px;
      text-align: center;
    }}

    .status-badge, .online-badge, .keyword-badge {{
      font-size: 12px;
      padding: 2px 6px;
      border-radius: 4px;
      color: white;
      font-weight: 700;
    }}

    .online-badge {{
      background: {theme.accent};
      font-weight: 600;
    }}

    .keyword-badge {{
      background: {theme.keyword_badge_bg};
      color: {theme.text_primary};
      font-weight: 600;
    }}

    .info-row {{
      display: flex;
      align-items: flex-start;
      padding: 3px 0;
      border-bottom: 1px dashed {theme.divider};
    }}

    .info-row:last-child {{
      border-bottom: none;
    }}

    .info-icon {{
      font-size: 17px;
      width: 20px;
      flex-shrink: 0;
    }}

    .info-label {{
      font-size: 17px;
      color: {theme.text_secondary};
      width: 48px;
      flex-shrink: 0;
      font-weight: 600;
    }}

    .info-value {{
      font-size: 18px;
      color: {theme.text_primary};
      flex: 1;
      line-height: 1.25;
      word-break: break-all;
    }}

    .tags-container {{
      display: flex;
      flex-wrap: wrap;
      gap: 2px;
    }}

    .tag-item {{
      font-size: 15px;
      padding: 1px 5px;
      background: {theme.tag_bg};
      color: {theme.primary};
      border-radius: 3px;
      border: 1px solid {theme.tag_border};
    }}

    .tag-empty {{
      color: {theme.text_secondary};
    }}

    .stat-box {{
      flex: 1;
      text-align: center;
      padding: 4px;
      background: {theme.panel_bg};
      border: 1px solid {theme.border};
      border-radius: 5px;
    }}

    .stat-num {{
      font-size: 20px;
      font-weight: 800;
      color: {theme.primary};
      margin-right: 3px;
      text-shadow: 0 1px 0 {theme.soft_shadow};
    }}

    .stat-text {{
      font-size: 13px;
      color: {theme.text_secondary};
    }}

    .footer {{
      padding: 10px 12px;
      text-align: center;
      border-top: 1px solid {theme.border};
      background: {theme.footer_bg};
      display: flex;
      flex-direction: column;
      gap: 3px;
      align-items: center;
    }}

    .footer-timestamp {{
      font-size: 12px;
      font-weight: 600;
      color: {theme.text_secondary};
    }}

    .footer-source {{
      font-size: 11px;
      color: {theme.footer_source};
    }}

    .footer-plugin {{
      font-size: 11px;
      color: {theme.accent};
      font-weight: 600;
      letter-spacing: 0.5px;
    }}
    """


def _document(css: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        '  <meta charset="UTF-8">\n'
        f"  <style>{css}</style>\n"
        "</head>\n<body>\n"
        f'  <div class="main-container">{body}</div>\n'
        "</body>\n</html>"
    )


# ----------------------------------------------------------------------
# List document
# ----------------------------------------------------------------------

def _list_css(theme: DisplayTheme) -> str:
    return f"""
    .title {{
      font-size: 28px;
      font-weight: 800;
      color: white;
      margin-bottom: 8px;
      letter-spacing: 0.5px;
      text-shadow: 0 1px 1px {theme.header_shadow};
    }}

    .stats-row {{
      display: flex;
      justify-content: center;
      gap: 6px;
      flex-wrap: wrap;
    }}

    .header-stat {{
      background: rgba(255,255,255,0.95);
      border-radius: 6px;
      padding: 4px 10px;
      display: flex;
      align-items: center;
      gap: 5px;
    }}

    .header-stat-label {{
      font-size: 15px;
      color: #666;
      font-weight: 600;
    }}

    .header-stat-value {{
      font-size: 20px;
      font-weight: 800;
      color: {theme.primary};
    }}

    .events-container {{
      padding: 8px;
      display: flex;
      flex-direction: column;
      gap: 7px;
    }}

    .event-card {{
      background: {theme.card_background};
      border: 1px solid {theme.border};
      border-left: 4px solid {theme.primary};
      border-radius: 8px;
      padding: 8px;
      position: relative;
      overflow: hidden;
    }}

    .event-main {{
      display: flex;
      gap: 8px;
    }}

    .event-content {{
      flex: 1;
      min-width: 0;
    }}

    .event-header {{
      display: flex;
      align-items: center;
      gap: 3px;
      margin-bottom: 4px;
      flex-wrap: wrap;
    }}

    .event-index {{
      background: {theme.primary};
      color: white;
      width: 22px;
      height: 22px;
      border-radius: 4px;
      display: flex;
      align-items: center;
      justify-content: center;
      font-weight: 700;
      font-size: 13px;
    }}

    .event-title {{
      font-size: 24px;
      font-weight: 800;
      color: {theme.text_primary};
      margin-bottom: 5px;
      line-height: 1.25;
      text-shadow: 0 1px 0 {theme.soft_shadow};
    }}

    .info-list {{
      margin-bottom: 5px;
    }}

    .event-stats {{
      display: flex;
      gap: 4px;
    }}
    """


def compose_card(
    record: EventRecord,
    index: int,
    theme: DisplayTheme,
    *,
    mode: DisplayMode = DisplayMode.COMPACT,
    cover_uri: Optional[str] = None,
) -> str:
    imagery = imagery_for(mode) if cover_uri else _NO_IMAGERY
    _, color = status_badge(record, theme)
    classes = " ".join(c for c in ("event-card", imagery.card_class) if c)

    return (
        f'<div class="{classes}" style="border-left-color: {color};">'
        f"{imagery.background_html(cover_uri or '')}"
        '<div class="event-main">'
        f"{imagery.thumbnail_html(cover_uri or '')}"
        '<div class="event-content">'
        '<div class="event-header">'
        f'<span class="event-index">{index}</span>'
        f"{_badges_html(record, theme)}"
        "</div>"
        f'<div class="event-title">{_esc(record.name)}</div>'
        f"{_info_list_html(record)}"
        f'<div class="event-stats">{_stat_boxes_html(record)}</div>'
        "</div>"
        "</div>"
        "</div>"
    )


def compose_list_document(
    title: str,
    records: Sequence[EventRecord],
    theme: DisplayTheme,
    *,
    mode: DisplayMode = DisplayMode.COMPACT,
    covers: Optional[Sequence[Optional[str]]] = None,
    font: Optional[FontConfig] = None,
    container_width: int = LIST_CONTAINER_WIDTH,
    viewport_width: int = LIST_VIEWPORT_WIDTH,
    generated_at: Optional[datetime] = None,
) -> str:
    mode = DisplayMode(mode)
    covers = list(covers or [])
    if mode is DisplayMode.NONE:
        covers = []

    cards = "".join(
        compose_card(
            record,
            i + 1,
            theme,
            mode=mode,
            cover_uri=covers[i] if i < len(covers) else None,
        )
        for i, record in enumerate(records)
    )

    counts = count_statuses(records)
    header_stats = "".join(
        f'<div class="header-stat">'
        f'<span class="header-stat-label">{label}</span>'
        f'<span class="header-stat-value">{value}</span>'
        f"</div>"
        for label, value in (
            ("共计", counts.total),
            (EventStatus.ONGOING.value, counts.ongoing),
            (EventStatus.UPCOMING.value, counts.upcoming),
            (EventStatus.ENDED.value, counts.ended),
        )
    )

    css = (
        _common_css(theme, font, container_width=container_width, viewport_width=viewport_width)
        + _list_css(theme)
        + imagery_for(mode).stylesheet(theme)
    )
    body = (
        '<div class="header">'
        f'<div class="title">🎉 {_esc(title)}</div>'
        f'<div class="stats-row">{header_stats}</div>'
        "</div>"
        f'<div class="events-container">{cards}</div>'
        f"{_footer_html(generated_at)}"
    )
    return _document(css, body)


# ----------------------------------------------------------------------
# Detail document
# ----------------------------------------------------------------------

def _detail_css(theme: DisplayTheme) -> str:
    return f"""
    .header {{
      padding: 12px 14px;
    }}

    .page-title {{
      font-size: 24px;
      font-weight: 800;
      color: white;
      margin-bottom: 3px;
      text-shadow: 0 1px 1px {theme.header_shadow};
    }}

    .page-subtitle {{
      font-size: 12px;
      color: rgba(255,255,255,0.9);
    }}

    .content {{
      padding: 10px;
    }}

    .logo-section {{
      margin-bottom: 8px;
      border-radius: 7px;
      overflow: hidden;
    }}

    .logo-section img {{
      width: 100%;
      height: auto;
      display: block;
    }}

    .badges {{
      display: flex;
      align-items: center;
      gap: 3px;
      margin-bottom: 5px;
      flex-wrap: wrap;
    }}

    .event-title {{
      font-size: 21px;
      font-weight: 800;
      color: {theme.text_primary};
      margin-bottom: 8px;
      line-height: 1.25;
      padding-bottom: 6px;
      border-bottom: 1px dashed {theme.border};
      text-shadow: 0 1px 0 {theme.soft_shadow};
    }}

    .info-list {{
      margin-bottom: 8px;
    }}

    .info-row {{
      padding: 4px 0;
    }}

    .info-label {{
      width: 60px;
    }}

    .stats-section {{
      display: flex;
      gap: 5px;
      margin-bottom: 8px;
    }}

    .stats-section .stat-box {{
      padding: 7px 6px;
      border-radius: 8px;
    }}

    .stats-section .stat-num {{
      display: block;
      font-size: 28px;
      margin: 0 0 3px 0;
    }}

    .link-section {{
      padding: 6px;
      background: {theme.panel_bg};
      border-radius: 6px;
      text-align: center;
    }}

    .link-url {{
      color: {theme.link};
      text-decoration: none;
      font-size: 12px;
      word-break: break-all;
    }}
    """


def compose_detail_document(
    record: EventRecord,
    theme: DisplayTheme,
    *,
    cover_uri: Optional[str] = None,
    font: Optional[FontConfig] = None,
    container_width: int = DETAIL_CONTAINER_WIDTH,
    viewport_width: int = DETAIL_VIEWPORT_WIDTH,
    generated_at: Optional[datetime] = None,
) -> str:
    cover_html = (
        f'<div class="logo-section"><img src="{_esc(cover_uri)}" alt="封面" /></div>'
        if cover_uri
        else ""
    )

    css = (
        _common_css(theme, font, container_width=container_width, viewport_width=viewport_width)
        + _detail_css(theme)
    )
    body = (
        '<div class="header">'
        '<div class="page-title">🎉 漫展详情</div>'
        '<div class="page-subtitle">详细信息</div>'
        "</div>"
        '<div class="content">'
        f"{cover_html}"
        f'<div class="badges">{_badges_html(record, theme)}</div>'
        f'<div class="event-title">{_esc(record.name)}</div>'
        f"{_info_list_html(record)}"
        f'<div class="stats-section">{_stat_boxes_html(record)}</div>'
        '<div class="link-section">'
        f'<a class="link-url" href="{_esc(record.url)}">{_esc(record.url)}</a>'
        "</div>"
        "</div>"
        f"{_footer_html(generated_at)}"
    )
    return _document(css, body)
