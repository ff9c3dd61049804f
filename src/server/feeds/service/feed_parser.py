# -*- coding: utf-8 -*-
"""
RSS / Atom 解析

功能：
- 将 RSS 2.0 或 Atom 文档解析为统一的 `RawEntry` 列表，按文档顺序保留，不重新排序

公开接口：
- `parse_feed`

内部方法：
- `_parse_rss_item`
- `_parse_atom_entry`
- `_resolve_published_at`
- `_first_content_value`
- `_atom_link`
- `_build_summary`
"""

from __future__ import annotations

import calendar
import xml.sax
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import feedparser  # type: ignore

from ..config import feeds_config
from ..errors import FeedParseError
from ..schemas import RawEntry
from .utils import extract_thumbnail_url, strip_html, utcnow

MAX_ITEMS = feeds_config.rss_max_items_per_feed
SUMMARY_MAX_LENGTH = feeds_config.rss_summary_max_length


def parse_feed(
    content: str | bytes,
    route: str,
    *,
    now: Callable[[], datetime] = utcnow,
) -> List[RawEntry]:
    """解析 RSS/Atom 文本。

    XML 本身不合法时抛出 `FeedParseError("Invalid RSS XML")`；
    既找不到 RSS 的 item 也找不到 Atom 的 entry 时抛出
    `FeedParseError("Unsupported feed format")`。
    """
    parsed = feedparser.parse(content)
    if parsed.bozo and isinstance(parsed.get("bozo_exception"), xml.sax.SAXException):
        raise FeedParseError("Invalid RSS XML")

    version = parsed.get("version") or ""
    items = list(parsed.entries)[:MAX_ITEMS]
    if not items:
        raise FeedParseError("Unsupported feed format")

    # RSS 1.0 (RDF) 的 item 不在 channel 之下，不在支持范围内
    if version.startswith("rss") and version != "rss10":
        return [
            _parse_rss_item(item, index, route, now)
            for index, item in enumerate(items)
        ]
    if version.startswith("atom"):
        return [
            _parse_atom_entry(item, index, route, now)
            for index, item in enumerate(items)
        ]
    raise FeedParseError("Unsupported feed format")


def _parse_rss_item(
    item: feedparser.FeedParserDict,
    index: int,
    route: str,
    now: Callable[[], datetime],
) -> RawEntry:
    title = (item.get("title") or "").strip() or f"Untitled #{index + 1}"
    link = (item.get("link") or "").strip()
    guid = (item.get("id") or "").strip()
    description = item.get("summary") or _first_content_value(item) or ""

    thumbnail = _media_content_url(item)
    if not thumbnail:
        enclosures = item.get("enclosures") or []
        image_enclosure = next(
            (
                enclosure
                for enclosure in enclosures
                if str(enclosure.get("type") or "").startswith("image/")
                and enclosure.get("href")
            ),
            None,
        )
        any_enclosure = next(
            (enclosure for enclosure in enclosures if enclosure.get("href")), None
        )
        chosen = image_enclosure or any_enclosure
        thumbnail = chosen.get("href").strip() if chosen else None
    if not thumbnail:
        thumbnail = extract_thumbnail_url(description)

    return RawEntry(
        guid_or_link=guid or link or f"{route}#{index}",
        title=title,
        summary=_build_summary(description, title),
        url=link or route,
        thumbnail_url=thumbnail or None,
        published_at=_resolve_published_at(item, ("published_parsed",), now),
    )


def _parse_atom_entry(
    entry: feedparser.FeedParserDict,
    index: int,
    route: str,
    now: Callable[[], datetime],
) -> RawEntry:
    title = (entry.get("title") or "").strip() or f"Untitled #{index + 1}"
    entry_id = (entry.get("id") or "").strip()
    href = _atom_link(entry)
    raw_summary = entry.get("summary") or _first_content_value(entry) or ""

    thumbnail = _media_content_url(entry)
    if not thumbnail:
        image_link = next(
            (
                link
                for link in entry.get("links") or []
                if link.get("rel") == "enclosure"
                and str(link.get("type") or "").startswith("image/")
                and link.get("href")
            ),
            None,
        )
        thumbnail = image_link.get("href").strip() if image_link else None
    if not thumbnail:
        thumbnail = extract_thumbnail_url(raw_summary)

    return RawEntry(
        guid_or_link=entry_id or href or f"{route}#{index}",
        title=title,
        summary=_build_summary(raw_summary, title),
        url=href or route,
        thumbnail_url=thumbnail or None,
        published_at=_resolve_published_at(
            entry, ("published_parsed", "updated_parsed"), now
        ),
    )


def _media_content_url(item: feedparser.FeedParserDict) -> Optional[str]:
    for media in item.get("media_content") or []:
        url = str(media.get("url") or "").strip()
        if url:
            return url
    return None


def _atom_link(entry: feedparser.FeedParserDict) -> str:
    """优先 rel=alternate 的链接，其次第一个链接。"""
    links = [link for link in entry.get("links") or [] if link.get("href")]
    alternate = next((link for link in links if link.get("rel") == "alternate"), None)
    chosen = alternate or (links[0] if links else None)
    return str(chosen.get("href")).strip() if chosen else ""


def _first_content_value(item: feedparser.FeedParserDict) -> Optional[str]:
    contents: Any = item.get("content")
    if isinstance(contents, list):
        for content in contents:
            value = content.get("value")
            if value:
                return value
    return None


def _build_summary(raw: str, title: str) -> str:
    return strip_html(raw)[:SUMMARY_MAX_LENGTH] or title


def _resolve_published_at(
    item: feedparser.FeedParserDict,
    keys: tuple[str, ...],
    now: Callable[[], datetime],
) -> datetime:
    """feedparser 给出的 struct_time 已是 UTC；无法解析时使用当前时间。"""
    for key in keys:
        struct_time = item.get(key)
        if not struct_time:
            continue
        try:
            return datetime.fromtimestamp(calendar.timegm(struct_time), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            continue
    return now()
