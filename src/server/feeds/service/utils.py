# -*- coding: utf-8 -*-
"""
订阅服务工具模块

功能：
- 提供订阅服务中共享的底层工具函数

公开接口：
- `build_entry_id`
- `looks_like_url`
- `is_valid_route`
- `derive_display_name`
- `strip_html`
- `extract_thumbnail_url`
- `activity_score`
- `is_cache_expired`
- `utcnow`

内部方法：
- `_to_source_schema`
- `_to_entry_schema`
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup  # type: ignore

from ..models import FeedEntry, FeedSource
from ..schemas import FeedEntrySchema, FeedSourceSchema

ROUTE_RE = re.compile(r"^/[a-z0-9_-]+(?:/[a-z0-9_:-]+)*$", re.IGNORECASE)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_entry_id(route: str, guid_or_link: str) -> str:
    """条目去重键：`route::guidOrLink`。"""
    return f"{route}::{guid_or_link}"


def looks_like_url(value: str) -> bool:
    """判断是否为可解析的 http/https 绝对地址。"""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_valid_route(value: str) -> bool:
    return bool(ROUTE_RE.match(value))


def derive_display_name(route: str) -> str:
    """推导默认显示名称：URL 取主机名（去掉 www.），路由取各段以 ` / ` 连接。"""
    if looks_like_url(route):
        hostname = urlparse(route).hostname or ""
        if not hostname:
            return route
        return re.sub(r"^www\.", "", hostname)
    return " / ".join(part for part in route.lstrip("/").split("/") if part)


def strip_html(value: str) -> str:
    """去除 HTML 标签并折叠空白。"""
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ")
    return " ".join(text.split())


def extract_thumbnail_url(value: str | None) -> Optional[str]:
    """提取 HTML 片段中第一张图片的地址。"""
    if not value:
        return None
    image = BeautifulSoup(value, "html.parser").find("img", src=True)
    if image is None:
        return None
    src = str(image.get("src") or "").strip()
    return src or None


def activity_score(source: FeedSource | FeedSourceSchema) -> datetime:
    """活跃度：最近条目时间、最近成功时间与更新时间三者的最大值。"""
    return max(
        source.last_entry_at or EPOCH,
        source.last_success_at or EPOCH,
        source.updated_at or EPOCH,
    )


def is_cache_expired(
    last_success_at: datetime | None,
    ttl_minutes: int,
    now: datetime | None = None,
) -> bool:
    """从未成功过，或距离最近一次成功已超过 TTL，则视为过期。"""
    if last_success_at is None:
        return True
    now = now or utcnow()
    return now - last_success_at > timedelta(minutes=ttl_minutes)


def _to_source_schema(source: FeedSource) -> FeedSourceSchema:
    return FeedSourceSchema.model_validate(source)


def _to_entry_schema(entry: FeedEntry) -> FeedEntrySchema:
    """将 ORM 条目转换为 Pydantic 模型。"""
    source = entry.source
    return FeedEntrySchema(
        id=entry.id,
        source_id=entry.source_id,
        source_name=source.display_name if source else None,
        route=entry.route,
        guid_or_link=entry.guid_or_link,
        title=entry.title,
        summary=entry.summary,
        url=entry.url,
        thumbnail_url=entry.thumbnail_url,
        published_at=entry.published_at,
        cached_at=entry.cached_at,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )
