# -*- coding: utf-8 -*-
"""
订阅条目服务

功能：
- 条目去重（保留首次出现的位置，最后一次出现的内容生效）
- 按范围查询缓存条目，并按天分组展示

公开接口：
- `dedupe_entries`
- `get_entries`
- `get_entries_view`
- `group_entries_by_day`
- `DayBucket`

内部方法：
- `_resolve_scope_source_ids`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Dict, Generic, Iterable, List, Optional, Protocol, TypeVar

from sqlalchemy.orm import Session

from ..dao import FeedEntryDAO, FeedSourceDAO
from ..schemas import EntryViewScope, FeedEntrySchema, SourceQuery
from .utils import _to_entry_schema, build_entry_id, utcnow


class _Routed(Protocol):
    route: str
    guid_or_link: str


class _Dated(Protocol):
    published_at: datetime


RoutedT = TypeVar("RoutedT", bound=_Routed)
DatedT = TypeVar("DatedT", bound=_Dated)


@dataclass
class DayBucket(Generic[DatedT]):
    """同一本地自然日内的条目"""

    key: str
    type: str
    day_start: datetime
    entries: List[DatedT] = field(default_factory=list)


def dedupe_entries(entries: Iterable[RoutedT]) -> List[RoutedT]:
    """按 `route::guidOrLink` 去重。

    同一去重键出现多次时，后出现的条目整体覆盖先出现的条目，
    但输出顺序仍以该键第一次出现的位置为准。
    """
    by_key: Dict[str, RoutedT] = {}
    for entry in entries:
        # dict 覆盖已有键时保留原插入位置
        by_key[build_entry_id(entry.route, entry.guid_or_link)] = entry
    return list(by_key.values())


def get_entries(
    db: Session,
    user_id: str,
    source_id: Optional[str] = None,
) -> List[FeedEntrySchema]:
    """列出用户全部（或指定订阅源的）缓存条目，按发布时间倒序。"""
    sources = FeedSourceDAO(db).list_by_user(user_id)
    source_ids = [source.id for source in sources]
    if source_id is not None:
        source_ids = [item for item in source_ids if item == source_id]
    rows = FeedEntryDAO(db).list_by_sources(source_ids)
    return [_to_entry_schema(row) for row in rows]


def get_entries_view(
    db: Session,
    user_id: str,
    scope: Optional[EntryViewScope] = None,
) -> List[FeedEntrySchema]:
    """按范围获取条目：解析出订阅源集合，读取缓存，跨源再去重一次，按发布时间倒序。"""
    scope = scope or EntryViewScope()
    source_ids = _resolve_scope_source_ids(db, user_id, scope)
    if not source_ids:
        return []

    rows = FeedEntryDAO(db).list_by_sources(source_ids)
    # 先按发布时间升序，使较新的条目在去重时覆盖较旧的条目
    ascending = sorted(rows, key=lambda row: row.published_at)
    deduped = dedupe_entries(ascending)
    deduped.sort(key=lambda row: row.published_at, reverse=True)
    return [_to_entry_schema(row) for row in deduped]


def group_entries_by_day(
    entries: Iterable[DatedT],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[DayBucket[DatedT]]:
    """按发布时间所在的本地自然日分桶。

    `tz` 为空时使用系统本地时区。与 `now` 同一天为 `today`，前一天为 `yesterday`，
    其余为 `date`；桶按日期倒序，桶内按发布时间倒序。
    """
    now = (now or utcnow()).astimezone(tz)
    today = now.date()
    yesterday = today - timedelta(days=1)
    buckets: Dict[str, DayBucket[DatedT]] = {}

    for entry in entries:
        local = entry.published_at.astimezone(tz)
        day = local.date()
        key = day.isoformat()
        bucket = buckets.get(key)
        if bucket is None:
            bucket_type = "today" if day == today else "yesterday" if day == yesterday else "date"
            day_start = local.replace(hour=0, minute=0, second=0, microsecond=0)
            bucket = DayBucket(key=key, type=bucket_type, day_start=day_start)
            buckets[key] = bucket
        bucket.entries.append(entry)

    ordered = sorted(buckets.values(), key=lambda item: item.day_start, reverse=True)
    for bucket in ordered:
        bucket.entries.sort(key=lambda item: item.published_at, reverse=True)
    return ordered


def _resolve_scope_source_ids(
    db: Session,
    user_id: str,
    scope: EntryViewScope,
) -> List[str]:
    from .source_service import get_sources

    if scope.scope == "all-active":
        return [source.id for source in get_sources(db, user_id) if source.enabled]

    if scope.scope == "source":
        if not scope.source_id:
            return []
        source = FeedSourceDAO(db).get_owned(user_id, scope.source_id)
        if source is None or source.deleted_at is not None:
            return []
        return [source.id]

    if scope.scope == "group":
        query = SourceQuery(group_id=scope.group_id)
        return [source.id for source in get_sources(db, user_id, query)]

    if scope.scope == "starred":
        query = SourceQuery(only_starred=True)
        return [source.id for source in get_sources(db, user_id, query)]

    return []
