# -*- coding: utf-8 -*-
"""
订阅服务模块

此模块提供订阅源管理、抓取刷新、条目视图与阅读状态的全部业务逻辑。
"""

from .source_service import (
    add_source,
    assign_source_group,
    create_source_group,
    delete_source_group,
    ensure_preset_sources,
    get_source_groups,
    get_sources,
    remove_source,
    rename_source_group,
    restore_source,
    star_source,
    unstar_source,
)
from .entry_service import (
    DayBucket,
    dedupe_entries,
    get_entries,
    get_entries_view,
    group_entries_by_day,
)
from .fetch_service import (
    FeedFetcher,
    HttpFeedFetcher,
    PlaceholderRouteFetcher,
    RoutingFeedFetcher,
)
from .read_state_service import get_read_states, mark_entries_as_read
from .refresh_service import FeedRefresher, refresh_all, refresh_source
from .utils import build_entry_id, extract_thumbnail_url, is_cache_expired

__all__ = [
    "add_source",
    "assign_source_group",
    "create_source_group",
    "delete_source_group",
    "ensure_preset_sources",
    "get_source_groups",
    "get_sources",
    "remove_source",
    "rename_source_group",
    "restore_source",
    "star_source",
    "unstar_source",
    "DayBucket",
    "dedupe_entries",
    "get_entries",
    "get_entries_view",
    "group_entries_by_day",
    "FeedFetcher",
    "HttpFeedFetcher",
    "PlaceholderRouteFetcher",
    "RoutingFeedFetcher",
    "get_read_states",
    "mark_entries_as_read",
    "FeedRefresher",
    "refresh_all",
    "refresh_source",
    "build_entry_id",
    "extract_thumbnail_url",
    "is_cache_expired",
]
