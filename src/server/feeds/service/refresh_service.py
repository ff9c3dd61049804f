# -*- coding: utf-8 -*-
"""
订阅刷新服务

功能：
- 刷新单个订阅源：抓取、去重、在同一事务内整体替换缓存条目
- 刷新全部订阅源：并发扇出，汇总为一个刷新结果
- 容错策略：抓取失败但已有缓存时返回过期数据（stale），没有缓存时才判定失败

公开接口：
- `FeedRefresher`
- `refresh_source`
- `refresh_all`

内部方法：
- `_SourceLocks`
- `_aggregate_results`
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from ..config import feeds_config
from ..dao import FeedEntryDAO, FeedSourceDAO
from ..errors import FeedsError
from ..models import FeedSource
from ..schemas import RefreshResult, RoutedEntry
from .entry_service import dedupe_entries
from .fetch_service import FeedFetcher, get_default_fetcher
from .utils import build_entry_id, is_cache_expired, utcnow

UNAVAILABLE_MESSAGE = "Source is unavailable"
NO_CACHE_MESSAGE = "Refresh failed with no cached entries"


class _SourceLocks:
    """按订阅源 ID 串行化刷新，避免同一订阅源的事务交错。"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, source_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(source_id)
            if lock is None:
                lock = self._locks[source_id] = threading.Lock()
            return lock


_source_locks = _SourceLocks()


class FeedRefresher:
    """刷新编排器，抓取适配器通过构造函数注入。"""

    def __init__(
        self,
        fetcher: Optional[FeedFetcher] = None,
        *,
        max_workers: Optional[int] = None,
    ) -> None:
        self.fetcher = fetcher or get_default_fetcher()
        self.max_workers = max_workers or feeds_config.rss_max_concurrent_fetches

    def refresh_source(
        self,
        db: Session,
        source_id: str,
        *,
        user_id: Optional[str] = None,
    ) -> RefreshResult:
        """刷新指定订阅源；传入 `user_id` 时，不属于该用户的订阅源视为不可用。"""
        with _source_locks.get(source_id):
            return self._refresh_one(db, source_id, user_id)

    def refresh_all(
        self,
        db: Session,
        user_id: str,
        *,
        only_expired: bool = False,
    ) -> RefreshResult:
        """并发刷新用户全部启用中的订阅源。"""
        from .source_service import get_sources

        sources = [source for source in get_sources(db, user_id) if source.enabled]
        if only_expired:
            now = utcnow()
            sources = [
                source
                for source in sources
                if is_cache_expired(
                    source.last_success_at, feeds_config.rss_cache_ttl_minutes, now
                )
            ]
        if not sources:
            return RefreshResult(ok=True, stale=False)

        source_ids = [source.id for source in sources]
        # 每个线程使用独立会话，避免会话冲突
        session_factory = sessionmaker(bind=db.get_bind())
        workers = min(self.max_workers, len(source_ids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(
                    lambda item: self._refresh_in_new_session(
                        session_factory, item, user_id
                    ),
                    source_ids,
                )
            )

        db.expire_all()
        cached_count = FeedEntryDAO(db).count_by_user(user_id)
        aggregated = _aggregate_results(results, cached_count)
        logger.info(
            "全部刷新完成：user_id={}, 订阅源={}, ok={}, stale={}",
            user_id,
            len(source_ids),
            aggregated.ok,
            aggregated.stale,
        )
        return aggregated

    def _refresh_in_new_session(
        self,
        session_factory: sessionmaker,
        source_id: str,
        user_id: str,
    ) -> RefreshResult:
        db = session_factory()
        try:
            return self.refresh_source(db, source_id, user_id=user_id)
        finally:
            db.close()

    def _refresh_one(
        self,
        db: Session,
        source_id: str,
        user_id: Optional[str] = None,
    ) -> RefreshResult:
        source_dao = FeedSourceDAO(db)
        entry_dao = FeedEntryDAO(db)

        source = (
            source_dao.get_owned(user_id, source_id)
            if user_id is not None
            else source_dao.get_by_id(source_id)
        )
        if not source or source.deleted_at is not None or not source.enabled:
            return RefreshResult(ok=False, stale=False, error=UNAVAILABLE_MESSAGE)

        existing = {entry.id: entry.created_at for entry in entry_dao.list_by_source(source.id)}
        previous_success_at = source.last_success_at

        try:
            fetched = self.fetcher.fetch_entries(source.route)
            deduped = dedupe_entries(
                RoutedEntry(route=source.route, **entry.model_dump())
                for entry in fetched
            )
            now = utcnow()
            latest_published = (
                max(entry.published_at for entry in deduped)
                if deduped
                else source.last_entry_at
            )
            rows = _build_rows(source, deduped, existing, now)
            entry_dao.replace_for_source(source.id, rows)
        except FeedsError as exc:
            logger.error("订阅源刷新失败：source_id={}, 错误={}", source.id, exc)
            return self._handle_failure(db, source, str(exc), existing, previous_success_at)
        except Exception as exc:
            logger.exception("订阅源刷新出现未预期的异常：source_id={}", source.id)
            message = str(exc) or "Refresh failed"
            return self._handle_failure(db, source, message, existing, previous_success_at)

        source_dao.update_fields(
            source,
            last_success_at=now,
            last_entry_at=latest_published,
            last_error_at=None,
            last_error_message=None,
            updated_at=utcnow(),
        )
        logger.info(
            "订阅源刷新成功：source_id={}, 条目数={}", source.id, len(rows)
        )
        return RefreshResult(ok=True, stale=False, last_success_at=now)

    def _handle_failure(
        self,
        db: Session,
        source: FeedSource,
        message: str,
        existing: Dict[str, datetime],
        previous_success_at: Optional[datetime],
    ) -> RefreshResult:
        now = utcnow()
        FeedSourceDAO(db).update_fields(
            source,
            last_error_at=now,
            last_error_message=message,
            updated_at=now,
        )
        if existing:
            logger.warning(
                "订阅源刷新失败，返回缓存数据：source_id={}, 缓存条目={}",
                source.id,
                len(existing),
            )
            return RefreshResult(ok=True, stale=True, last_success_at=previous_success_at)
        return RefreshResult(ok=False, stale=False, error=message)


def _build_rows(
    source: FeedSource,
    entries: Sequence[RoutedEntry],
    existing: Dict[str, datetime],
    now: datetime,
) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for entry in entries:
        entry_id = build_entry_id(source.route, entry.guid_or_link)
        rows.append(
            {
                "id": entry_id,
                "source_id": source.id,
                "route": source.route,
                "guid_or_link": entry.guid_or_link,
                "title": entry.title,
                "summary": entry.summary,
                "url": entry.url,
                "thumbnail_url": entry.thumbnail_url,
                "published_at": entry.published_at,
                "cached_at": now,
                # 已存在的条目保留首次缓存时间
                "created_at": existing.get(entry_id, now),
                "updated_at": now,
            }
        )
    return rows


def _aggregate_results(results: Sequence[RefreshResult], cached_count: int) -> RefreshResult:
    """汇总：只有出现硬失败且全部缓存为空时整体才失败。"""
    stale = any(result.stale for result in results)
    hard_fail = any(not result.ok for result in results)
    success_times = [
        result.last_success_at for result in results if result.last_success_at is not None
    ]
    last_success_at = max(success_times) if success_times else None

    if hard_fail and cached_count == 0:
        return RefreshResult(
            ok=False,
            stale=stale,
            last_success_at=last_success_at,
            error=NO_CACHE_MESSAGE,
        )
    return RefreshResult(ok=True, stale=stale, last_success_at=last_success_at)


_default_refresher: Optional[FeedRefresher] = None


def _get_default_refresher() -> FeedRefresher:
    global _default_refresher
    if _default_refresher is None:
        _default_refresher = FeedRefresher()
    return _default_refresher


def refresh_source(
    db: Session,
    source_id: str,
    *,
    user_id: Optional[str] = None,
    fetcher: Optional[FeedFetcher] = None,
) -> RefreshResult:
    """刷新指定订阅源；可传入抓取适配器替换默认实现。"""
    refresher = FeedRefresher(fetcher) if fetcher else _get_default_refresher()
    return refresher.refresh_source(db, source_id, user_id=user_id)


def refresh_all(
    db: Session,
    user_id: str,
    *,
    fetcher: Optional[FeedFetcher] = None,
    only_expired: bool = False,
) -> RefreshResult:
    """刷新用户全部订阅源；可传入抓取适配器替换默认实现。"""
    refresher = FeedRefresher(fetcher) if fetcher else _get_default_refresher()
    return refresher.refresh_all(db, user_id, only_expired=only_expired)
