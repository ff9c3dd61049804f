# -*- coding: utf-8 -*-
"""
订阅后台刷新调度器测试
"""

from __future__ import annotations

import asyncio
import threading
from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from src.server.feeds.scheduler import FeedsScheduler
from src.server.feeds.service import FeedRefresher, get_sources
from src.server.feeds.models import FeedSource
from src.server.feeds.service.utils import utcnow

TEST_USER_ID = "test-user"


def test_refresh_once_only_refreshes_expired_sources(
    test_db_session: Session, test_engine, stub_fetcher
) -> None:
    """单轮调度只刷新缓存过期的订阅源。"""
    sources = get_sources(test_db_session, TEST_USER_ID)
    scheduler = FeedsScheduler(FeedRefresher(stub_fetcher))
    factory = sessionmaker(bind=test_engine)

    first = scheduler._refresh_once(factory, TEST_USER_ID)
    assert first.ok is True
    assert sorted(stub_fetcher.calls) == sorted(source.route for source in sources)

    # 所有缓存都在有效期内，不会再次抓取
    stub_fetcher.calls.clear()
    scheduler._refresh_once(factory, TEST_USER_ID)
    assert stub_fetcher.calls == []

    row = test_db_session.get(FeedSource, sources[0].id)
    row.last_success_at = utcnow() - timedelta(days=1)
    test_db_session.commit()

    scheduler._refresh_once(factory, TEST_USER_ID)
    assert stub_fetcher.calls == [sources[0].route]


def test_scheduler_start_and_stop(test_db_session: Session, test_engine, stub_fetcher) -> None:
    """启动后立即执行一轮刷新，停止后任务与线程池被回收。"""
    get_sources(test_db_session, TEST_USER_ID)
    scheduler = FeedsScheduler(FeedRefresher(stub_fetcher))
    factory = sessionmaker(bind=test_engine)

    async def run() -> None:
        await scheduler.start(factory, TEST_USER_ID)
        # 重复启动不会创建新的任务
        task = scheduler.scheduler_task
        await scheduler.start(factory, TEST_USER_ID)
        assert scheduler.scheduler_task is task

        for _ in range(100):
            if len(stub_fetcher.calls) >= 3:
                break
            await asyncio.sleep(0.05)
        await scheduler.stop()

    asyncio.run(run())

    assert len(stub_fetcher.calls) == 3
    assert scheduler.is_running is False
    assert scheduler.scheduler_task is None
    assert scheduler.executor is None


def test_scheduler_stop_waits_without_blocking_loop(
    test_db_session: Session, test_engine
) -> None:
    """刷新进行中停止调度器：等待刷新结束，期间事件循环仍可调度其他任务。"""
    get_sources(test_db_session, TEST_USER_ID)
    started = threading.Event()
    finished = threading.Event()

    class SlowFetcher:
        def fetch_entries(self, route: str) -> list:
            started.set()
            threading.Event().wait(0.3)
            finished.set()
            return []

    scheduler = FeedsScheduler(FeedRefresher(SlowFetcher(), max_workers=1))
    factory = sessionmaker(bind=test_engine)
    ticks = 0

    async def run() -> None:
        nonlocal ticks
        await scheduler.start(factory, TEST_USER_ID)
        for _ in range(500):
            if started.is_set():
                break
            await asyncio.sleep(0.01)

        stopping = asyncio.create_task(scheduler.stop())
        while not stopping.done():
            ticks += 1
            await asyncio.sleep(0.01)
        await stopping

    asyncio.run(run())

    assert finished.is_set()
    assert ticks > 3
    assert scheduler.executor is None
