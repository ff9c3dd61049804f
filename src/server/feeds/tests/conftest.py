# -*- coding: utf-8 -*-
"""
订阅模块测试夹具
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Set

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.server.database import Base, build_engine
from src.server.feeds import models  # noqa: F401
from src.server.feeds.errors import FeedFetchError
from src.server.feeds.schemas import RawEntry

TEST_USER_ID = "test-user"
OTHER_USER_ID = "other-user"


class StubFeedFetcher:
    """可控制失败路由的抓取适配器替身。"""

    def __init__(self) -> None:
        self.failing_routes: Set[str] = set()
        self.overrides: Dict[str, List[RawEntry]] = {}
        self.calls: List[str] = []
        self.base_time = datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc)

    def set_failure(self, route: str, should_fail: bool = True) -> None:
        if should_fail:
            self.failing_routes.add(route)
        else:
            self.failing_routes.discard(route)

    def fetch_entries(self, route: str) -> List[RawEntry]:
        self.calls.append(route)
        if route in self.failing_routes:
            raise FeedFetchError("Mock fetch failed")
        if route in self.overrides:
            return list(self.overrides[route])
        return [
            RawEntry(
                guid_or_link=f"{route}/post-{index}",
                title=f"{route} update #{index}",
                summary=f"Summary for {route} entry {index}",
                url=f"https://example.com{route}/post-{index}",
                published_at=self.base_time - timedelta(minutes=minutes),
            )
            for index, minutes in ((1, 15), (2, 45))
        ]


@pytest.fixture()
def test_engine(tmp_path: Path) -> Iterator[Engine]:
    # 使用文件数据库，使并发刷新的工作线程共享同一份数据
    engine = build_engine(f"sqlite:///{tmp_path / 'feeds-test.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def test_db_session(test_engine: Engine) -> Iterator[Session]:
    session = sessionmaker(bind=test_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def stub_fetcher() -> StubFeedFetcher:
    return StubFeedFetcher()
