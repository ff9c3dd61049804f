# -*- coding: utf-8 -*-
"""
订阅抓取适配器

功能：
- 给定订阅源路由，返回统一的 `RawEntry` 列表
- 对调用方隐藏「本地路由」与「真实 URL」的差异

公开接口：
- `FeedFetcher`
- `HttpFeedFetcher`
- `PlaceholderRouteFetcher`
- `RoutingFeedFetcher`
- `get_default_fetcher`

内部方法：
- 无
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, runtime_checkable

import httpx
from loguru import logger

from ..config import feeds_config
from ..errors import FeedFetchError
from ..schemas import RawEntry
from .feed_parser import parse_feed
from .utils import looks_like_url, utcnow

HTTP_TIMEOUT = feeds_config.rss_http_timeout


@runtime_checkable
class FeedFetcher(Protocol):
    """抓取适配器接口：失败时抛出 `FeedFetchError` 或 `FeedParseError`。"""

    def fetch_entries(self, route: str) -> List[RawEntry]:
        raise NotImplementedError


class HttpFeedFetcher:
    """通过 HTTP GET 拉取 RSS/Atom 文档并解析。"""

    def __init__(
        self,
        *,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    def fetch_entries(self, route: str) -> List[RawEntry]:
        return parse_feed(self._fetch_feed_content(route), route)

    def _fetch_feed_content(self, feed_url: str) -> bytes:
        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = client.get(feed_url)
        except httpx.HTTPError as exc:
            raise FeedFetchError(f"Failed to fetch feed: {exc}") from exc
        if not response.is_success:
            raise FeedFetchError(f"Failed to fetch feed: {response.status_code}")
        return response.content


class PlaceholderRouteFetcher:
    """本地路由的默认实现：按路由生成确定性的占位条目。"""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock

    def fetch_entries(self, route: str) -> List[RawEntry]:
        now = self.clock()
        base = re.sub(r"\W+", "-", route)
        return [
            RawEntry(
                guid_or_link=f"{route}/post-{index}",
                title=f"{base} update #{index}",
                summary=f"Summary for {route} entry {index}",
                url=f"https://example.com{route}/post-{index}",
                published_at=now - timedelta(minutes=minutes),
            )
            for index, minutes in ((1, 15), (2, 45))
        ]


class RoutingFeedFetcher:
    """非 URL 路由交给本地路由适配器，URL 交给 HTTP 适配器。"""

    def __init__(
        self,
        route_fetcher: Optional[FeedFetcher] = None,
        http_fetcher: Optional[FeedFetcher] = None,
    ) -> None:
        self.route_fetcher = route_fetcher or PlaceholderRouteFetcher()
        self.http_fetcher = http_fetcher or HttpFeedFetcher()

    def fetch_entries(self, route: str) -> List[RawEntry]:
        if looks_like_url(route):
            return self.http_fetcher.fetch_entries(route)
        logger.debug("使用本地路由适配器：route={}", route)
        return self.route_fetcher.fetch_entries(route)


def get_default_fetcher() -> FeedFetcher:
    return RoutingFeedFetcher()
