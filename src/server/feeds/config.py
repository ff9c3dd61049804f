# -*- coding: utf-8 -*-
"""
订阅模块配置

公开接口：
- `feeds_config`
"""

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings


class FeedsConfig(BaseSettings):
    """订阅模块配置"""

    # HTTP 请求配置
    rss_http_timeout: float = Field(
        default=20.0,
        title="HTTP 请求超时时间",
        description="RSS 抓取请求的超时时间（秒）",
    )

    # 解析配置
    rss_max_items_per_feed: int = Field(
        default=120,
        title="单源最大条目数",
        description="解析单个 RSS/Atom 文档时按文档顺序保留的最大条目数",
    )

    rss_summary_max_length: int = Field(
        default=500,
        title="摘要最大长度",
        description="去除 HTML 后的摘要保留的最大字符数",
    )

    # 缓存与同步配置
    rss_cache_ttl_minutes: int = Field(
        default=30,
        title="缓存有效期",
        description="订阅源最近一次成功刷新后缓存保持新鲜的时长（分钟）",
    )

    rss_sync_interval_minutes: int = Field(
        default=10,
        title="RSS 同步间隔",
        description="后台调度器检查过期缓存的间隔（分钟）",
    )

    rss_max_concurrent_fetches: int = Field(
        default=5,
        title="最大并发拉取数",
        description="全部刷新时同时执行的最大拉取任务数",
    )

    # 用户与预置订阅源
    rss_default_user_id: str = Field(
        default="local-user",
        title="默认用户",
        description="请求未携带 X-User-Id 时使用的用户标识",
    )

    rss_seed_presets: bool = Field(
        default=True,
        title="是否预置订阅源",
        description="首次访问时是否为用户创建预置订阅源",
    )

    rss_preset_sources: Dict[str, str] = Field(
        default_factory=lambda: {
            "/github/trending/daily": "GitHub Trending Daily",
            "/hackernews/frontpage": "Hacker News Frontpage",
            "/producthunt/posts": "Product Hunt New Posts",
        },
        title="预置订阅源",
        description="预置订阅源的路由与显示名称映射",
    )


feeds_config = FeedsConfig()
