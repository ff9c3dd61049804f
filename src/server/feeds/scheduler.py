# -*- coding: utf-8 -*-
"""
订阅后台刷新调度器

功能：
- 按固定间隔刷新缓存已过期的订阅源（可选组件，由宿主应用启动）
- 单轮出错只记录日志，不影响后续轮次

公开接口：
- `FeedsScheduler`
- `start_feeds_scheduler`
- `stop_feeds_scheduler`

内部方法：
- `_run_scheduler`
- `_refresh_once`
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.orm import Session

from .config import feeds_config
from .schemas import RefreshResult
from .service import FeedRefresher


class FeedsScheduler:
    """订阅调度器类"""

    def __init__(self, refresher: Optional[FeedRefresher] = None) -> None:
        self.is_running = False
        self.scheduler_task: asyncio.Task | None = None
        self.refresher = refresher or FeedRefresher()
        self.executor: ThreadPoolExecutor | None = None

    async def start(
        self,
        session_factory: Callable[[], Session],
        user_id: str,
    ) -> None:
        """启动调度器"""
        if self.is_running:
            logger.warning("订阅调度器已在运行中")
            return

        self.is_running = True
        self.executor = ThreadPoolExecutor(max_workers=1)
        logger.info(
            "启动订阅自动刷新调度器，间隔: {} 分钟，缓存有效期: {} 分钟",
            feeds_config.rss_sync_interval_minutes,
            feeds_config.rss_cache_ttl_minutes,
        )
        self.scheduler_task = asyncio.create_task(
            self._run_scheduler(session_factory, user_id)
        )

    async def stop(self) -> None:
        """停止调度器"""
        if not self.is_running:
            return

        self.is_running = False
        if self.scheduler_task:
            self.scheduler_task.cancel()
            try:
                await self.scheduler_task
            except asyncio.CancelledError:
                logger.info("订阅调度器已停止")
            self.scheduler_task = None

        if self.executor:
            # 在线程中等待进行中的刷新结束
            executor, self.executor = self.executor, None
            await asyncio.get_running_loop().run_in_executor(None, executor.shutdown)

    async def _run_scheduler(
        self,
        session_factory: Callable[[], Session],
        user_id: str,
    ) -> None:
        """调度器主循环"""
        loop = asyncio.get_running_loop()
        while self.is_running:
            try:
                # 刷新在线程中执行，避免阻塞事件循环
                await loop.run_in_executor(
                    self.executor, self._refresh_once, session_factory, user_id
                )
            except asyncio.CancelledError:
                logger.info("订阅调度器任务被取消")
                break
            except Exception as e:
                logger.error("订阅调度器运行出错: {}", e)

            await asyncio.sleep(feeds_config.rss_sync_interval_minutes * 60)

    def _refresh_once(
        self,
        session_factory: Callable[[], Session],
        user_id: str,
    ) -> RefreshResult:
        """刷新一轮过期的订阅源"""
        db = session_factory()
        try:
            result = self.refresher.refresh_all(db, user_id, only_expired=True)
            logger.info(
                "定时刷新完成：user_id={}, ok={}, stale={}",
                user_id,
                result.ok,
                result.stale,
            )
            return result
        finally:
            db.close()


# 全局调度器实例
_scheduler: FeedsScheduler | None = None


async def start_feeds_scheduler(
    session_factory: Callable[[], Session],
    user_id: str | None = None,
) -> None:
    """启动订阅自动刷新调度器"""
    global _scheduler
    if _scheduler is None:
        _scheduler = FeedsScheduler()
    await _scheduler.start(session_factory, user_id or feeds_config.rss_default_user_id)


async def stop_feeds_scheduler() -> None:
    """停止订阅自动刷新调度器"""
    if _scheduler is not None:
        await _scheduler.stop()
