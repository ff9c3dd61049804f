# -*- coding: utf-8 -*-
"""
订阅数据模型

公开接口：
- `FeedSource`
- `SourceGroup`
- `FeedEntry`
- `ReadState`

内部方法：
- `_utcnow`
- `_new_id`

文件功能：
- 定义订阅模块使用的 SQLAlchemy ORM 模型，描述订阅源、分组、缓存条目以及阅读状态。

说明：
- 所有时间字段统一使用 UTC，读取时补齐时区信息。
- 条目主键为 `(source_id, route::guidOrLink)`，写入一律采用覆盖语义，保证同一订阅源下同一条目只有一行。
- 软删除的订阅源保留其条目与阅读状态。
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from src.server.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class UTCDateTime(TypeDecorator):
    """写入前转换为 UTC，读取时补齐 UTC 时区（SQLite 不保存时区）。"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class SourceGroup(Base):
    __tablename__ = "rss_source_groups"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )

    sources: Mapped[List["FeedSource"]] = relationship(
        "FeedSource", back_populates="group"
    )


class FeedSource(Base):
    __tablename__ = "rss_sources"
    __table_args__ = (
        UniqueConstraint("user_id", "route", name="uq_rss_sources_user_route"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    route: Mapped[str] = mapped_column(String(512), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    is_preset: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    group_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("rss_source_groups.id"),
        default=None,
        index=True,
    )
    starred_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=None)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, default=None)
    last_entry_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, default=None
    )
    last_success_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, default=None
    )
    last_error_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, default=None
    )
    last_error_message: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )

    group: Mapped[Optional["SourceGroup"]] = relationship(
        "SourceGroup", back_populates="sources"
    )
    entries: Mapped[List["FeedEntry"]] = relationship(
        "FeedEntry", back_populates="source"
    )


class FeedEntry(Base):
    __tablename__ = "rss_entries"

    # 主键 (source_id, id)，缓存按订阅源隔离
    source_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("rss_sources.id"),
        primary_key=True,
    )
    # route::guidOrLink
    id: Mapped[str] = mapped_column(String(1024), primary_key=True)
    route: Mapped[str] = mapped_column(String(512), nullable=False)
    guid_or_link: Mapped[str] = mapped_column(String(1024), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1024), default=None)
    published_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )

    source: Mapped["FeedSource"] = relationship("FeedSource", back_populates="entries")


class ReadState(Base):
    __tablename__ = "rss_read_states"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entry_id: Mapped[str] = mapped_column(String(1024), primary_key=True)
    read_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow
    )
