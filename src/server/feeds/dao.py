# -*- coding: utf-8 -*-
"""
订阅模块 DAO

- 公开接口：
    - `FeedSourceDAO`
    - `SourceGroupDAO`
    - `FeedEntryDAO`
    - `ReadStateDAO`

内部方法：
- 无

文件功能：
- 为订阅模块提供面向数据库的访问层，封装订阅源、分组、条目及阅读状态的查询与写入。
- 多行写入（条目整体替换、删除分组并取消关联、批量标记已读）均在同一事务内完成。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from src.server.dao.dao_base import BaseDAO
from .models import FeedEntry, FeedSource, ReadState, SourceGroup


class FeedSourceDAO(BaseDAO):
    """订阅源 DAO"""

    def list_by_user(self, user_id: str) -> List[FeedSource]:
        stmt = (
            select(FeedSource)
            .where(FeedSource.user_id == user_id)
            .order_by(FeedSource.created_at.asc())
        )
        return list(self.db_session.scalars(stmt))

    def get_by_id(self, source_id: str) -> FeedSource | None:
        return self.db_session.get(FeedSource, source_id)

    def get_owned(self, user_id: str, source_id: str) -> FeedSource | None:
        """按 ID 获取订阅源，仅当其属于该用户时返回。"""
        source = self.get_by_id(source_id)
        if source is None or source.user_id != user_id:
            return None
        return source

    def get_by_route(self, user_id: str, route: str) -> FeedSource | None:
        stmt = select(FeedSource).where(
            FeedSource.user_id == user_id,
            FeedSource.route == route,
        )
        return self.db_session.scalars(stmt).first()

    def create_source(
        self,
        *,
        user_id: str,
        route: str,
        display_name: str,
        group_id: str | None = None,
        is_preset: bool = False,
        now: datetime,
    ) -> FeedSource:
        source = FeedSource(
            user_id=user_id,
            route=route,
            display_name=display_name,
            group_id=group_id,
            is_preset=is_preset,
            enabled=True,
            created_at=now,
            updated_at=now,
        )
        self.db_session.add(source)
        self.db_session.commit()
        self.db_session.refresh(source)
        return source

    def bulk_create(self, sources: Sequence[FeedSource]) -> int:
        if not sources:
            return 0
        with self.transaction():
            self.db_session.add_all(sources)
        return len(sources)

    def update_fields(self, source: FeedSource, **values: Any) -> FeedSource:
        """按字段更新订阅源；值为 None 的字段会被清空。"""
        for key, value in values.items():
            setattr(source, key, value)
        self.db_session.add(source)
        self.db_session.commit()
        self.db_session.refresh(source)
        return source


class SourceGroupDAO(BaseDAO):
    """订阅源分组 DAO"""

    def list_by_user(self, user_id: str) -> List[SourceGroup]:
        stmt = select(SourceGroup).where(SourceGroup.user_id == user_id)
        return list(self.db_session.scalars(stmt))

    def get_by_id(self, group_id: str) -> SourceGroup | None:
        return self.db_session.get(SourceGroup, group_id)

    def find_by_name(
        self,
        user_id: str,
        name: str,
        *,
        exclude_id: str | None = None,
    ) -> SourceGroup | None:
        """按名称查找分组，忽略大小写。"""
        # SQLite 的 lower() 只处理 ASCII，统一在 Python 侧比较
        normalized = name.strip().casefold()
        for group in self.list_by_user(user_id):
            if group.id != exclude_id and group.name.strip().casefold() == normalized:
                return group
        return None

    def create_group(self, *, user_id: str, name: str, now: datetime) -> SourceGroup:
        group = SourceGroup(user_id=user_id, name=name, created_at=now, updated_at=now)
        self.db_session.add(group)
        self.db_session.commit()
        self.db_session.refresh(group)
        return group

    def rename_group(self, group: SourceGroup, name: str, now: datetime) -> SourceGroup:
        group.name = name
        group.updated_at = now
        self.db_session.add(group)
        self.db_session.commit()
        self.db_session.refresh(group)
        return group

    def delete_and_ungroup(self, group: SourceGroup, now: datetime) -> int:
        """删除分组，并在同一事务中将引用它的订阅源置为未分组。"""
        with self.transaction():
            linked = list(
                self.db_session.scalars(
                    select(FeedSource).where(
                        FeedSource.user_id == group.user_id,
                        FeedSource.group_id == group.id,
                    )
                )
            )
            for source in linked:
                source.group_id = None
                source.updated_at = now
            self.db_session.flush()
            self.db_session.delete(group)
        return len(linked)


class FeedEntryDAO(BaseDAO):
    """缓存条目 DAO"""

    def list_by_source(self, source_id: str) -> List[FeedEntry]:
        stmt = select(FeedEntry).where(FeedEntry.source_id == source_id)
        return list(self.db_session.scalars(stmt))

    def list_by_sources(self, source_ids: Sequence[str]) -> List[FeedEntry]:
        if not source_ids:
            return []
        stmt = (
            select(FeedEntry)
            .where(FeedEntry.source_id.in_(source_ids))
            .order_by(FeedEntry.published_at.desc())
            .options(selectinload(FeedEntry.source))
        )
        return list(self.db_session.scalars(stmt))

    def count_by_user(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(FeedEntry)
            .join(FeedSource, FeedEntry.source_id == FeedSource.id)
            .where(FeedSource.user_id == user_id)
        )
        return int(self.db_session.execute(stmt).scalar() or 0)

    def replace_for_source(
        self,
        source_id: str,
        rows: Sequence[Mapping[str, Any]],
    ) -> int:
        """用新条目集合整体替换某订阅源的缓存，整个过程处于同一事务。

        只读写该订阅源自己的行：旧集合中不再出现的条目被删除，
        已存在的条目被覆盖，其余新增。
        """
        with self.transaction():
            current: Dict[str, FeedEntry] = {
                entry.id: entry for entry in self.list_by_source(source_id)
            }
            keep_ids = {row["id"] for row in rows}
            for entry_id, entry in current.items():
                if entry_id not in keep_ids:
                    self.db_session.delete(entry)
            for row in rows:
                entry = current.get(row["id"])
                if entry is None:
                    self.db_session.add(FeedEntry(**row))
                    continue
                for key, value in row.items():
                    setattr(entry, key, value)
        return len(rows)


class ReadStateDAO(BaseDAO):
    """阅读状态 DAO"""

    def list_by_user(self, user_id: str) -> List[ReadState]:
        stmt = (
            select(ReadState)
            .where(ReadState.user_id == user_id)
            .order_by(ReadState.created_at.asc(), ReadState.entry_id.asc())
        )
        return list(self.db_session.scalars(stmt))

    def get(self, user_id: str, entry_id: str) -> Optional[ReadState]:
        return self.db_session.get(ReadState, (user_id, entry_id))

    def upsert_many(
        self,
        user_id: str,
        entry_ids: Sequence[str],
        read_at: datetime,
    ) -> List[ReadState]:
        touched: List[ReadState] = []
        with self.transaction():
            for entry_id in entry_ids:
                state = self.get(user_id, entry_id)
                if state is None:
                    state = ReadState(
                        user_id=user_id,
                        entry_id=entry_id,
                        read_at=read_at,
                        created_at=read_at,
                        updated_at=read_at,
                    )
                    self.db_session.add(state)
                else:
                    state.read_at = read_at
                    state.updated_at = read_at
                touched.append(state)
        return touched
