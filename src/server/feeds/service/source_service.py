# -*- coding: utf-8 -*-
"""
订阅源管理服务

功能：
- 管理订阅源：预置源、添加校验、软删除与恢复、星标、分组筛选与活跃度排序
- 管理订阅源分组：创建、重命名、删除（删除时订阅源回落为未分组）、指派

公开接口：
- `ensure_preset_sources`
- `get_sources`
- `add_source`
- `remove_source`
- `restore_source`
- `star_source`
- `unstar_source`
- `get_source_groups`
- `create_source_group`
- `rename_source_group`
- `delete_source_group`
- `assign_source_group`

内部方法：
- `_get_owned_source`
- `_get_owned_group`
- `_validate_group_name`
- `_sort_sources_by_activity`
"""

from __future__ import annotations

import locale
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from ..config import feeds_config
from ..dao import FeedSourceDAO, SourceGroupDAO
from ..errors import RSSValidationError
from ..models import FeedSource, SourceGroup
from ..schemas import FeedSourceSchema, SourceGroupSchema, SourceQuery
from .utils import (
    _to_source_schema,
    activity_score,
    derive_display_name,
    is_valid_route,
    looks_like_url,
    utcnow,
)


def ensure_preset_sources(db: Session, user_id: str) -> int:
    """为用户补齐预置订阅源；已存在（含已软删除）的路由不会重复创建。"""
    if not feeds_config.rss_seed_presets:
        return 0
    source_dao = FeedSourceDAO(db)
    existing_routes = {source.route for source in source_dao.list_by_user(user_id)}
    now = utcnow()
    missing = [
        FeedSource(
            user_id=user_id,
            route=route,
            display_name=display_name,
            is_preset=True,
            enabled=True,
            created_at=now,
            updated_at=now,
        )
        for route, display_name in feeds_config.rss_preset_sources.items()
        if route not in existing_routes
    ]
    created = source_dao.bulk_create(missing)
    if created:
        logger.info("已为用户创建预置订阅源：user_id={}, 数量={}", user_id, created)
    return created


def get_sources(
    db: Session,
    user_id: str,
    query: Optional[SourceQuery] = None,
) -> List[FeedSourceSchema]:
    """按软删除、星标与分组筛选订阅源，并按活跃度降序、名称升序排列。"""
    query = query or SourceQuery()
    ensure_preset_sources(db, user_id)
    rows = FeedSourceDAO(db).list_by_user(user_id)

    filtered: List[FeedSource] = []
    for source in rows:
        if not query.include_removed and source.deleted_at is not None:
            continue
        if (query.only_starred or query.section == "favorites") and not source.starred_at:
            continue
        if query.filters_group:
            if query.group_id is None:
                if source.group_id:
                    continue
            elif source.group_id != query.group_id:
                continue
        filtered.append(source)

    return [_to_source_schema(source) for source in _sort_sources_by_activity(filtered)]


def add_source(
    db: Session,
    user_id: str,
    route: str,
    display_name: Optional[str] = None,
    group_id: Optional[str] = None,
) -> FeedSourceSchema:
    """添加订阅源。"""
    ensure_preset_sources(db, user_id)
    route = (route or "").strip()
    display_name = (display_name or "").strip() or derive_display_name(route)

    if not route:
        raise RSSValidationError("订阅路由或 RSS 链接不能为空。")
    if not is_valid_route(route) and not looks_like_url(route):
        raise RSSValidationError("订阅源必须是 /platform/path 形式的路由或 RSS 链接。")
    if group_id:
        _get_owned_group(db, user_id, group_id)

    source_dao = FeedSourceDAO(db)
    if source_dao.get_by_route(user_id, route):
        logger.warning("重复添加订阅源被拒绝：user_id={}, route={}", user_id, route)
        raise RSSValidationError("订阅源已存在，请勿重复添加。")

    source = source_dao.create_source(
        user_id=user_id,
        route=route,
        display_name=display_name,
        group_id=group_id or None,
        now=utcnow(),
    )
    logger.info("订阅源已添加：source_id={}, route={}", source.id, route)
    return _to_source_schema(source)


def remove_source(
    db: Session,
    user_id: str,
    source_id: str,
) -> Optional[FeedSourceSchema]:
    """软删除订阅源，不触碰其缓存条目；不存在或不属于该用户时返回 None。"""
    source_dao = FeedSourceDAO(db)
    source = source_dao.get_owned(user_id, source_id)
    if not source:
        return None
    now = utcnow()
    updated = source_dao.update_fields(
        source, enabled=False, deleted_at=now, updated_at=now
    )
    return _to_source_schema(updated)


def restore_source(
    db: Session,
    user_id: str,
    source_id: str,
) -> Optional[FeedSourceSchema]:
    """恢复已软删除的订阅源。"""
    source_dao = FeedSourceDAO(db)
    source = source_dao.get_owned(user_id, source_id)
    if not source:
        return None
    updated = source_dao.update_fields(
        source, enabled=True, deleted_at=None, updated_at=utcnow()
    )
    return _to_source_schema(updated)


def star_source(db: Session, user_id: str, source_id: str) -> FeedSourceSchema:
    source = _get_owned_source(db, user_id, source_id)
    now = utcnow()
    updated = FeedSourceDAO(db).update_fields(source, starred_at=now, updated_at=now)
    return _to_source_schema(updated)


def unstar_source(db: Session, user_id: str, source_id: str) -> FeedSourceSchema:
    source = _get_owned_source(db, user_id, source_id)
    updated = FeedSourceDAO(db).update_fields(
        source, starred_at=None, updated_at=utcnow()
    )
    return _to_source_schema(updated)


def get_source_groups(db: Session, user_id: str) -> List[SourceGroupSchema]:
    """列出用户的分组，按名称排序。"""
    groups = SourceGroupDAO(db).list_by_user(user_id)
    groups.sort(key=lambda group: locale.strxfrm(group.name.casefold()))
    return [SourceGroupSchema.model_validate(group) for group in groups]


def create_source_group(db: Session, user_id: str, name: str) -> SourceGroupSchema:
    trimmed = _validate_group_name(db, user_id, name)
    group = SourceGroupDAO(db).create_group(user_id=user_id, name=trimmed, now=utcnow())
    return SourceGroupSchema.model_validate(group)


def rename_source_group(
    db: Session,
    user_id: str,
    group_id: str,
    name: str,
) -> SourceGroupSchema:
    group = _get_owned_group(db, user_id, group_id)
    trimmed = _validate_group_name(db, user_id, name, exclude_id=group.id)
    renamed = SourceGroupDAO(db).rename_group(group, trimmed, utcnow())
    return SourceGroupSchema.model_validate(renamed)


def delete_source_group(db: Session, user_id: str, group_id: str) -> None:
    """删除分组；原分组内的订阅源改为未分组，不会被删除。"""
    group = _get_owned_group(db, user_id, group_id)
    ungrouped = SourceGroupDAO(db).delete_and_ungroup(group, utcnow())
    logger.info("分组已删除：group_id={}, 回落未分组的订阅源={}", group_id, ungrouped)


def assign_source_group(
    db: Session,
    user_id: str,
    source_id: str,
    group_id: Optional[str],
) -> FeedSourceSchema:
    """调整订阅源所属分组，`group_id` 为 None 表示取消分组。"""
    source = _get_owned_source(db, user_id, source_id)
    if group_id:
        _get_owned_group(db, user_id, group_id)
    updated = FeedSourceDAO(db).update_fields(
        source, group_id=group_id or None, updated_at=utcnow()
    )
    return _to_source_schema(updated)


def _get_owned_source(db: Session, user_id: str, source_id: str) -> FeedSource:
    source = FeedSourceDAO(db).get_owned(user_id, source_id)
    if not source:
        raise RSSValidationError("订阅源不存在。")
    return source


def _get_owned_group(db: Session, user_id: str, group_id: str) -> SourceGroup:
    group = SourceGroupDAO(db).get_by_id(group_id)
    if not group or group.user_id != user_id:
        raise RSSValidationError("分组不存在。")
    return group


def _validate_group_name(
    db: Session,
    user_id: str,
    name: str,
    *,
    exclude_id: Optional[str] = None,
) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise RSSValidationError("分组名称不能为空。")
    if SourceGroupDAO(db).find_by_name(user_id, trimmed, exclude_id=exclude_id):
        raise RSSValidationError("分组名称已存在。")
    return trimmed


def _sort_sources_by_activity(sources: Iterable[FeedSource]) -> List[FeedSource]:
    # 先按名称升序，再按活跃度降序（稳定排序保留名称次序）
    by_name = sorted(sources, key=lambda item: locale.strxfrm(item.display_name.casefold()))
    return sorted(by_name, key=activity_score, reverse=True)
