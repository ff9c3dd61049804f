# -*- coding: utf-8 -*-
"""
订阅路由

公开接口：
- GET /api/feeds/sources
- POST /api/feeds/sources
- DELETE /api/feeds/sources/{source_id}
- POST /api/feeds/sources/{source_id}/restore
- POST /api/feeds/sources/{source_id}/star
- DELETE /api/feeds/sources/{source_id}/star
- PUT /api/feeds/sources/{source_id}/group
- POST /api/feeds/sources/{source_id}/refresh
- POST /api/feeds/refresh
- GET /api/feeds/groups
- POST /api/feeds/groups
- PATCH /api/feeds/groups/{group_id}
- DELETE /api/feeds/groups/{group_id}
- GET /api/feeds/entries
- GET /api/feeds/entries/by-day
- GET /api/feeds/read-states
- POST /api/feeds/read-states

内部方法：
- `_current_user_id`
- `_bad_request`
- `_build_scope`

文件功能：
- 暴露订阅模块的 REST API。权限校验由调用方负责，这里只确定当前用户。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from src.server.database import get_db
from .config import feeds_config
from .errors import RSSValidationError
from .schemas import (
    AddSourcePayload,
    AssignGroupPayload,
    DayBucketSchema,
    EntryViewScope,
    FeedEntrySchema,
    FeedSourceSchema,
    MarkReadPayload,
    ReadStateSchema,
    RefreshResult,
    ScopeName,
    SourceGroupPayload,
    SourceGroupSchema,
    SourceListSection,
    SourceQuery,
)
from .service import (
    add_source,
    assign_source_group,
    create_source_group,
    delete_source_group,
    get_entries_view,
    get_read_states,
    get_source_groups,
    get_sources,
    group_entries_by_day,
    mark_entries_as_read,
    refresh_all,
    refresh_source,
    remove_source,
    rename_source_group,
    restore_source,
    star_source,
    unstar_source,
)

router = APIRouter(prefix="/api/feeds", tags=["Feeds"])


def _current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """当前用户：优先取 X-User-Id 请求头，否则使用默认用户。"""
    return (x_user_id or "").strip() or feeds_config.rss_default_user_id


def _bad_request(exc: RSSValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _build_scope(
    scope: ScopeName,
    source_id: Optional[str],
    group_id: Optional[str],
) -> EntryViewScope:
    return EntryViewScope(scope=scope, source_id=source_id, group_id=group_id or None)


@router.get(
    "/sources",
    response_model=list[FeedSourceSchema],
    summary="列出订阅源",
)
def list_sources_api(
    include_removed: bool = Query(default=False, description="是否包含已移除的订阅源"),
    only_starred: bool = Query(default=False, description="仅返回星标订阅源"),
    section: SourceListSection = Query(default="all", description="列表分区"),
    group_id: Optional[str] = Query(default=None, description="按分组筛选"),
    ungrouped: bool = Query(default=False, description="仅返回未分组的订阅源"),
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[FeedSourceSchema]:
    """按条件列出订阅源，按活跃度排序。"""
    values: dict = {
        "include_removed": include_removed,
        "only_starred": only_starred,
        "section": section,
    }
    if ungrouped:
        values["group_id"] = None
    elif group_id:
        values["group_id"] = group_id
    return get_sources(db, user_id, SourceQuery(**values))


@router.post(
    "/sources",
    response_model=FeedSourceSchema,
    status_code=status.HTTP_201_CREATED,
    summary="添加订阅源",
)
def add_source_api(
    payload: AddSourcePayload,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    try:
        return add_source(
            db, user_id, payload.route, payload.display_name, payload.group_id
        )
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.delete(
    "/sources/{source_id}",
    response_model=FeedSourceSchema,
    summary="移除订阅源（软删除）",
)
def remove_source_api(
    source_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    removed = remove_source(db, user_id, source_id)
    if removed is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="订阅源不存在。")
    return removed


@router.post(
    "/sources/{source_id}/restore",
    response_model=FeedSourceSchema,
    summary="恢复订阅源",
)
def restore_source_api(
    source_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    restored = restore_source(db, user_id, source_id)
    if restored is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="订阅源不存在。")
    return restored


@router.post(
    "/sources/{source_id}/star",
    response_model=FeedSourceSchema,
    summary="星标订阅源",
)
def star_source_api(
    source_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    try:
        return star_source(db, user_id, source_id)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.delete(
    "/sources/{source_id}/star",
    response_model=FeedSourceSchema,
    summary="取消星标",
)
def unstar_source_api(
    source_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    try:
        return unstar_source(db, user_id, source_id)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.put(
    "/sources/{source_id}/group",
    response_model=FeedSourceSchema,
    summary="调整订阅源分组",
)
def assign_source_group_api(
    source_id: str,
    payload: AssignGroupPayload,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> FeedSourceSchema:
    try:
        return assign_source_group(db, user_id, source_id, payload.group_id)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.post(
    "/sources/{source_id}/refresh",
    response_model=RefreshResult,
    summary="刷新订阅源",
    response_description="ok=false 表示没有可展示的缓存；stale=true 表示返回的是过期缓存",
)
def refresh_source_api(
    source_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> RefreshResult:
    return refresh_source(db, source_id, user_id=user_id)


@router.post(
    "/refresh",
    response_model=RefreshResult,
    summary="刷新全部订阅源",
)
def refresh_all_api(
    only_expired: bool = Query(default=False, description="仅刷新缓存已过期的订阅源"),
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> RefreshResult:
    return refresh_all(db, user_id, only_expired=only_expired)


@router.get(
    "/groups",
    response_model=list[SourceGroupSchema],
    summary="列出分组",
)
def list_groups_api(
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[SourceGroupSchema]:
    return get_source_groups(db, user_id)


@router.post(
    "/groups",
    response_model=SourceGroupSchema,
    status_code=status.HTTP_201_CREATED,
    summary="创建分组",
)
def create_group_api(
    payload: SourceGroupPayload,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> SourceGroupSchema:
    try:
        return create_source_group(db, user_id, payload.name)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.patch(
    "/groups/{group_id}",
    response_model=SourceGroupSchema,
    summary="重命名分组",
)
def rename_group_api(
    group_id: str,
    payload: SourceGroupPayload,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> SourceGroupSchema:
    try:
        return rename_source_group(db, user_id, group_id, payload.name)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc


@router.delete(
    "/groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="删除分组",
    response_description="分组内的订阅源回落为未分组",
)
def delete_group_api(
    group_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> Response:
    try:
        delete_source_group(db, user_id, group_id)
    except RSSValidationError as exc:
        raise _bad_request(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/entries",
    response_model=list[FeedEntrySchema],
    summary="按范围获取条目",
)
def list_entries_api(
    scope: ScopeName = Query(default="all-active", description="条目范围"),
    source_id: Optional[str] = Query(default=None, description="scope=source 时的订阅源"),
    group_id: Optional[str] = Query(
        default=None, description="scope=group 时的分组，留空表示未分组"
    ),
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[FeedEntrySchema]:
    return get_entries_view(db, user_id, _build_scope(scope, source_id, group_id))


@router.get(
    "/entries/by-day",
    response_model=list[DayBucketSchema],
    summary="按天分组获取条目",
)
def list_entries_by_day_api(
    scope: ScopeName = Query(default="all-active", description="条目范围"),
    source_id: Optional[str] = Query(default=None, description="scope=source 时的订阅源"),
    group_id: Optional[str] = Query(
        default=None, description="scope=group 时的分组，留空表示未分组"
    ),
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[DayBucketSchema]:
    entries = get_entries_view(db, user_id, _build_scope(scope, source_id, group_id))
    return [
        DayBucketSchema(
            key=bucket.key,
            type=bucket.type,
            day_start=bucket.day_start,
            entries=bucket.entries,
        )
        for bucket in group_entries_by_day(entries)
    ]


@router.get(
    "/read-states",
    response_model=list[ReadStateSchema],
    summary="列出阅读状态",
)
def list_read_states_api(
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[ReadStateSchema]:
    return get_read_states(db, user_id)


@router.post(
    "/read-states",
    response_model=list[ReadStateSchema],
    summary="批量标记已读",
    response_description="返回当前用户完整的阅读状态集合",
)
def mark_read_api(
    payload: MarkReadPayload,
    db: Session = Depends(get_db),
    user_id: str = Depends(_current_user_id),
) -> list[ReadStateSchema]:
    return mark_entries_as_read(db, user_id, payload.entry_ids)
