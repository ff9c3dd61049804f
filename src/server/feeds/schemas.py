# -*- coding: utf-8 -*-
"""
订阅模块 Pydantic 模型

- 公开接口：
    - `FeedSourceSchema`
    - `SourceGroupSchema`
    - `FeedEntrySchema`
    - `ReadStateSchema`
    - `RawEntry`
    - `RoutedEntry`
    - `RefreshResult`
    - `SourceQuery`
    - `EntryViewScope`
    - `AddSourcePayload`
    - `SourceGroupPayload`
    - `AssignGroupPayload`
    - `MarkReadPayload`
    - `DayBucketSchema`

内部方法：
- 无

文件功能：
- 定义服务层与 API 层之间传递的数据模型，包括抓取适配器的统一条目格式与刷新结果。
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SourceListSection = Literal["all", "favorites", "subscriptions"]
ScopeName = Literal["all-active", "source", "group", "starred"]
DayBucketType = Literal["today", "yesterday", "date"]


class FeedSourceSchema(BaseModel):
    """订阅源信息"""

    id: str
    user_id: str
    route: str
    display_name: str
    is_preset: bool = False
    enabled: bool = True
    group_id: Optional[str] = None
    starred_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    last_entry_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SourceGroupSchema(BaseModel):
    """订阅源分组"""

    id: str
    user_id: str
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FeedEntrySchema(BaseModel):
    """缓存条目"""

    id: str
    source_id: str
    source_name: Optional[str] = None
    route: str
    guid_or_link: str
    title: str
    summary: str
    url: str
    thumbnail_url: Optional[str] = None
    published_at: datetime
    cached_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReadStateSchema(BaseModel):
    """阅读状态"""

    user_id: str
    entry_id: str
    read_at: datetime

    model_config = {"from_attributes": True}


class RawEntry(BaseModel):
    """抓取适配器返回的统一条目格式，屏蔽 RSS 与 Atom 的差异"""

    guid_or_link: str
    title: str
    summary: str
    url: str
    thumbnail_url: Optional[str] = None
    published_at: datetime


class RoutedEntry(RawEntry):
    """附带所属路由的条目，用于生成去重键"""

    route: str


class RefreshResult(BaseModel):
    """刷新结果；`stale` 与 `ok=False` 是需要调用方显式分支的结果，而不是异常"""

    ok: bool
    stale: bool = False
    last_success_at: Optional[datetime] = None
    error: Optional[str] = None


class SourceQuery(BaseModel):
    """订阅源列表筛选条件

    `group_id` 三态：未设置表示不过滤；显式为 None 表示仅未分组；否则为指定分组。
    """

    include_removed: bool = False
    only_starred: bool = False
    group_id: Optional[str] = None
    section: SourceListSection = "all"

    @property
    def filters_group(self) -> bool:
        return "group_id" in self.model_fields_set


class EntryViewScope(BaseModel):
    """条目视图范围"""

    scope: ScopeName = "all-active"
    source_id: Optional[str] = None
    group_id: Optional[str] = None


class DayBucketSchema(BaseModel):
    """按天分组的条目"""

    key: str
    type: DayBucketType
    day_start: datetime
    entries: List[FeedEntrySchema]


class AddSourcePayload(BaseModel):
    """添加订阅源的请求体"""

    route: str = Field(..., max_length=512, description="本地路由或 RSS/Atom 链接")
    display_name: Optional[str] = Field(
        default=None, max_length=256, description="显示名称，留空时自动推导"
    )
    group_id: Optional[str] = Field(default=None, description="所属分组")


class SourceGroupPayload(BaseModel):
    """创建或重命名分组的请求体"""

    name: str = Field(..., max_length=128, description="分组名称")


class AssignGroupPayload(BaseModel):
    """调整订阅源分组的请求体，`group_id` 为空表示取消分组"""

    group_id: Optional[str] = Field(default=None, description="目标分组")


class MarkReadPayload(BaseModel):
    """批量标记已读的请求体"""

    entry_ids: List[str] = Field(default_factory=list, description="条目 ID 列表")
