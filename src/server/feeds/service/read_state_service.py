# -*- coding: utf-8 -*-
"""
阅读状态服务

功能：
- 按用户批量标记条目已读；重复标记只会刷新阅读时间

公开接口：
- `get_read_states`
- `mark_entries_as_read`
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..dao import ReadStateDAO
from ..schemas import ReadStateSchema
from .utils import utcnow


def get_read_states(db: Session, user_id: str) -> List[ReadStateSchema]:
    return [
        ReadStateSchema.model_validate(state)
        for state in ReadStateDAO(db).list_by_user(user_id)
    ]


def mark_entries_as_read(
    db: Session,
    user_id: str,
    entry_ids: Sequence[str],
    *,
    now: Optional[datetime] = None,
) -> List[ReadStateSchema]:
    """标记已读并返回该用户当前完整的阅读状态集合。"""
    unique_ids = list(dict.fromkeys(entry_id for entry_id in entry_ids if entry_id))
    if unique_ids:
        ReadStateDAO(db).upsert_many(user_id, unique_ids, now or utcnow())
    return get_read_states(db, user_id)
