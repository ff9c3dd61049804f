# -*- coding: utf-8 -*-
"""
DAO 基类

公开接口：
- `BaseDAO`

文件功能：
- 为各模块 DAO 提供统一的会话持有方式，以及提交/回滚一体的事务上下文。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


class BaseDAO:
    """DAO 基类"""

    def __init__(self, db_session: Session) -> None:
        self.db_session = db_session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """在同一事务中执行多条写操作，成功提交，异常时回滚并继续抛出。"""
        try:
            yield self.db_session
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise
