# -*- coding: utf-8 -*-
"""
数据库基础设施

公开接口：
- `Base`
- `engine`
- `SessionLocal`
- `get_db`
- `init_db`
- `database_config`

文件功能：
- 提供全局 SQLAlchemy 声明基类、引擎与会话工厂，供各业务模块的模型与 DAO 复用。
"""

from __future__ import annotations

from typing import Iterator

from pydantic import Field
from pydantic_settings import BaseSettings
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class DatabaseConfig(BaseSettings):
    """数据库配置"""

    database_url: str = Field(
        default="sqlite:///./feeds.db",
        title="数据库连接地址",
        description="SQLAlchemy 使用的数据库 URL",
    )


database_config = DatabaseConfig()


class Base(DeclarativeBase):
    """所有 ORM 模型的声明基类"""


def build_engine(url: str) -> Engine:
    """根据连接地址创建引擎；SQLite 需要允许跨线程使用连接。"""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(database_config.database_url)
SessionLocal = sessionmaker(bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """创建全部数据表。"""
    # 导入模型以便注册到元数据
    from src.server.feeds import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """FastAPI 依赖：为每个请求提供独立的数据库会话。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
