# -*- coding: utf-8 -*-
"""
订阅模块入口

公开接口：
- `feeds_config`
- `router`
- `get_sources`
- `add_source`
- `refresh_source`
- `refresh_all`
- `get_entries_view`
- `mark_entries_as_read`

内部方法：
- 无

文件功能：
- 暴露订阅模块的主要能力，供 FastAPI 应用加载并在其他模块复用服务层接口。
"""

from typing import Any

from .config import feeds_config

__all__ = [
    "feeds_config",
    "router",
    "get_sources",
    "add_source",
    "refresh_source",
    "refresh_all",
    "get_entries_view",
    "mark_entries_as_read",
]


def __getattr__(name: str) -> Any:
    """按需加载子模块，避免导入时出现循环依赖。"""
    if name == "router":
        from .router import router as value
    elif name in {
        "get_sources",
        "add_source",
        "refresh_source",
        "refresh_all",
        "get_entries_view",
        "mark_entries_as_read",
    }:
        from . import service as service_module

        value = getattr(service_module, name)
    else:
        raise AttributeError(f"module 'src.server.feeds' has no attribute '{name}'")
    return value


def __dir__() -> list[str]:
    return sorted(__all__)
