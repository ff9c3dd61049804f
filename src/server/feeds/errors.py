# -*- coding: utf-8 -*-
"""
订阅模块异常

公开接口：
- `FeedsError`
- `RSSValidationError`
- `FeedFetchError`
- `FeedParseError`

文件功能：
- 区分调用方输入错误（同步抛出）与抓取、解析失败（在刷新流程内部被吸收并转换为刷新结果）。
"""


class FeedsError(Exception):
    """订阅模块异常基类"""


class RSSValidationError(FeedsError, ValueError):
    """路由、名称格式非法，重复数据，或引用的实体不存在 / 不属于当前用户"""


class FeedFetchError(FeedsError):
    """HTTP 非 2xx 响应或传输层失败"""


class FeedParseError(FeedsError):
    """XML 格式错误，或既不是 RSS 也不是 Atom"""
