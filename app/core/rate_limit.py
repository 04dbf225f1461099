"""
app.core.rate_limit
~~~~~~~~~~~~~~~~~~~

HTTP 接口限流配置，基于 slowapi，按客户端 IP 计数。

测试环境可通过 ``RATE_LIMIT_ENABLED=false`` 关闭。
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)
