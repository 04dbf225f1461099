"""
app.providers.client
~~~~~~~~~~~~~~~~~~~~

OMDb HTTP 客户端工厂 —— 全局共享的 ``httpx.AsyncClient`` 创建入口。

连接池在应用生命周期内复用，由 lifespan 关闭时经 ``OmdbMovieProvider.aclose()`` 释放。
"""
from __future__ import annotations

import httpx

from app.core.config import settings


def create_omdb_client() -> httpx.AsyncClient:
    """创建指向 OMDb 的异步 HTTP 客户端。

    Returns:
        配置好 base_url 与超时的 ``httpx.AsyncClient``。
    """
    return httpx.AsyncClient(
        base_url=settings.OMDB_BASE_URL,
        timeout=settings.OMDB_TIMEOUT,
    )
