"""
app.providers.base
~~~~~~~~~~~~~~~~~~

影片数据源接口。推流任务只依赖 ``MovieProvider``，
具体实现（OMDb 或测试替身）在应用启动时注入。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from app.schemas.movies import MovieData, RoomFilters


@dataclass
class MoviesPage:
    """一页候选影片。

    Attributes:
        movies: 按数据源返回顺序排列的影片。
        has_more: 是否还有下一页。
    """

    movies: list[MovieData] = field(default_factory=list)
    has_more: bool = False


class MovieProvider(Protocol):
    """按筛选条件分页获取候选影片。

    失败时（网络、解析、上游报错）抛出 ``MovieProviderError``。
    """

    async def fetch_movies_by_page(self, filters: RoomFilters, page: int) -> MoviesPage:
        ...
