"""
app.providers.omdb
~~~~~~~~~~~~~~~~~~

OMDb 影片数据源 —— 只负责请求拼装与响应解析。

一页搜索结果最多 10 条，拿到 IMDb ID 后并发拉取详情；
去重、节奏控制和会话状态都属于 ``MovieStreamer``，不在这里处理。
"""
from __future__ import annotations

import asyncio
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import MovieProviderError
from app.core.logging import get_logger
from app.providers.base import MoviesPage
from app.providers.client import create_omdb_client
from app.schemas.movies import MovieData, RoomFilters

logger = get_logger(__name__)

# OMDb 搜索接口固定每页 10 条
_PAGE_SIZE: int = 10
_DEFAULT_SEARCH_TERM: str = "movie"


def _clean(value: Any) -> str:
    """OMDb 用 ``"N/A"`` 表示缺失字段，统一转为空字符串。"""
    if value is None or value == "N/A":
        return ""
    return str(value)


def _year_in_range(year: str, year_from: int, year_to: int) -> bool:
    """判断影片年份是否落在区间内。``2001–2005`` 取起始年，解析失败时保留。"""
    try:
        start = int(year.replace("–", "-").split("-")[0].strip())
    except ValueError:
        return True
    return year_from <= start <= year_to


class OmdbMovieProvider:
    """基于 OMDb 搜索 + 详情接口的 ``MovieProvider`` 实现。

    Attributes:
        api_key: OMDb API Key。
    """

    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """初始化数据源。

        Args:
            api_key: OMDb API Key，默认读取 ``settings.OMDB_API_KEY``。
            client: 可选的 ``httpx.AsyncClient``（用于测试注入 mock transport）。
        """
        self.api_key: str = api_key or settings.OMDB_API_KEY
        self._client: httpx.AsyncClient = client or create_omdb_client()

    async def fetch_movies_by_page(self, filters: RoomFilters, page: int) -> MoviesPage:
        """按筛选条件拉取一页影片。

        Args:
            filters: 房间当前的筛选条件。
            page: 从 1 开始的页码。

        Returns:
            本页影片及是否还有下一页。

        Raises:
            MovieProviderError: 网络异常、响应无法解析或 OMDb 返回错误。
        """
        params: dict[str, Any] = {
            "apikey": self.api_key,
            "s": filters.genre or _DEFAULT_SEARCH_TERM,
            "type": "movie",
            "page": page,
        }
        if filters.year_from is not None:
            params["y"] = filters.year_from

        payload = await self._get_json(params)
        if payload.get("Response") != "True":
            error = payload.get("Error") or "Unknown error"
            raise MovieProviderError(f"OMDb error: {error}")

        try:
            total = int(payload.get("totalResults") or 0)
        except ValueError:
            total = 0
        has_more: bool = page * _PAGE_SIZE < total

        imdb_ids = [
            result["imdbID"]
            for result in payload.get("Search") or []
            if result.get("Type") == "movie" and result.get("imdbID")
        ]
        details = await asyncio.gather(*(self._fetch_movie_details(i) for i in imdb_ids))
        movies = [movie for movie in details if movie is not None]

        if filters.year_from is not None and filters.year_to is not None:
            movies = [
                m for m in movies
                if _year_in_range(m.year, filters.year_from, filters.year_to)
            ]

        logger.info("OMDb 第 %d 页返回 %d 部影片 | has_more=%s", page, len(movies), has_more)
        return MoviesPage(movies=movies, has_more=has_more)

    async def _fetch_movie_details(self, imdb_id: str) -> MovieData | None:
        """拉取单部影片详情，失败时返回 None（不影响同页其他影片）。"""
        try:
            detail = await self._get_json({"apikey": self.api_key, "i": imdb_id, "plot": "short"})
        except MovieProviderError as e:
            logger.warning("影片详情获取失败 | imdb_id=%s | %s", imdb_id, e)
            return None

        if detail.get("Response") != "True":
            return None

        return MovieData(
            title=_clean(detail.get("Title")),
            year=_clean(detail.get("Year")),
            poster=_clean(detail.get("Poster")),
            plot=_clean(detail.get("Plot")),
            genre=_clean(detail.get("Genre")),
            imdb_rating=_clean(detail.get("imdbRating")),
            imdb_id=detail.get("imdbID") or imdb_id,
        )

    async def _get_json(self, params: dict[str, Any]) -> dict[str, Any]:
        """发起 GET 请求并解析 JSON，所有失败统一转为 ``MovieProviderError``。"""
        try:
            response = await self._client.get("/", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise MovieProviderError(f"OMDb request failed: {e}") from e
        except ValueError as e:
            raise MovieProviderError(f"OMDb returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MovieProviderError("OMDb returned an unexpected payload")
        return payload

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池。"""
        await self._client.aclose()
