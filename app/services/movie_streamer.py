"""
app.services.movie_streamer
~~~~~~~~~~~~~~~~~~~~~~~~~~~

影片推流任务 —— 每个进行中的房间会话一个后台任务。

逐页向数据源拉取影片，过滤本轮已推送过的，再按固定间隔逐部广播，
营造"直播"式的节奏。停止条件:
  - 房间不再 active（唯一的取消信号，最迟一轮循环内生效）
  - 房间不存在
  - 数据源没有更多影片（只停推流，房间保持 active，大家还能继续投票）
  - 数据源报错（结束本轮会话，不重试）

每次翻页都重新读取房间当前的筛选条件，``update_filters`` 在下一页生效。
"""
from __future__ import annotations

import asyncio

from app.core.config import settings
from app.core.exceptions import MovieProviderError, RoomNotFoundError
from app.core.logging import get_logger, request_id_ctx_var
from app.providers.base import MovieProvider
from app.schemas.messages import StreamingEnded
from app.schemas.movies import MovieData
from app.services.registry import RoomRegistry
from app.services.room import Room

logger = get_logger(__name__)


class MovieStreamer:
    """单个房间的推流协程。

    Attributes:
        room_id: 目标房间 ID。
        movie_delay: 两部影片之间的间隔（秒）。
        page_delay: 两次翻页之间的间隔（秒）。
        empty_page_delay: 整页都是重复影片时，尝试下一页前的等待（秒）。
    """

    def __init__(
        self,
        registry: RoomRegistry,
        provider: MovieProvider,
        room_id: str,
        movie_delay: float | None = None,
        page_delay: float | None = None,
        empty_page_delay: float | None = None,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.room_id = room_id
        self.movie_delay: float = settings.STREAM_MOVIE_DELAY if movie_delay is None else movie_delay
        self.page_delay: float = settings.STREAM_PAGE_DELAY if page_delay is None else page_delay
        self.empty_page_delay: float = (
            settings.STREAM_EMPTY_PAGE_DELAY if empty_page_delay is None else empty_page_delay
        )

    async def run(self) -> None:
        """任务入口。房间消失视为正常停止。"""
        token = request_id_ctx_var.set(f"stream-{self.room_id[:8]}")
        try:
            await self._stream()
        except RoomNotFoundError:
            logger.warning("房间不存在，停止推流 | room=%s", self.room_id)
        finally:
            request_id_ctx_var.reset(token)

    async def _stream(self) -> None:
        while True:
            async with self.registry.locked(self.room_id) as room:
                if not room.is_active:
                    logger.info("房间已不在匹配中，停止推流 | room=%s", self.room_id)
                    return
                page = room.current_page
                filters = room.filters

            try:
                result = await self.provider.fetch_movies_by_page(filters, page)
            except MovieProviderError as e:
                logger.error(
                    "影片拉取失败，结束本轮匹配 | room=%s | page=%d | %s",
                    self.room_id, page, e,
                )
                async with self.registry.locked(self.room_id) as room:
                    if room.is_active:
                        room.end_session()
                return

            async with self.registry.locked(self.room_id) as room:
                if not room.is_active:
                    logger.info("拉取期间房间已结束，丢弃本页 | room=%s", self.room_id)
                    return
                new_movies = self._claim_unsent(room, result.movies)
                room.current_page += 1

            if not new_movies and not result.has_more:
                logger.info("所有页面已拉完，停止推流（房间保持匹配中）| room=%s", self.room_id)
                await self._announce_streaming_ended()
                return

            if not new_movies:
                logger.info("第 %d 页没有新影片，尝试下一页 | room=%s", page, self.room_id)
                await asyncio.sleep(self.empty_page_delay)
                continue

            logger.info(
                "第 %d 页拉到 %d 部新影片 | room=%s | has_more=%s",
                page, len(new_movies), self.room_id, result.has_more,
            )
            await self._deliver(new_movies)

            if not result.has_more:
                logger.info("没有更多页面，停止推流（房间保持匹配中）| room=%s", self.room_id)
                await self._announce_streaming_ended()
                return

            await asyncio.sleep(self.page_delay)

    @staticmethod
    def _claim_unsent(room: Room, movies: list[MovieData]) -> list[MovieData]:
        """过滤本轮已推送过的影片，并把剩下的登记为已推送。调用方须持有房间锁。"""
        fresh: list[MovieData] = []
        for movie in movies:
            if movie.imdb_id in room.sent_movie_ids:
                continue
            room.sent_movie_ids.add(movie.imdb_id)
            fresh.append(movie)
        return fresh

    async def _deliver(self, movies: list[MovieData]) -> None:
        """按数据源返回顺序逐部推送，每部之前确认房间仍在匹配中。"""
        for movie in movies:
            async with self.registry.locked(self.room_id) as room:
                if not room.is_active:
                    logger.info("房间已结束，中断本页推送 | room=%s", self.room_id)
                    return
                room.broadcast_movie(movie)
            await asyncio.sleep(self.movie_delay)

    async def _announce_streaming_ended(self) -> None:
        async with self.registry.locked(self.room_id) as room:
            room.broadcaster.publish(StreamingEnded())
