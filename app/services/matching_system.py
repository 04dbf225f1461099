"""
app.services.matching_system
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

匹配业务服务 —— 在 FastAPI lifespan 中创建并挂载到 ``app.state``。

持有房间注册表、影片数据源和各房间的推流任务句柄：

- ``create_room()`` / ``join_room()`` / ``update_filters()`` → 房间管理
- ``start_matching()`` → 开始会话并启动推流任务
- ``shutdown()``       → 进程退出时优雅停止所有推流任务
"""
from __future__ import annotations

import asyncio

from app.core.logging import get_logger
from app.providers.base import MovieProvider
from app.schemas.movies import RoomFilters
from app.schemas.rooms import RoomInfo, RoomState
from app.services.movie_streamer import MovieStreamer
from app.services.registry import RoomRegistry
from app.services.room import Room

logger = get_logger(__name__)


class MatchingSystem:
    """匹配系统（每个进程一个实例）。

    Attributes:
        provider: 影片数据源。
        registry: 房间注册表。
    """

    def __init__(
        self,
        provider: MovieProvider,
        registry: RoomRegistry | None = None,
        **streamer_options: float,
    ) -> None:
        """初始化匹配系统。

        Args:
            provider: 影片数据源实现。
            registry: 可选的房间注册表（测试时注入）。
            **streamer_options: 透传给 ``MovieStreamer`` 的节奏参数
                （``movie_delay`` / ``page_delay`` / ``empty_page_delay``）。
        """
        self.provider = provider
        self.registry: RoomRegistry = registry or RoomRegistry()
        self._streamer_options = streamer_options
        self._streamers: dict[str, asyncio.Task[None]] = {}
        # 串行化同一房间的 start_matching，任务替换期间不能被并发的 start 插入
        self._start_locks: dict[str, asyncio.Lock] = {}

    # ── 房间管理 ──────────────────────────────────────────────────────

    def create_room(self, filters: RoomFilters, host_id: str) -> Room:
        """创建房间，房主自动成为第一个参与者。"""
        return self.registry.create(filters=filters, host_id=host_id)

    async def room_info(self, room_id: str) -> RoomInfo:
        async with self.registry.locked(room_id) as room:
            return room.info()

    async def room_state(self, room_id: str) -> RoomState:
        """房间完整状态。服务端不持有影片目录，点赞列表按空目录解析。"""
        async with self.registry.locked(room_id) as room:
            return room.state()

    async def join_room(self, room_id: str, participant_id: str) -> tuple[bool, RoomInfo]:
        """加入房间，返回是否为新加入以及加入后的房间摘要。"""
        async with self.registry.locked(room_id) as room:
            joined = room.add_participant(participant_id)
            info = room.info()
        if joined:
            logger.info("参与者加入房间 | room=%s | participant=%s", room_id, participant_id)
        return joined, info

    async def update_filters(self, room_id: str, filters: RoomFilters) -> None:
        async with self.registry.locked(room_id) as room:
            room.update_filters(filters)
        logger.info("房间筛选条件已更新 | room=%s | filters=%s", room_id, filters.model_dump())

    # ── 会话 / 推流 ───────────────────────────────────────────────────

    async def start_matching(self, room_id: str) -> None:
        """开始一轮新会话并启动推流任务。

        上一轮的推流任务如果还在运行，会先被取消并等待结束，
        保证同一房间任何时刻只有一个拉取在进行。

        Raises:
            RoomNotFoundError: 房间不存在。
        """
        self.registry.require(room_id)
        start_lock = self._start_locks.setdefault(room_id, asyncio.Lock())
        async with start_lock:
            async with self.registry.locked(room_id) as room:
                room.start()

            previous = self._streamers.pop(room_id, None)
            if previous is not None and not previous.done():
                previous.cancel()
                await asyncio.gather(previous, return_exceptions=True)
                logger.info("已替换仍在运行的推流任务 | room=%s", room_id)

            streamer = MovieStreamer(
                self.registry, self.provider, room_id, **self._streamer_options,
            )
            task = asyncio.create_task(streamer.run(), name=f"movie-streamer-{room_id}")
            self._streamers[room_id] = task
            task.add_done_callback(lambda t: self._on_streamer_done(room_id, t))

    def _on_streamer_done(self, room_id: str, task: asyncio.Task[None]) -> None:
        if self._streamers.get(room_id) is task:
            del self._streamers[room_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("推流任务异常退出 | room=%s", room_id, exc_info=exc)

    def is_streaming(self, room_id: str) -> bool:
        """该房间当前是否有推流任务在运行。"""
        task = self._streamers.get(room_id)
        return task is not None and not task.done()

    async def wait_for_streamers(self, timeout: float | None = None) -> None:
        """等待当前所有推流任务自然结束（主要用于测试）。"""
        tasks = list(self._streamers.values())
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """优雅停机：标记所有房间为非 active，等待推流任务退出，超时则取消。"""
        for room in self.registry.rooms():
            async with self.registry.locked(room.id):
                room.is_active = False

        tasks = list(self._streamers.values())
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        self._streamers.clear()

        for room in self.registry.rooms():
            room.broadcaster.close()

        logger.info("匹配系统已关闭 | rooms=%d | streamers=%d", len(self.registry), len(tasks))
