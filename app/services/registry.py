"""
app.services.registry
~~~~~~~~~~~~~~~~~~~~~

房间注册表 —— 进程内唯一的共享可变结构。

每个房间配一把独立的 ``asyncio.Lock``，不同房间互不阻塞。
读-改-写房间状态都应在 ``locked()`` 内完成，且锁内不能有网络调用或 sleep。
房间在进程生命周期内不会被删除。
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.core.exceptions import RoomNotFoundError
from app.core.logging import get_logger
from app.schemas.movies import RoomFilters
from app.services.room import Room

logger = get_logger(__name__)


class RoomRegistry:
    """房间 ID → ``Room`` 的映射，附带逐房间锁。"""

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def create(self, filters: RoomFilters, host_id: str) -> Room:
        """创建并登记一个新房间。"""
        room = Room.create(filters=filters, host_id=host_id)
        self.add(room)
        return room

    def add(self, room: Room) -> None:
        """登记一个已构造好的房间，ID 重复时报错。"""
        if room.id in self._rooms:
            raise ValueError(f"Room {room.id} already registered")
        self._locks[room.id] = asyncio.Lock()
        self._rooms[room.id] = room
        logger.info("房间已创建 | room=%s | host=%s", room.id, room.host_id)

    def get(self, room_id: str) -> Room | None:
        """按 ID 获取房间，不存在时返回 None。"""
        return self._rooms.get(room_id)

    def require(self, room_id: str) -> Room:
        """按 ID 获取房间，不存在时抛出 ``RoomNotFoundError``。"""
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    @asynccontextmanager
    async def locked(self, room_id: str) -> AsyncIterator[Room]:
        """获取房间锁并返回房间。

        Raises:
            RoomNotFoundError: 房间不存在。
        """
        room = self.require(room_id)
        async with self._locks[room_id]:
            yield room

    def rooms(self) -> list[Room]:
        """所有房间的快照列表。"""
        return list(self._rooms.values())

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
