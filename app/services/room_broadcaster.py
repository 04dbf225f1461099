"""
app.services.room_broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间广播器 —— 每个房间一个发布/订阅通道。

每个 WebSocket 连接订阅后获得一个独立的有界队列；发布是同步的
（不会挂起），所以可以在持有房间锁时调用。没有回放缓冲：
订阅之前发布的消息，新订阅者永远收不到。
"""
from __future__ import annotations

import asyncio

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.messages import ServerMessage

logger = get_logger(__name__)


class Subscription:
    """单个订阅者的消息队列。

    队列满时丢弃最旧的消息；收到 ``None`` 表示通道已关闭。
    """

    def __init__(self, capacity: int) -> None:
        self._queue: asyncio.Queue[ServerMessage | None] = asyncio.Queue(maxsize=capacity)

    def offer(self, message: ServerMessage | None) -> None:
        """非阻塞入队，满了先丢最旧的一条。"""
        while self._queue.full():
            self._queue.get_nowait()
            logger.warning("订阅队列已满，丢弃最旧消息")
        self._queue.put_nowait(message)

    async def get(self) -> ServerMessage | None:
        """等待下一条消息；返回 None 表示广播通道已关闭。"""
        return await self._queue.get()


class RoomBroadcaster:
    """房间级发布/订阅通道。

    Attributes:
        capacity: 每个订阅者队列的容量。
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity: int = capacity or settings.BROADCAST_CAPACITY
        self._subscriptions: set[Subscription] = set()
        self._closed: bool = False

    def subscribe(self) -> Subscription:
        """新增一个订阅者。通道已关闭时返回的订阅会立即收到结束信号。"""
        subscription = Subscription(self.capacity)
        if self._closed:
            subscription.offer(None)
        else:
            self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """移除订阅者，重复调用无副作用。"""
        self._subscriptions.discard(subscription)

    def publish(self, message: ServerMessage) -> int:
        """向当前所有订阅者投递消息（尽力而为，至多一次）。

        Returns:
            收到该消息的订阅者数量。
        """
        if self._closed:
            return 0
        for subscription in self._subscriptions:
            subscription.offer(message)
        return len(self._subscriptions)

    def close(self) -> None:
        """关闭通道，通知所有订阅者结束。"""
        self._closed = True
        for subscription in self._subscriptions:
            subscription.offer(None)
        self._subscriptions.clear()

    @property
    def online_count(self) -> int:
        """当前订阅者（在线连接）数。"""
        return len(self._subscriptions)
