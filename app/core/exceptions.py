"""
app.core.exceptions
~~~~~~~~~~~~~~~~~~~

业务异常定义。HTTP 层把 ``RoomNotFoundError`` 映射为 404，
``MovieProviderError`` 只在推流任务内部处理，不会泄漏给客户端。
"""
from __future__ import annotations


class MatchingError(Exception):
    """匹配服务的异常基类。"""


class RoomNotFoundError(MatchingError):
    """房间不存在。"""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id


class MovieProviderError(MatchingError):
    """影片数据源调用失败（网络、解析或上游返回错误）。"""
