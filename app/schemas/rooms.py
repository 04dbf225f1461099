"""
app.schemas.rooms
~~~~~~~~~~~~~~~~~

房间相关的 Pydantic 请求/响应模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.movies import MovieData, ParticipantLikes, RoomFilters


class CreateRoomRequest(BaseModel):
    """创建房间请求体。"""

    host_id: str = Field(..., min_length=1, description="房主的参与者 ID")
    filters: RoomFilters = Field(default_factory=RoomFilters, description="初始筛选条件")


class CreateRoomResponse(BaseModel):
    """创建房间响应数据。"""

    room_id: str = Field(..., description="房间唯一标识")
    join_url: str = Field(..., description="前端加入链接")


class JoinRoomRequest(BaseModel):
    """加入房间请求体。"""

    participant_id: str = Field(..., min_length=1, description="参与者 ID")


class RoomInfo(BaseModel):
    """房间摘要信息。"""

    id: str = Field(..., description="房间唯一标识")
    filters: RoomFilters
    participants_count: int = Field(..., description="当前参与人数")
    is_active: bool = Field(..., description="是否正在匹配")


class JoinRoomResponse(BaseModel):
    """加入房间响应数据。重复加入时 ``success`` 为 False。"""

    success: bool
    room: RoomInfo | None = None


class RoomState(BaseModel):
    """房间完整状态，包含点赞汇总。"""

    id: str
    filters: RoomFilters
    participants: list[str]
    is_active: bool
    host_id: str
    all_likes: list[ParticipantLikes]
    common_likes: list[MovieData]
