"""
app.api.rooms
~~~~~~~~~~~~~

匹配房间 REST 接口 —— 创建、加入、修改筛选条件、开始匹配。

路由前缀 ``/api``，房间不存在时统一由 ``RoomNotFoundError`` 处理器返回 404。

端点:
  - ``POST /rooms``                    → 创建房间
  - ``GET  /rooms/{room_id}``          → 房间摘要
  - ``GET  /rooms/{room_id}/state``    → 房间完整状态（含点赞汇总）
  - ``POST /rooms/{room_id}/join``     → 加入房间
  - ``PUT  /rooms/{room_id}/filters``  → 替换筛选条件
  - ``POST /rooms/{room_id}/start``    → 开始匹配并启动推流
"""
from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import get_matching_system
from app.core.config import settings
from app.core.logging import get_logger
from app.core.rate_limit import limiter
from app.schemas.movies import RoomFilters
from app.schemas.rooms import (
    CreateRoomRequest,
    CreateRoomResponse,
    JoinRoomRequest,
    JoinRoomResponse,
    RoomInfo,
    RoomState,
)
from app.services.matching_system import MatchingSystem

logger = get_logger(__name__)

router: APIRouter = APIRouter()


# ── 房间管理端点 ──────────────────────────────────────────────────────

@router.post("/rooms", summary="创建房间", response_model=CreateRoomResponse)
@limiter.limit("5/second")
async def create_room(
    request: Request,
    create_request: CreateRoomRequest,
    system: MatchingSystem = Depends(get_matching_system),
):
    """创建一个新的匹配房间，房主自动成为第一个参与者。

    Args:
        request: FastAPI Request 对象（用于限流判断）。
        create_request: 房主 ID 与初始筛选条件。
    """
    room = system.create_room(filters=create_request.filters, host_id=create_request.host_id)
    return CreateRoomResponse(
        room_id=room.id,
        join_url=f"{settings.JOIN_URL_PREFIX}/{room.id}",
    )


@router.get("/rooms/{room_id}", summary="获取房间摘要", response_model=RoomInfo)
@limiter.limit("10/second")
async def get_room(
    request: Request,
    room_id: str,
    system: MatchingSystem = Depends(get_matching_system),
):
    """返回房间筛选条件、参与人数与是否正在匹配。"""
    return await system.room_info(room_id)


@router.get("/rooms/{room_id}/state", summary="获取房间完整状态", response_model=RoomState)
@limiter.limit("10/second")
async def get_room_state(
    request: Request,
    room_id: str,
    system: MatchingSystem = Depends(get_matching_system),
):
    """返回房间完整状态。

    服务端不缓存影片数据，这里的 ``all_likes`` / ``common_likes``
    按空目录解析，影片列表始终为空；完整汇总请通过 WebSocket 获取。
    """
    return await system.room_state(room_id)


@router.post("/rooms/{room_id}/join", summary="加入房间", response_model=JoinRoomResponse)
@limiter.limit("5/second")
async def join_room(
    request: Request,
    room_id: str,
    join_request: JoinRoomRequest,
    system: MatchingSystem = Depends(get_matching_system),
):
    """加入房间。已在房间内时返回 ``success=false``，不视为错误。"""
    success, info = await system.join_room(room_id, join_request.participant_id)
    return JoinRoomResponse(success=success, room=info)


@router.put("/rooms/{room_id}/filters", summary="更新筛选条件")
@limiter.limit("5/second")
async def update_filters(
    request: Request,
    room_id: str,
    filters: RoomFilters,
    system: MatchingSystem = Depends(get_matching_system),
):
    """整体替换房间筛选条件，推流任务在下一次翻页时生效。"""
    await system.update_filters(room_id, filters)
    return Response(status_code=200)


# ── 匹配会话端点 ──────────────────────────────────────────────────────

@router.post("/rooms/{room_id}/start", summary="开始匹配")
@limiter.limit("2/second")
async def start_matching(
    request: Request,
    room_id: str,
    system: MatchingSystem = Depends(get_matching_system),
):
    """开始新一轮匹配：清空点赞与已推送记录，并在后台启动影片推流。"""
    await system.start_matching(room_id)
    return Response(status_code=200)
