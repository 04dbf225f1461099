"""
app.api.room_ws
~~~~~~~~~~~~~~~

WebSocket 实时交互接口 —— 每个客户端连接一个网关。

提供 ``/api/rooms/{room_id}/ws`` 端点。每个连接同时运行两个协程：

- 转发协程：订阅房间广播，把每条消息序列化后推给客户端；
  顺带把推送过的影片记入本连接的影片目录。
- 接收协程：处理客户端的点赞 / 结束匹配 / 离开房间消息；
  二进制帧是 ``MovieData`` 数组，用于补全本连接的影片目录。

任一协程结束，另一个随之结束，订阅一定会被移除。
"""
from __future__ import annotations

import asyncio
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from app.api.deps import get_matching_system
from app.core.exceptions import RoomNotFoundError
from app.core.logging import get_logger, request_id_ctx_var
from app.schemas.messages import (
    EndMatching,
    ErrorMessage,
    LeaveRoom,
    LikesUpdated,
    MatchFound,
    MovieLiked,
    NewMovie,
    client_message_adapter,
    movie_list_adapter,
)
from app.services.matching import MovieCatalog, all_participant_likes, common_likes, is_match
from app.services.matching_system import MatchingSystem
from app.services.room_broadcaster import Subscription

logger = get_logger(__name__)

router: APIRouter = APIRouter()

# 接收协程结束后，留给转发协程把已排队消息发完的时间（秒）
_FLUSH_TIMEOUT: float = 1.0


async def _relay_outbound(
    websocket: WebSocket, subscription: Subscription, catalog: MovieCatalog,
) -> None:
    """把房间广播转发给客户端，直到通道关闭或发送失败。"""
    while True:
        message = await subscription.get()
        if message is None:
            return
        if isinstance(message, NewMovie):
            catalog.add(message.movie)
        try:
            await websocket.send_text(message.model_dump_json())
        except (WebSocketDisconnect, RuntimeError, OSError):
            logger.info("发送失败，客户端已断开")
            return


async def _on_movie_liked(
    system: MatchingSystem, room_id: str, message: MovieLiked, catalog: MovieCatalog,
) -> None:
    """记录点赞，广播最新汇总；达到匹配条件时额外广播 MatchFound（房间保持匹配中）。"""
    async with system.registry.locked(room_id) as room:
        room.record_like(message.participant_id, message.imdb_id)

        movies = list(catalog)
        all_likes = all_participant_likes(room, movies)
        common = common_likes(room, movies)
        room.broadcaster.publish(LikesUpdated(all_likes=all_likes, common_likes=common))

        if is_match(common, len(room.participants)):
            logger.info("匹配成功 | room=%s | 共同喜欢 %d 部", room_id, len(common))
            room.broadcaster.publish(MatchFound(all_likes=all_likes, common_likes=common))

    logger.debug(
        "参与者点赞 | room=%s | participant=%s | imdb_id=%s",
        room_id, message.participant_id, message.imdb_id,
    )


async def _handle_inbound(
    websocket: WebSocket, system: MatchingSystem, room_id: str, catalog: MovieCatalog,
) -> None:
    """处理客户端消息，直到断开、结束匹配或离开房间。无法解析的帧直接忽略。"""
    while True:
        try:
            frame = await websocket.receive()
        except (WebSocketDisconnect, RuntimeError):
            return
        if frame["type"] == "websocket.disconnect":
            return

        data = frame.get("bytes")
        if data is not None:
            try:
                catalog.extend(movie_list_adapter.validate_json(data))
            except ValidationError:
                logger.debug("忽略无法解析的影片目录帧 | room=%s", room_id)
            continue

        text = frame.get("text")
        if text is None:
            continue
        try:
            message = client_message_adapter.validate_json(text)
        except ValidationError:
            logger.debug("忽略无法解析的消息 | room=%s | %s", room_id, text[:200])
            continue

        if isinstance(message, MovieLiked):
            await _on_movie_liked(system, room_id, message, catalog)
        elif isinstance(message, EndMatching):
            logger.info("客户端请求结束匹配 | room=%s", room_id)
            async with system.registry.locked(room_id) as room:
                if room.is_active:
                    room.end_session(catalog)
            return
        elif isinstance(message, LeaveRoom):
            async with system.registry.locked(room_id) as room:
                left = room.remove_participant(message.participant_id)
                # 只剩房主时不可能再匹配，直接结束本轮
                host_alone = left and room.is_active and room.participants == [room.host_id]
                if host_alone:
                    room.end_session(catalog)
            if host_alone:
                logger.info("只剩房主，结束本轮匹配 | room=%s", room_id)
            if left:
                logger.info(
                    "参与者离开房间 | room=%s | participant=%s", room_id, message.participant_id,
                )
            return


@router.websocket("/rooms/{room_id}/ws")
async def room_websocket_endpoint(
    websocket: WebSocket,
    room_id: str,
    system: MatchingSystem = Depends(get_matching_system),
) -> None:
    """房间 WebSocket 端点。

    房间不存在时发送 ``Error`` 消息后以 1008 关闭连接。

    Args:
        websocket: FastAPI WebSocket 连接对象。
        room_id: 房间唯一标识。
    """
    ws_req_id = f"ws-{uuid.uuid4().hex[:8]}"
    token = request_id_ctx_var.set(ws_req_id)

    try:
        room = system.registry.get(room_id)
        if room is None:
            logger.error("WebSocket 连接的房间不存在 | room=%s", room_id)
            await websocket.accept()
            await websocket.send_text(ErrorMessage(message="Room not found").model_dump_json())
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        # 先订阅再握手，握手完成后发布的消息都能收到
        subscription = room.broadcaster.subscribe()
        catalog = MovieCatalog()
        relay: asyncio.Task[None] | None = None
        inbound: asyncio.Task[None] | None = None
        try:
            await websocket.accept()
            logger.info(
                "客户端进入房间 | room=%s | 在线: %d", room_id, room.broadcaster.online_count,
            )
            relay = asyncio.create_task(_relay_outbound(websocket, subscription, catalog))
            inbound = asyncio.create_task(_handle_inbound(websocket, system, room_id, catalog))
            done, _ = await asyncio.wait({relay, inbound}, return_when=asyncio.FIRST_COMPLETED)
            if inbound in done and not relay.done():
                # 停止订阅，让转发协程把已排队的消息（如 MatchingEnded）发完再退出
                room.broadcaster.unsubscribe(subscription)
                subscription.offer(None)
                await asyncio.wait({relay}, timeout=_FLUSH_TIMEOUT)
        finally:
            room.broadcaster.unsubscribe(subscription)
            tasks = [task for task in (relay, inbound) if task is not None]
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)

        for result in results:
            if isinstance(result, RoomNotFoundError):
                logger.warning("房间已不存在，关闭连接 | room=%s", room_id)
            elif isinstance(result, Exception):
                logger.error("WebSocket 处理异常: %s | room=%s", result, room_id, exc_info=result)

        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except (WebSocketDisconnect, RuntimeError, OSError):
                pass
        logger.info("客户端退出房间 | room=%s | 在线: %d", room_id, room.broadcaster.online_count)
    finally:
        request_id_ctx_var.reset(token)
