"""
app.services.room
~~~~~~~~~~~~~~~~~

匹配房间领域模型 —— 封装成员、筛选条件、点赞账本、推流进度和广播通道。

所有修改方法都是同步的，调用方必须持有 ``RoomRegistry.locked(room_id)``
返回的房间锁；广播发布不会挂起，因此可以在锁内调用。
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable

from app.core.logging import get_logger
from app.schemas.messages import (
    MatchingEnded,
    MatchingStarted,
    NewMovie,
    ParticipantJoined,
    ParticipantLeft,
)
from app.schemas.movies import MovieData, RoomFilters
from app.schemas.rooms import RoomInfo, RoomState
from app.services.matching import all_participant_likes, common_likes
from app.services.room_broadcaster import RoomBroadcaster

logger = get_logger(__name__)


class Room:
    """一个匹配房间。

    Attributes:
        id: 房间唯一标识（创建时生成，不可变）。
        filters: 当前筛选条件，下一次翻页拉取时生效。
        participants: 参与者 ID，按加入顺序排列且不重复。
        host_id: 房主 ID（不可变）。
        is_active: 是否处于匹配会话中。
        current_page: 下一次要拉取的页码（从 1 开始，只增不减）。
        sent_movie_ids: 本次会话已推送过的影片 ID。
        participant_likes: 参与者 ID → 点赞的影片 ID（有序、不重复）。
        broadcaster: 本房间的广播通道。
    """

    def __init__(
        self,
        filters: RoomFilters,
        host_id: str,
        room_id: str | None = None,
        broadcaster: RoomBroadcaster | None = None,
    ) -> None:
        self.id: str = room_id or str(uuid.uuid4())
        self.filters: RoomFilters = filters
        self.host_id: str = host_id
        self.participants: list[str] = [host_id]
        self.is_active: bool = False
        self.current_page: int = 1
        self.sent_movie_ids: set[str] = set()
        self.participant_likes: dict[str, list[str]] = {host_id: []}
        self.broadcaster: RoomBroadcaster = broadcaster or RoomBroadcaster()

    @classmethod
    def create(cls, filters: RoomFilters, host_id: str) -> Room:
        """创建一个未开始的新房间，房主是唯一的参与者。"""
        return cls(filters=filters, host_id=host_id)

    # ── 成员 ──────────────────────────────────────────────────────────

    def add_participant(self, participant_id: str) -> bool:
        """加入房间。已在房间内时不做任何事并返回 False。"""
        if participant_id in self.participant_likes:
            return False

        self.participants.append(participant_id)
        self.participant_likes[participant_id] = []
        self.broadcaster.publish(ParticipantJoined(participant_id=participant_id))
        return True

    def remove_participant(self, participant_id: str) -> bool:
        """离开房间，连同其点赞记录一起移除。不在房间内时返回 False。"""
        if participant_id not in self.participant_likes:
            return False

        self.participants.remove(participant_id)
        del self.participant_likes[participant_id]
        self.broadcaster.publish(ParticipantLeft(participant_id=participant_id))
        return True

    # ── 会话 ──────────────────────────────────────────────────────────

    def start(self) -> None:
        """开始一轮新会话：清空点赞和已推送记录，保留成员、筛选条件与页码。"""
        self.is_active = True
        for likes in self.participant_likes.values():
            likes.clear()
        self.sent_movie_ids.clear()

        self.broadcaster.publish(MatchingStarted())
        logger.info("房间开始匹配 | room=%s | page=%d", self.id, self.current_page)

    def end_session(self, catalog: Iterable[MovieData] = ()) -> None:
        """结束会话并广播最终的点赞汇总。"""
        self.is_active = False
        movies = list(catalog)
        self.broadcaster.publish(
            MatchingEnded(
                all_likes=all_participant_likes(self, movies),
                common_likes=common_likes(self, movies),
            ),
        )
        logger.info("房间结束匹配 | room=%s", self.id)

    def record_like(self, participant_id: str, imdb_id: str) -> None:
        """记录点赞（幂等）。未知参与者直接忽略。"""
        likes = self.participant_likes.get(participant_id)
        if likes is not None and imdb_id not in likes:
            likes.append(imdb_id)

    def broadcast_movie(self, movie: MovieData) -> None:
        """推送一部新影片。去重由 ``MovieStreamer`` 在调用前完成。"""
        self.broadcaster.publish(NewMovie(movie=movie))

    def update_filters(self, filters: RoomFilters) -> None:
        """整体替换筛选条件。"""
        self.filters = filters

    # ── 视图 ──────────────────────────────────────────────────────────

    def info(self) -> RoomInfo:
        """返回房间摘要信息。"""
        return RoomInfo(
            id=self.id,
            filters=self.filters,
            participants_count=len(self.participants),
            is_active=self.is_active,
        )

    def state(self, catalog: Iterable[MovieData] = ()) -> RoomState:
        """返回房间完整状态（点赞汇总按传入的目录解析）。"""
        movies = list(catalog)
        return RoomState(
            id=self.id,
            filters=self.filters,
            participants=list(self.participants),
            is_active=self.is_active,
            host_id=self.host_id,
            all_likes=all_participant_likes(self, movies),
            common_likes=common_likes(self, movies),
        )
