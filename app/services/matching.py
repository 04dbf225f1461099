"""
app.services.matching
~~~~~~~~~~~~~~~~~~~~~

匹配判定 —— 基于点赞账本的纯函数。

房间只记录 IMDb ID，不缓存完整影片数据。需要展示时由调用方传入
自己掌握的影片目录（``catalog``）进行解析，目录里没有的 ID 会被静默丢弃。
这意味着同一份账本在不同连接上解析出的列表可能不同，属于已知限制。
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from app.schemas.movies import MovieData, ParticipantLikes

if TYPE_CHECKING:
    from app.services.room import Room

# 至少这么多部共同喜欢的影片才算匹配成功
MATCH_THRESHOLD: int = 3
MIN_PARTICIPANTS: int = 2


class MovieCatalog:
    """单个连接持有的影片目录，按 ``imdb_id`` 去重（先到先得），保持插入顺序。"""

    def __init__(self, movies: Iterable[MovieData] = ()) -> None:
        self._movies: dict[str, MovieData] = {}
        self.extend(movies)

    def add(self, movie: MovieData) -> None:
        self._movies.setdefault(movie.imdb_id, movie)

    def extend(self, movies: Iterable[MovieData]) -> None:
        for movie in movies:
            self.add(movie)

    def get(self, imdb_id: str) -> MovieData | None:
        return self._movies.get(imdb_id)

    def __contains__(self, imdb_id: object) -> bool:
        return imdb_id in self._movies

    def __iter__(self) -> Iterator[MovieData]:
        return iter(list(self._movies.values()))

    def __len__(self) -> int:
        return len(self._movies)


def common_movie_ids(room: Room) -> set[str]:
    """返回被当前所有参与者都点赞过的影片 ID。"""
    counts: Counter[str] = Counter()
    for likes in room.participant_likes.values():
        counts.update(set(likes))

    num_participants = len(room.participants)
    return {imdb_id for imdb_id, count in counts.items() if count == num_participants}


def common_likes(room: Room, catalog: Iterable[MovieData]) -> list[MovieData]:
    """所有参与者共同喜欢的影片，按目录顺序解析。

    Args:
        room: 目标房间。
        catalog: 调用方掌握的影片目录。

    Returns:
        共同喜欢且在目录中能找到的影片列表。
    """
    common_ids = common_movie_ids(room)
    if not common_ids:
        return []
    return [movie for movie in catalog if movie.imdb_id in common_ids]


def is_match(common: list[MovieData], participants_count: int) -> bool:
    """共同喜欢的影片达到阈值，且至少有两名参与者。"""
    return len(common) >= MATCH_THRESHOLD and participants_count >= MIN_PARTICIPANTS


def all_participant_likes(room: Room, catalog: Iterable[MovieData]) -> list[ParticipantLikes]:
    """按参与者加入顺序返回每个人的点赞列表（按目录解析）。"""
    movies = list(catalog)
    result: list[ParticipantLikes] = []
    for participant_id in room.participants:
        liked_ids = set(room.participant_likes.get(participant_id, ()))
        result.append(
            ParticipantLikes(
                participant_id=participant_id,
                liked_movies=[m for m in movies if m.imdb_id in liked_ids],
            ),
        )
    return result
