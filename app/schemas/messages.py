"""
app.schemas.messages
~~~~~~~~~~~~~~~~~~~~

WebSocket 实时消息协议。所有消息都是带 ``type`` 字段的 JSON 对象。

服务端 → 客户端:
  - ``ParticipantJoined`` / ``ParticipantLeft``
  - ``MatchingStarted`` / ``StreamingEnded``
  - ``NewMovie``
  - ``LikesUpdated`` / ``MatchFound`` / ``MatchingEnded``
  - ``Error``

客户端 → 服务端:
  - ``MovieLiked``（兼容旧名 ``Liked`` 与字段 ``item_id``）
  - ``EndMatching``
  - ``LeaveRoom``
  - 二进制帧：``MovieData`` 数组，用于补全本连接的影片目录
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

from app.schemas.movies import MovieData, ParticipantLikes


# ── 服务端消息 ────────────────────────────────────────────────────────

class ParticipantJoined(BaseModel):
    type: Literal["ParticipantJoined"] = "ParticipantJoined"
    participant_id: str


class ParticipantLeft(BaseModel):
    type: Literal["ParticipantLeft"] = "ParticipantLeft"
    participant_id: str


class MatchingStarted(BaseModel):
    type: Literal["MatchingStarted"] = "MatchingStarted"


class NewMovie(BaseModel):
    type: Literal["NewMovie"] = "NewMovie"
    movie: MovieData


class LikesUpdated(BaseModel):
    type: Literal["LikesUpdated"] = "LikesUpdated"
    all_likes: list[ParticipantLikes]
    common_likes: list[MovieData]


class MatchFound(BaseModel):
    type: Literal["MatchFound"] = "MatchFound"
    all_likes: list[ParticipantLikes]
    common_likes: list[MovieData]


class StreamingEnded(BaseModel):
    type: Literal["StreamingEnded"] = "StreamingEnded"


class MatchingEnded(BaseModel):
    type: Literal["MatchingEnded"] = "MatchingEnded"
    all_likes: list[ParticipantLikes]
    common_likes: list[MovieData]


class ErrorMessage(BaseModel):
    type: Literal["Error"] = "Error"
    message: str


ServerMessage = Annotated[
    Union[
        ParticipantJoined,
        ParticipantLeft,
        MatchingStarted,
        NewMovie,
        LikesUpdated,
        MatchFound,
        StreamingEnded,
        MatchingEnded,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]


# ── 客户端消息 ────────────────────────────────────────────────────────

class MovieLiked(BaseModel):
    type: Literal["MovieLiked", "Liked"]
    participant_id: str
    imdb_id: str = Field(..., validation_alias=AliasChoices("imdb_id", "item_id"))


class EndMatching(BaseModel):
    type: Literal["EndMatching"]


class LeaveRoom(BaseModel):
    type: Literal["LeaveRoom"]
    participant_id: str


ClientMessage = Annotated[
    Union[MovieLiked, EndMatching, LeaveRoom],
    Field(discriminator="type"),
]

server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)
client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
movie_list_adapter: TypeAdapter[list[MovieData]] = TypeAdapter(list[MovieData])
