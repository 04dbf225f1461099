"""
app.schemas.movies
~~~~~~~~~~~~~~~~~~

影片与筛选条件的 Pydantic 模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class RoomFilters(BaseModel):
    """房间筛选条件，房主可整体替换。"""

    genre: str | None = Field(default=None, description="类型关键词，如 Comedy")
    year_from: int | None = Field(default=None, ge=0, description="起始年份（含）")
    year_to: int | None = Field(default=None, ge=0, description="结束年份（含）")


class MovieData(BaseModel):
    """推送给客户端的完整影片信息。``imdb_id`` 是投票时使用的稳定标识。"""

    title: str = Field(..., description="片名")
    year: str = Field(default="", description="年份（可能是 2001–2005 这样的区间）")
    poster: str = Field(default="", description="海报 URL")
    plot: str = Field(default="", description="剧情简介")
    genre: str = Field(default="", description="类型，逗号分隔")
    imdb_rating: str = Field(default="", description="IMDb 评分")
    imdb_id: str = Field(..., min_length=1, description="IMDb ID")


class ParticipantLikes(BaseModel):
    """单个参与者的点赞列表（已按目录解析为完整影片）。"""

    participant_id: str
    liked_movies: list[MovieData] = Field(default_factory=list)
