"""
app.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~

统一应答信封。房间接口按协议直接返回数据模型；
``/health`` 与 404 / 500 错误响应使用此结构（429 由 slowapi 自行返回）。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON 应答信封。

    .. code-block:: json

        {"code": 404, "data": null, "msg": "Room not found"}
    """

    code: int = Field(default=200, description="状态码，与 HTTP 状态一致")
    data: T | None = Field(default=None, description="负载数据，错误时为 null")
    msg: str = Field(default="success", description="可读的说明")

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        return cls(code=200, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        """构造错误应答。"""
        return cls(code=code, data=data, msg=msg)

    @classmethod
    def not_found(cls, what: str) -> ApiResponse[Any]:
        """``{what} not found``，用于 404。"""
        return cls.fail(msg=f"{what} not found", code=404)
