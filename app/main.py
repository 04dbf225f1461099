"""
app.main
~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api import room_ws, rooms
from app.core.config import settings
from app.core.exceptions import RoomNotFoundError
from app.core.logging import get_logger, request_id_ctx_var, setup_logging
from app.core.rate_limit import limiter
from app.providers.omdb import OmdbMovieProvider
from app.schemas.api_response import ApiResponse
from app.services.matching_system import MatchingSystem

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


def create_movie_provider() -> OmdbMovieProvider:
    """构造影片数据源（测试时替换为假数据源）。"""
    return OmdbMovieProvider()


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    provider = create_movie_provider()
    app.state.matching_system = MatchingSystem(provider=provider)
    logger.info(
        "🚀 应用已启动 | env=%s | debug=%s | log_level=%s",
        settings.ENVIRONMENT,
        settings.debug,
        settings.effective_log_level,
    )
    yield
    # ── 关闭 ──
    await app.state.matching_system.shutdown()
    await provider.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="多人实时影片匹配后端 API",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS 中间件 ───────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.allow_cors_all_origins else settings.ALLOWED_ORIGINS,
    allow_credentials=settings.allow_cors_all_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """为每个 HTTP 请求设置 request_id（优先沿用客户端传入的 X-Request-ID）。"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    token = request_id_ctx_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_ctx_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(rooms.router, prefix="/api", tags=["Rooms"])
app.include_router(room_ws.router, prefix="/api", tags=["WebSocket Matching"])


# ── 异常处理器 ────────────────────────────────────────────────────────

@app.exception_handler(RoomNotFoundError)
async def room_not_found_handler(request: Request, exc: RoomNotFoundError) -> JSONResponse:
    logger.info("房间不存在: %s %s | room=%s", request.method, request.url.path, exc.room_id)
    response = ApiResponse.not_found("Room")
    return JSONResponse(status_code=404, content=response.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底：未处理异常统一返回 500 信封，prod 环境不暴露异常内容。"""
    logger.error("未处理异常 | %s %s", request.method, request.url.path, exc_info=exc)
    message = "Internal server error" if settings.is_prod else f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content=ApiResponse.fail(msg=message).model_dump())


@app.get("/health", tags=["System"])
async def health_check() -> ApiResponse[dict]:
    """验证服务是否正常运行。"""
    return ApiResponse.ok(
        data={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "rooms": len(app.state.matching_system.registry),
        },
        msg="Movie matcher ready",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
