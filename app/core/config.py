"""
app.core.config
~~~~~~~~~~~~~~~

服务配置，基于 pydantic-settings。

取值优先级（高 → 低）:
  1. 进程环境变量
  2. ``.env.{ENVIRONMENT}``（如 ``.env.prod``）
  3. ``.env``
  4. 字段默认值

``OMDB_API_KEY`` 没有默认值，缺失时启动即失败。
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 决定额外加载哪个 .env.{env} 文件，必须在 Settings 定义之前读取
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")

_DEFAULT_LOG_LEVELS: dict[str, str] = {"dev": "INFO", "test": "DEBUG", "prod": "WARNING"}


class Settings(BaseSettings):
    """进程级配置，字段名即环境变量名。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Movie Matcher Backend", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(default="dev", description="运行环境")

    # ── 影片数据源（OMDb）────────────────────────────────────────────
    OMDB_API_KEY: str = Field(..., min_length=1, description="OMDb API Key")
    OMDB_BASE_URL: str = Field(default="https://www.omdbapi.com/", description="OMDb API 地址")
    OMDB_TIMEOUT: float = Field(default=10.0, gt=0, description="OMDb 单次请求超时（秒）")

    # ── 房间 / 推流节奏 ───────────────────────────────────────────────
    JOIN_URL_PREFIX: str = Field(default="/room", description="前端加入房间的路径前缀")
    BROADCAST_CAPACITY: int = Field(
        default=100, ge=1, description="每个订阅者的广播队列容量，满了丢弃最旧消息",
    )
    STREAM_MOVIE_DELAY: float = Field(default=0.2, ge=0, description="逐部推送影片的间隔（秒）")
    STREAM_PAGE_DELAY: float = Field(default=1.0, ge=0, description="两次翻页拉取之间的间隔（秒）")
    STREAM_EMPTY_PAGE_DELAY: float = Field(
        default=0.5, ge=0, description="整页都是重复影片时，尝试下一页前的等待（秒）",
    )

    # ── HTTP ─────────────────────────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="是否启用 HTTP 接口限流")
    ALLOWED_ORIGINS: list[str] = Field(
        default_factory=list, description="prod 环境允许的 CORS 来源（JSON 数组）",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=3000, description="服务监听端口")
    LOG_LEVEL: str | None = Field(default=None, description="日志级别，不填则按环境推断")

    model_config = SettingsConfigDict(
        # 后列出的文件优先级更低
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @property
    def debug(self) -> bool:
        """仅 dev 环境开启 debug 与热重载。"""
        return self.ENVIRONMENT == "dev"

    @property
    def reload(self) -> bool:
        return self.debug

    @property
    def effective_log_level(self) -> str:
        """显式配置的 ``LOG_LEVEL`` 优先，否则 dev → INFO、test → DEBUG、prod → WARNING。"""
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return _DEFAULT_LOG_LEVELS.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """非 prod 环境放开所有 CORS 来源。"""
        return not self.is_prod


@lru_cache
def get_settings() -> Settings:
    """全局 Settings 单例（缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
