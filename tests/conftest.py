"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用假影片数据源替换 OMDb，
使单元测试和端到端测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("OMDB_API_KEY", "test-fake-key")
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STREAM_MOVIE_DELAY", "0")
os.environ.setdefault("STREAM_PAGE_DELAY", "0")
os.environ.setdefault("STREAM_EMPTY_PAGE_DELAY", "0")

from fastapi.testclient import TestClient  # noqa: E402

from app.core.exceptions import MovieProviderError  # noqa: E402
from app.providers.base import MoviesPage  # noqa: E402
from app.schemas.movies import MovieData, RoomFilters  # noqa: E402


def make_movie(imdb_id: str, title: str | None = None, year: str = "2001") -> MovieData:
    """构造一部测试影片。"""
    return MovieData(title=title or f"Movie {imdb_id}", year=year, imdb_id=imdb_id)


class FakeMovieProvider:
    """按页码返回预设结果的假数据源，并记录每次调用。

    未预设的页码返回空页且 ``has_more=False``；
    ``error_pages`` 中的页码抛出 ``MovieProviderError``。
    """

    def __init__(
        self,
        pages: dict[int, MoviesPage] | None = None,
        error_pages: set[int] | None = None,
    ) -> None:
        self.pages: dict[int, MoviesPage] = pages or {}
        self.error_pages: set[int] = error_pages or set()
        self.calls: list[tuple[RoomFilters, int]] = []
        self.closed: bool = False

    async def fetch_movies_by_page(self, filters: RoomFilters, page: int) -> MoviesPage:
        self.calls.append((filters, page))
        if page in self.error_pages:
            raise MovieProviderError(f"fake failure on page {page}")
        return self.pages.get(page, MoviesPage(movies=[], has_more=False))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_provider() -> FakeMovieProvider:
    """单页三部影片、没有下一页。"""
    return FakeMovieProvider(
        pages={
            1: MoviesPage(
                movies=[make_movie("tt1"), make_movie("tt2"), make_movie("tt3")],
                has_more=False,
            ),
        },
    )


@pytest.fixture()
def client(
    fake_provider: FakeMovieProvider, monkeypatch: pytest.MonkeyPatch,
) -> Iterator[TestClient]:
    """启动完整应用（含 lifespan），影片数据源替换为 ``fake_provider``。

    必须以上下文管理器方式使用 TestClient，后台推流任务才能跨请求存活。
    """
    import app.main as main_module

    monkeypatch.setattr(main_module, "create_movie_provider", lambda: fake_provider)
    with TestClient(main_module.app) as test_client:
        yield test_client
