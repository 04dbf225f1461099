"""Tests for the OMDb movie provider."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.core.exceptions import MovieProviderError
from app.providers.omdb import OmdbMovieProvider, _year_in_range
from app.schemas.movies import RoomFilters


def _search_response(*results: tuple[str, str], total: int = 3) -> dict[str, Any]:
    return {
        "Search": [
            {"Title": f"Title {imdb_id}", "Year": "2001", "imdbID": imdb_id, "Type": kind}
            for imdb_id, kind in results
        ],
        "totalResults": str(total),
        "Response": "True",
    }


def _detail(imdb_id: str, **overrides: str) -> dict[str, Any]:
    data = {
        "Title": f"Title {imdb_id}",
        "Year": "2001",
        "Poster": f"https://img.test/{imdb_id}.jpg",
        "Plot": "A plot.",
        "Genre": "Comedy, Drama",
        "imdbRating": "7.5",
        "imdbID": imdb_id,
        "Response": "True",
    }
    data.update(overrides)
    return data


class _MockTransport(httpx.AsyncBaseTransport):
    """按查询参数分发：``s`` 走搜索，``i`` 走详情。"""

    def __init__(
        self,
        search: dict[str, Any],
        details: dict[str, dict[str, Any]] | None = None,
        status: int = 200,
    ) -> None:
        self._search = search
        self._details = details or {}
        self._status = status
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        if "s" in params:
            return httpx.Response(self._status, json=self._search, request=request)
        detail = self._details.get(params["i"])
        if detail is None:
            return httpx.Response(500, json={"Error": "boom"}, request=request)
        return httpx.Response(200, json=detail, request=request)

    def search_params(self) -> httpx.QueryParams:
        (request,) = [r for r in self.requests if "s" in r.url.params]
        return request.url.params


class _TimeoutTransport(httpx.AsyncBaseTransport):
    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out")


class _RawTransport(httpx.AsyncBaseTransport):
    def __init__(self, body: bytes) -> None:
        self._body = body

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=self._body, request=request)


def _provider(transport: httpx.AsyncBaseTransport) -> OmdbMovieProvider:
    client = httpx.AsyncClient(transport=transport, base_url="https://omdb.test/")
    return OmdbMovieProvider(api_key="test-key", client=client)


class TestOmdbMovieProvider:
    @pytest.mark.asyncio
    async def test_fetch_page_success(self) -> None:
        transport = _MockTransport(
            _search_response(("tt1", "movie"), ("tt2", "movie"), total=25),
            details={"tt1": _detail("tt1"), "tt2": _detail("tt2")},
        )
        provider = _provider(transport)

        page = await provider.fetch_movies_by_page(RoomFilters(genre="Comedy", year_from=2001), 1)

        assert [m.imdb_id for m in page.movies] == ["tt1", "tt2"]
        assert page.has_more is True
        movie = page.movies[0]
        assert movie.title == "Title tt1"
        assert movie.poster == "https://img.test/tt1.jpg"
        assert movie.genre == "Comedy, Drama"
        assert movie.imdb_rating == "7.5"

        params = transport.search_params()
        assert params["apikey"] == "test-key"
        assert params["s"] == "Comedy"
        assert params["type"] == "movie"
        assert params["page"] == "1"
        assert params["y"] == "2001"
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_default_search_term_and_no_year(self) -> None:
        transport = _MockTransport(_search_response(), details={})
        provider = _provider(transport)

        page = await provider.fetch_movies_by_page(RoomFilters(), 1)

        assert page.movies == []
        params = transport.search_params()
        assert params["s"] == "movie"
        assert "y" not in params

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("page_number", "total", "has_more"),
        [(1, 10, False), (1, 11, True), (2, 20, False), (2, 25, True)],
    )
    async def test_has_more(self, page_number: int, total: int, has_more: bool) -> None:
        provider = _provider(_MockTransport(_search_response(total=total)))

        page = await provider.fetch_movies_by_page(RoomFilters(), page_number)

        assert page.has_more is has_more

    @pytest.mark.asyncio
    async def test_non_movie_results_skipped(self) -> None:
        transport = _MockTransport(
            _search_response(("tt1", "series"), ("tt2", "movie"), ("tt3", "episode")),
            details={"tt1": _detail("tt1"), "tt2": _detail("tt2"), "tt3": _detail("tt3")},
        )

        page = await _provider(transport).fetch_movies_by_page(RoomFilters(), 1)

        assert [m.imdb_id for m in page.movies] == ["tt2"]

    @pytest.mark.asyncio
    async def test_missing_fields_become_empty(self) -> None:
        transport = _MockTransport(
            _search_response(("tt1", "movie")),
            details={"tt1": _detail("tt1", Poster="N/A", Plot="N/A", imdbRating="N/A")},
        )

        page = await _provider(transport).fetch_movies_by_page(RoomFilters(), 1)

        movie = page.movies[0]
        assert movie.poster == ""
        assert movie.plot == ""
        assert movie.imdb_rating == ""

    @pytest.mark.asyncio
    async def test_failed_detail_is_dropped(self) -> None:
        transport = _MockTransport(
            _search_response(("tt1", "movie"), ("tt2", "movie")),
            details={"tt2": _detail("tt2")},
        )

        page = await _provider(transport).fetch_movies_by_page(RoomFilters(), 1)

        assert [m.imdb_id for m in page.movies] == ["tt2"]

    @pytest.mark.asyncio
    async def test_year_range_filter(self) -> None:
        transport = _MockTransport(
            _search_response(("tt1", "movie"), ("tt2", "movie"), ("tt3", "movie")),
            details={
                "tt1": _detail("tt1", Year="2003"),
                "tt2": _detail("tt2", Year="2010"),
                "tt3": _detail("tt3", Year="2001–2004"),
            },
        )
        filters = RoomFilters(year_from=2000, year_to=2005)

        page = await _provider(transport).fetch_movies_by_page(filters, 1)

        assert [m.imdb_id for m in page.movies] == ["tt1", "tt3"]

    @pytest.mark.asyncio
    async def test_upstream_error_response(self) -> None:
        transport = _MockTransport({"Response": "False", "Error": "Movie not found!"})

        with pytest.raises(MovieProviderError, match="Movie not found!"):
            await _provider(transport).fetch_movies_by_page(RoomFilters(), 1)

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        transport = _MockTransport(_search_response(), status=503)

        with pytest.raises(MovieProviderError):
            await _provider(transport).fetch_movies_by_page(RoomFilters(), 1)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        with pytest.raises(MovieProviderError):
            await _provider(_TimeoutTransport()).fetch_movies_by_page(RoomFilters(), 1)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        with pytest.raises(MovieProviderError):
            await _provider(_RawTransport(b"<html>oops</html>")).fetch_movies_by_page(
                RoomFilters(), 1,
            )

    @pytest.mark.asyncio
    async def test_non_object_payload(self) -> None:
        with pytest.raises(MovieProviderError):
            await _provider(_RawTransport(b"[1, 2, 3]")).fetch_movies_by_page(RoomFilters(), 1)


class TestYearInRange:
    @pytest.mark.parametrize(
        ("year", "expected"),
        [("2000", True), ("2005", True), ("1999", False), ("2006", False),
         ("2003–2008", True), ("1998-2002", False), ("", True), ("unknown", True)],
    )
    def test_year_in_range(self, year: str, expected: bool) -> None:
        assert _year_in_range(year, 2000, 2005) is expected
