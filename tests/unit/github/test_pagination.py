"""
Unit tests for GitHub pagination module.

Why: Fan-out needs every open pull request, and check run lookups need
     every run on a commit; a dropped page means a PR left locked.

What: Tests Link header parsing, PaginatedResponse item extraction and
      AsyncPaginator page walking.

How: Uses a mock client whose _fetch_paginated returns prepared pages.
"""

from typing import Any
from unittest.mock import AsyncMock, Mock

from release_lock.github.pagination import AsyncPaginator, PaginatedResponse, parse_link_header


class TestParseLinkHeader:
    """Test Link header parsing."""

    def test_empty(self) -> None:
        assert parse_link_header(None) == {}
        assert parse_link_header("") == {}

    def test_next_and_last(self) -> None:
        links = parse_link_header(
            '<https://api.github.com/repos/o/r/pulls?page=2>; rel="next", '
            '<https://api.github.com/repos/o/r/pulls?page=5>; rel="last"'
        )

        assert links == {
            "next": "https://api.github.com/repos/o/r/pulls?page=2",
            "last": "https://api.github.com/repos/o/r/pulls?page=5",
        }


class TestPaginatedResponse:
    def test_list_items(self) -> None:
        page = PaginatedResponse([{"number": 1}], {}, "url")

        assert page.items == [{"number": 1}]
        assert page.next_page_url is None

    def test_wrapped_items(self) -> None:
        """
        Why: The check runs listing wraps its items in an object
        What: Tests items_key extraction and tolerance of odd bodies
        How: Builds pages with and without the items field
        """
        wrapped = PaginatedResponse(
            {"total_count": 1, "check_runs": [{"id": 7}]}, {}, "url", "check_runs"
        )
        missing = PaginatedResponse({"total_count": 0}, {}, "url", "check_runs")
        not_object = PaginatedResponse([{"id": 7}], {}, "url", "check_runs")

        assert wrapped.items == [{"id": 7}]
        assert missing.items == []
        assert not_object.items == []


class TestAsyncPaginator:
    """Test AsyncPaginator iteration."""

    def make_client(self, pages: list[PaginatedResponse]) -> Mock:
        client = Mock()
        client._fetch_paginated = AsyncMock(side_effect=pages)
        return client

    def page(self, items: list[dict[str, Any]], next_url: str | None = None) -> PaginatedResponse:
        headers = {"Link": f'<{next_url}>; rel="next"'} if next_url else {}
        return PaginatedResponse(items, headers, "url")

    async def test_walks_all_pages(self) -> None:
        client = self.make_client(
            [
                self.page([{"n": 1}, {"n": 2}], next_url="https://api/p2"),
                self.page([{"n": 3}]),
            ]
        )
        paginator = AsyncPaginator(client, "https://api/p1", params={"state": "open"})

        items = await paginator.collect_all()

        assert [item["n"] for item in items] == [1, 2, 3]

    async def test_params_only_on_first_page(self) -> None:
        """
        Why: Link header URLs already carry the query string
        What: Tests that params go to the first request only
        How: Inspects the calls made to _fetch_paginated
        """
        client = self.make_client(
            [self.page([{"n": 1}], next_url="https://api/p2?page=2"), self.page([])]
        )
        paginator = AsyncPaginator(client, "https://api/p1", params={"state": "open"}, per_page=50)

        await paginator.collect_all()

        first, second = client._fetch_paginated.await_args_list
        assert first.args == ("https://api/p1", {"state": "open", "per_page": 50})
        assert second.args == ("https://api/p2?page=2", None)

    async def test_per_page_capped(self) -> None:
        paginator = AsyncPaginator(Mock(), "https://api/p1", per_page=500)

        assert paginator.params["per_page"] == 100

    async def test_max_pages(self) -> None:
        client = self.make_client(
            [
                self.page([{"n": 1}], next_url="https://api/p2"),
                self.page([{"n": 2}], next_url="https://api/p3"),
            ]
        )
        paginator = AsyncPaginator(client, "https://api/p1", max_pages=1)

        items = await paginator.collect_all()

        assert items == [{"n": 1}]
        assert client._fetch_paginated.await_count == 1
