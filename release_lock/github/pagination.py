"""Link header pagination for GitHub list endpoints."""

import re
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

MAX_PER_PAGE = 100

# <https://api.github.com/...?page=2>; rel="next", <...>; rel="last"
_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


def parse_link_header(value: str | None) -> dict[str, str]:
    """Map each ``rel`` of a Link header to its URL."""
    return {rel: url for url, rel in _LINK_PATTERN.findall(value or "")}


@dataclass
class PaginatedResponse:
    """One page of a list endpoint.

    Most list endpoints return a bare JSON array. The check runs listing
    wraps the page in an object instead; ``items_key`` names its array field.
    """

    data: Any
    headers: Mapping[str, str]
    url: str
    items_key: str | None = None
    links: dict[str, str] = field(init=False)

    def __post_init__(self) -> None:
        self.links = parse_link_header(self.headers.get("Link"))

    @property
    def next_page_url(self) -> str | None:
        return self.links.get("next")

    @property
    def items(self) -> list[dict[str, Any]]:
        if self.items_key is None:
            return list(self.data) if isinstance(self.data, list) else []
        if not isinstance(self.data, dict):
            return []
        return list(self.data.get(self.items_key) or [])


class PageFetcher(Protocol):
    async def _fetch_paginated(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        items_key: str | None = None,
    ) -> PaginatedResponse: ...


class AsyncPaginator:
    """Yields the items of every page, following ``rel="next"`` links."""

    def __init__(
        self,
        client: PageFetcher,
        initial_url: str,
        params: Mapping[str, Any] | None = None,
        max_pages: int | None = None,
        per_page: int = MAX_PER_PAGE,
        items_key: str | None = None,
    ):
        """Initialize the paginator.

        Args:
            client: Object fetching single pages, normally a GitHubClient
            initial_url: URL of the first page
            params: Query parameters for the first page
            max_pages: Stop after this many pages
            per_page: Page size, capped at 100
            items_key: Field holding the items when pages are JSON objects
        """
        self.client = client
        self.initial_url = initial_url
        self.params = {**(params or {}), "per_page": min(per_page, MAX_PER_PAGE)}
        self.max_pages = max_pages
        self.items_key = items_key
        self.pages_fetched = 0

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        url: str | None = self.initial_url
        # Next links already carry the query string
        params: dict[str, Any] | None = self.params
        while url and (self.max_pages is None or self.pages_fetched < self.max_pages):
            page = await self.client._fetch_paginated(url, params, items_key=self.items_key)
            self.pages_fetched += 1
            params = None
            url = page.next_page_url
            for item in page.items:
                yield item

    async def collect_all(self) -> list[dict[str, Any]]:
        return [item async for item in self]
