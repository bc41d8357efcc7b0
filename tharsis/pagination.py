"""
Generic forward-only, cursor-based pagination.

Every list query of the API returns a connection carrying an opaque end cursor, a total count and
a has-next-page flag. The Paginator wraps a resource-specific query callback and keeps track of
the cursor, so call sites don't have to.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageInfo:
    """
    The information common to all paginated query results.

    :param cursor: opaque token to pass back unmodified to get the following page
    :param total_count: total number of items matching the query
    :param has_next_page: whether the server has another page after this one
    """

    cursor: str
    total_count: int
    has_next_page: bool


@dataclass
class PaginationOptions:
    """Cursor based pagination options. Only forward paging is supported."""

    limit: int | None = None
    cursor: str | None = None


class PaginatedResponse(Protocol):
    """Any page result the generic paginator can walk through."""

    def get_page_info(self) -> PageInfo:
        """Return the page info of this page."""
        ...


class PaginationError(Exception):
    """
    Error raised if pagination cannot make progress: the server claims there is a next page
    but returns an empty page without moving the cursor.
    """


PageT = TypeVar("PageT", bound=PaginatedResponse)
ItemT = TypeVar("ItemT")

QueryCallback = Callable[[str | None], Awaitable[PageT]]


class Paginator(Generic[PageT]):
    """
    Walks a paginated result set one page at a time.

    A paginator is not safe for concurrent use: calls to `next` must be serialized by the caller.
    It does not keep previously fetched pages.
    """

    def __init__(
        self,
        query_callback: QueryCallback[PageT],
        is_empty: Callable[[PageT], bool] | None = None,
    ) -> None:
        """
        Initialize the paginator.

        :param query_callback: coroutine function fetching one page given the cursor to start
            after, where None means the first page.
        :param is_empty: optional predicate telling whether a page holds no items, used to detect
            a server which never stops reporting a next page.
        """
        self._query_callback = query_callback
        self._is_empty = is_empty
        self.next_cursor: str | None = None
        self._has_done_query = False

    def has_more(self) -> bool:
        """
        Tell whether there are more pages to read.
        Before the first page has been read this is always True, even if that page will be empty.
        """
        if not self._has_done_query:
            return True
        return self.next_cursor is not None

    async def next(self) -> PageT:
        """
        Fetch the next page.

        Any exception raised by the query callback propagates unchanged and leaves the paginator
        as it was, so calling `next` again requests the same cursor.

        :raises PaginationError: if the server reports a next page without making progress.
        """
        after = self.next_cursor
        logger.debug("fetching page after cursor %r", after)
        page = await self._query_callback(after)

        page_info = page.get_page_info()
        next_cursor: str | None = page_info.cursor
        if not page_info.has_next_page:
            # The last page still carries a cursor, which would only lead to an empty page.
            next_cursor = None
        elif next_cursor == after and self._is_empty is not None and self._is_empty(page):
            msg = f"server returned an empty page with an unchanged cursor {after!r}"
            raise PaginationError(msg)

        self._has_done_query = True
        self.next_cursor = next_cursor
        return page

    def __aiter__(self) -> AsyncIterator[PageT]:
        return self._pages()

    async def _pages(self) -> AsyncIterator[PageT]:
        while self.has_more():
            yield await self.next()


PAGE_INFO_FIELDS = "totalCount pageInfo { endCursor hasNextPage }"
"""GraphQL selection on a connection matching page_info_from_graphql."""


def pagination_variables(
    options: PaginationOptions | None, after: str | None = None
) -> dict[str, Any]:
    """
    Build the `first` and `after` variables of a connection query.

    :param options: the caller's pagination options
    :param after: cursor overriding the one in the options
    """
    options = options or PaginationOptions()
    return {
        "first": options.limit,
        "after": after if after is not None else options.cursor,
    }


def page_info_from_graphql(connection: dict[str, Any]) -> PageInfo:
    """Convert the page info and total count of a GraphQL connection."""
    page_info = connection.get("pageInfo") or {}
    return PageInfo(
        cursor=page_info.get("endCursor") or "",
        total_count=connection.get("totalCount") or 0,
        has_next_page=bool(page_info.get("hasNextPage")),
    )


def nodes_from_graphql(connection: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the nodes of a GraphQL connection."""
    return [edge["node"] for edge in connection.get("edges") or ()]


async def paginate_items(
    paginator: Paginator[PageT], items: Callable[[PageT], Sequence[ItemT]]
) -> AsyncIterator[ItemT]:
    """
    Iterate through the items of all remaining pages.

    :param paginator: the paginator to drain
    :param items: function extracting the items from a page
    """
    async for page in paginator:
        for item in items(page):
            yield item
