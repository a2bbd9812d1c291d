"""
esrepo Scroll
=============

Exhaustive retrieval through the scroll API.

A search opens a server-side cursor, drains it in ``page_size`` batches and
releases it before returning, on every exit path. The whole matching set is
materialized; nothing is streamed lazily.

Offset semantics:
    ``page_index * page_size`` hits are skipped and *every* remaining hit is
    returned, fetched ``page_size`` at a time. ``page_index`` does not select
    a single page. Elasticsearch rejects ``from`` in a scroll context, so the
    skipped hits are discarded client-side while draining.

Aggregations are attached to the first request only, and only the first
response's aggregation results are returned.
"""

import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import (
    Any, AsyncIterator, Dict, Generic, Iterable, Iterator, List, Optional,
    TypeVar
)

from elasticsearch import (
    ApiError, AsyncElasticsearch, Elasticsearch, TransportError
)

from .exceptions import ESRepoError, ServerResponseError, translate
from .observability import LoggingRequestObserver, RequestObserver
from .query import Aggregations, Query, Sort
from .schema import DocumentSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 1000
DEFAULT_CURSOR_TTL = "1m"


@dataclass
class ScrollCursor:
    """Server-side cursor state for one search call."""

    ttl: str
    cursor_id: Optional[str] = None
    released: bool = False


@dataclass(frozen=True)
class PageRequest:
    """Query fragments plus paging parameters for one search."""

    query: Query
    sort: Optional[Sort] = None
    aggregations: Optional[Aggregations] = None
    page_size: int = DEFAULT_PAGE_SIZE
    page_index: int = 0
    cursor_ttl: str = DEFAULT_CURSOR_TTL

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {self.page_index}")
        if not self.cursor_ttl:
            raise ValueError("cursor_ttl is required")

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size


class ResultSet(List[T]):
    """
    Ordered documents of a search, in engine ranking order.

    Attributes:
        ids: Document ids, parallel to the documents
        aggregations: Aggregation results of the first response (or None)
        total: Total hit count reported by the first response
    """

    def __init__(
        self,
        documents: Iterable[T] = (),
        ids: Iterable[str] = (),
        aggregations: Optional[Dict[str, Any]] = None,
        total: Optional[int] = None
    ):
        super().__init__(documents)
        self.ids: List[str] = list(ids)
        self.aggregations = aggregations
        self.total = total


class _ScrollProtocol(Generic[T]):
    """Request construction and response handling shared by sync and async."""

    def __init__(
        self,
        index_name: str,
        schema: Optional[DocumentSchema[T]] = None,
        observer: Optional[RequestObserver] = None
    ):
        self.index_name = index_name
        self.schema: DocumentSchema[T] = schema or DocumentSchema([])
        self._observer = observer or LoggingRequestObserver()

    @property
    def search_endpoint(self) -> str:
        return f"POST /{self.index_name}/_search"

    def initial_request(self, request: PageRequest) -> Dict[str, Any]:
        """Keyword arguments for the cursor-opening search."""
        kwargs: Dict[str, Any] = {
            "index": self.index_name,
            "query": request.query,
            "size": request.page_size,
            "scroll": request.cursor_ttl,
        }
        if request.sort:
            kwargs["sort"] = request.sort
        if request.aggregations:
            kwargs["aggs"] = request.aggregations

        fields = self.schema.source_fields()
        if fields:
            kwargs["source_includes"] = fields
        return kwargs

    def advance(self, cursor: ScrollCursor, response: Any, operation: str) -> List[Dict[str, Any]]:
        """Record the (possibly rotated) cursor id and return the hits."""
        body = response.body
        scroll_id = body.get("_scroll_id")
        if not scroll_id:
            message = f"Failed to {operation} ({self.search_endpoint}): no _scroll_id in response"
            logger.error(message)
            raise ServerResponseError(message, endpoint=self.search_endpoint, server_error=body)
        cursor.cursor_id = scroll_id

        hits = body.get("hits")
        if not isinstance(hits, dict) or not isinstance(hits.get("hits"), list):
            message = f"Failed to {operation} ({self.search_endpoint}): malformed hits"
            logger.error(message)
            raise ServerResponseError(message, endpoint=self.search_endpoint, server_error=body)
        return hits["hits"]

    def start(self, results: ResultSet, response: Any) -> None:
        body = response.body
        results.aggregations = body.get("aggregations")
        total = body.get("hits", {}).get("total")
        results.total = total.get("value") if isinstance(total, dict) else total

    def collect(self, results: ResultSet, hits: List[Dict[str, Any]], skip: int) -> int:
        """Append hits after discarding ``skip`` leading ones; returns the remaining skip."""
        if skip >= len(hits):
            return skip - len(hits)
        for hit in hits[skip:]:
            results.ids.append(hit.get("_id"))
            results.append(self.schema.deserialize(hit.get("_source", {})))
        return 0

    def release_failed(self, exc: Exception) -> ESRepoError:
        return translate(
            exc, "clear scroll", "DELETE /_search/scroll", ServerResponseError
        )


class ScrollPaginator(_ScrollProtocol[T]):
    """
    Drain a query's full result set through a scroll cursor.

    Example:
        paginator = ScrollPaginator(client, "people_v1", schema)
        people = paginator.search(match_all(), [sort_by("age", "desc")], page_size=10)
    """

    def __init__(
        self,
        client: Elasticsearch,
        index_name: str,
        schema: Optional[DocumentSchema[T]] = None,
        observer: Optional[RequestObserver] = None
    ):
        super().__init__(index_name, schema, observer)
        self._client = client

    def search(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        aggregations: Optional[Aggregations] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_index: int = 0,
        cursor_ttl: str = DEFAULT_CURSOR_TTL
    ) -> ResultSet[T]:
        """
        Return every hit after ``page_index * page_size`` skipped ones.

        Args:
            query: Query DSL fragment
            sort: Sort DSL fragment
            aggregations: Aggregations DSL fragment (first request only)
            page_size: Hits fetched per round trip
            page_index: Number of ``page_size`` blocks to skip
            cursor_ttl: Cursor keep-alive, e.g. "1m"

        Returns:
            ResultSet with all remaining documents in sort order
        """
        return self.execute(PageRequest(
            query=query,
            sort=sort,
            aggregations=aggregations,
            page_size=page_size,
            page_index=page_index,
            cursor_ttl=cursor_ttl
        ))

    def execute(self, request: PageRequest) -> ResultSet[T]:
        results: ResultSet[T] = ResultSet()
        skip = request.offset

        with self.open_cursor(request.cursor_ttl) as cursor:
            kwargs = self.initial_request(request)
            self._observer.on_request("search", self.search_endpoint, kwargs)
            try:
                response = self._client.search(**kwargs)
            except (ApiError, TransportError) as e:
                raise translate(e, "search", self.search_endpoint, ServerResponseError) from e

            hits = self.advance(cursor, response, "search")
            self.start(results, response)

            while hits:
                skip = self.collect(results, hits, skip)
                hits = self._continue(cursor)

        logger.debug(f"Scroll on {self.index_name} returned {len(results)} documents")
        return results

    def _continue(self, cursor: ScrollCursor) -> List[Dict[str, Any]]:
        self._observer.on_request("scroll", "POST /_search/scroll", {"scroll": cursor.ttl})
        try:
            response = self._client.scroll(scroll_id=cursor.cursor_id, scroll=cursor.ttl)
        except (ApiError, TransportError) as e:
            raise translate(e, "scroll", "POST /_search/scroll", ServerResponseError) from e
        return self.advance(cursor, response, "scroll")

    @contextmanager
    def open_cursor(self, ttl: str) -> Iterator[ScrollCursor]:
        """
        Scope a cursor: its last known id is cleared exactly once on exit.

        A failed release is raised only when nothing else is propagating.
        """
        cursor = ScrollCursor(ttl=ttl)
        try:
            yield cursor
        except BaseException:
            try:
                self.release(cursor)
            except ESRepoError:
                logger.warning("Scroll cursor release failed while handling another error")
            raise
        self.release(cursor)

    def release(self, cursor: ScrollCursor) -> None:
        if cursor.released or cursor.cursor_id is None:
            return
        cursor.released = True
        self._observer.on_request("clear scroll", "DELETE /_search/scroll")
        try:
            self._client.clear_scroll(scroll_id=cursor.cursor_id)
        except ApiError as e:
            if e.status_code == 404:
                logger.debug("Scroll cursor had already expired")
                return
            raise self.release_failed(e) from e
        except TransportError as e:
            raise self.release_failed(e) from e


class AsyncScrollPaginator(_ScrollProtocol[T]):
    """
    :class:`ScrollPaginator` over ``AsyncElasticsearch``.

    Continuation requests are awaited one after the other; a cursor is
    never advanced concurrently.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        index_name: str,
        schema: Optional[DocumentSchema[T]] = None,
        observer: Optional[RequestObserver] = None
    ):
        super().__init__(index_name, schema, observer)
        self._client = client

    async def search(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        aggregations: Optional[Aggregations] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_index: int = 0,
        cursor_ttl: str = DEFAULT_CURSOR_TTL
    ) -> ResultSet[T]:
        return await self.execute(PageRequest(
            query=query,
            sort=sort,
            aggregations=aggregations,
            page_size=page_size,
            page_index=page_index,
            cursor_ttl=cursor_ttl
        ))

    async def execute(self, request: PageRequest) -> ResultSet[T]:
        results: ResultSet[T] = ResultSet()
        skip = request.offset

        async with self.open_cursor(request.cursor_ttl) as cursor:
            kwargs = self.initial_request(request)
            self._observer.on_request("search", self.search_endpoint, kwargs)
            try:
                response = await self._client.search(**kwargs)
            except (ApiError, TransportError) as e:
                raise translate(e, "search", self.search_endpoint, ServerResponseError) from e

            hits = self.advance(cursor, response, "search")
            self.start(results, response)

            while hits:
                skip = self.collect(results, hits, skip)
                hits = await self._continue(cursor)

        return results

    async def _continue(self, cursor: ScrollCursor) -> List[Dict[str, Any]]:
        self._observer.on_request("scroll", "POST /_search/scroll", {"scroll": cursor.ttl})
        try:
            response = await self._client.scroll(scroll_id=cursor.cursor_id, scroll=cursor.ttl)
        except (ApiError, TransportError) as e:
            raise translate(e, "scroll", "POST /_search/scroll", ServerResponseError) from e
        return self.advance(cursor, response, "scroll")

    @asynccontextmanager
    async def open_cursor(self, ttl: str) -> AsyncIterator[ScrollCursor]:
        cursor = ScrollCursor(ttl=ttl)
        try:
            yield cursor
        except BaseException:
            try:
                await self.release(cursor)
            except ESRepoError:
                logger.warning("Scroll cursor release failed while handling another error")
            raise
        await self.release(cursor)

    async def release(self, cursor: ScrollCursor) -> None:
        if cursor.released or cursor.cursor_id is None:
            return
        cursor.released = True
        self._observer.on_request("clear scroll", "DELETE /_search/scroll")
        try:
            await self._client.clear_scroll(scroll_id=cursor.cursor_id)
        except ApiError as e:
            if e.status_code == 404:
                logger.debug("Scroll cursor had already expired")
                return
            raise self.release_failed(e) from e
        except TransportError as e:
            raise self.release_failed(e) from e
