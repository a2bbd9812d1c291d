"""
esrepo Core — Typed Repository over an Elasticsearch Index
==========================================================

One :class:`ElasticRepository` is built per document type and index. The
constructor bootstraps the index (schema, shard/replica topology, alias)
and fails as a whole if that fails; afterwards every call is an
independent round trip through the shared, thread-safe client.

    Caller → ElasticRepository → DocumentRepository  (CRUD)
                               → ScrollPaginator     (exhaustive search)
                               → AliasManager        (alias / index lifecycle)

Example:
    @dataclass
    class Person:
        name: str
        age: int
        city: str

    settings = ElasticSearchSettings(url="https://localhost:9200", username="elastic", password="...")
    schema = DocumentSchema.from_dataclass(Person, keyword_fields=["name", "city"])

    with ElasticRepository(settings, "people_v1", "people", schema) as repo:
        doc_id = repo.index_document(Person("John Doe", 25, "New York"))
        everyone = repo.search(match_all(), [sort_by("age", "desc")], page_size=10)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from elasticsearch import ApiError, AsyncElasticsearch, Elasticsearch, TransportError

from .aliases import AliasManager
from .bootstrap import IndexBootstrapper
from .documents import DocumentRepository, Partial
from .exceptions import ConfigurationError, ESRepoError, ServerResponseError, translate
from .observability import LoggingRequestObserver, RequestObserver
from .query import Aggregations, Query, Sort
from .schema import DocumentSchema
from .scroll import (
    DEFAULT_CURSOR_TTL, DEFAULT_PAGE_SIZE, AsyncScrollPaginator, ResultSet,
    ScrollPaginator
)
from .session import SessionFactory
from .settings import ElasticSearchSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class IndexDescriptor:
    """Concrete index, the alias that points at it, and its topology."""

    index_name: str
    alias_name: str
    shard_count: int
    replica_count: int


class ElasticRepository(Generic[T]):
    """
    Document CRUD, alias management and exhaustive search for one index.

    Reads and writes by id go to the concrete index; the alias is the stable
    name other readers use.

    Args:
        settings: Connection and topology settings
        index_name: Concrete index name
        alias_name: Alias bound to the index (defaults to index_name)
        schema: Declared document schema (dynamic mapping, dict documents if None)
        client: Pre-built client; one is created from settings if None
        async_client: Pre-built asyncio client for :meth:`search_async`
        observer: Per-request hook (DEBUG logging if None)
    """

    def __init__(
        self,
        settings: ElasticSearchSettings,
        index_name: str,
        alias_name: Optional[str] = None,
        schema: Optional[DocumentSchema[T]] = None,
        client: Optional[Elasticsearch] = None,
        async_client: Optional[AsyncElasticsearch] = None,
        observer: Optional[RequestObserver] = None
    ):
        if not index_name:
            raise ConfigurationError("index_name is required")

        self.settings = settings.validate()
        self.descriptor = IndexDescriptor(
            index_name=index_name,
            alias_name=alias_name or index_name,
            shard_count=settings.number_of_shards,
            replica_count=settings.number_of_replicas,
        )
        self.schema: DocumentSchema[T] = schema or DocumentSchema([])
        self._observer = observer or LoggingRequestObserver()

        self._owns_client = client is None
        self._client = client if client is not None else SessionFactory.create(settings)
        self._owns_async_client = async_client is None
        self._async_client = async_client

        try:
            IndexBootstrapper(self._client, settings, self._observer).ensure(
                self.index_name, self.alias_name, self.schema
            )
        except ESRepoError:
            logger.error(
                f"Bootstrap of index {self.index_name} (alias {self.alias_name}) failed"
            )
            if self._owns_client:
                self._client.close()
            raise

        self.documents: DocumentRepository[T] = DocumentRepository(
            self._client,
            self.index_name,
            self.schema,
            refresh=settings.refresh,
            observer=self._observer
        )
        self.aliases = AliasManager(self._client, self._observer)
        self.paginator: ScrollPaginator[T] = ScrollPaginator(
            self._client, self.index_name, self.schema, self._observer
        )

    @property
    def index_name(self) -> str:
        return self.descriptor.index_name

    @property
    def alias_name(self) -> str:
        return self.descriptor.alias_name

    @property
    def client(self) -> Elasticsearch:
        return self._client

    @property
    def async_client(self) -> AsyncElasticsearch:
        """Asyncio client (lazy initialization)."""
        if self._async_client is None:
            self._async_client = SessionFactory.create_async(self.settings)
        return self._async_client

    # Documents

    def index_document(self, document: T) -> str:
        """Store a new document; returns the engine-generated id."""
        return self.documents.index_document(document)

    def get_document_by_id(self, document_id: str) -> T:
        return self.documents.get_document_by_id(document_id)

    def update_document(self, document_id: str, partial: Partial) -> None:
        self.documents.update_document(document_id, partial)

    def upsert_document(self, document_id: str, partial: Partial) -> None:
        self.documents.upsert_document(document_id, partial)

    def delete_document(self, document_id: str) -> None:
        self.documents.delete_document(document_id)

    # Aliases and indices

    def create_alias(self, alias_name: str, index_name: str) -> None:
        self.aliases.create_alias(alias_name, index_name)

    def delete_index(self, index_name: str) -> None:
        self.aliases.delete_index(index_name)

    def get_field_mappings(self) -> Dict[str, Any]:
        """Current mappings of the concrete index."""
        return self.aliases.get_mapping(self.index_name)

    # Search

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
        Every document matching ``query`` after skipping ``page_index * page_size``.

        See :mod:`esrepo.scroll` for the offset and aggregation semantics.
        """
        return self.paginator.search(
            query, sort, aggregations, page_size, page_index, cursor_ttl
        )

    async def search_async(
        self,
        query: Query,
        sort: Optional[Sort] = None,
        aggregations: Optional[Aggregations] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_index: int = 0,
        cursor_ttl: str = DEFAULT_CURSOR_TTL
    ) -> ResultSet[T]:
        """:meth:`search` on the asyncio client."""
        paginator: AsyncScrollPaginator[T] = AsyncScrollPaginator(
            self.async_client, self.index_name, self.schema, self._observer
        )
        return await paginator.search(
            query, sort, aggregations, page_size, page_index, cursor_ttl
        )

    # Lifecycle

    def refresh(self) -> None:
        """Force index refresh (makes recent changes searchable)."""
        endpoint = f"POST /{self.index_name}/_refresh"
        self._observer.on_request("refresh", endpoint)
        try:
            self._client.indices.refresh(index=self.index_name)
        except (ApiError, TransportError) as e:
            raise translate(e, "refresh index", endpoint, ServerResponseError) from e

    def close(self):
        """Close the blocking client this repository created."""
        if self._owns_client:
            self._client.close()
        if self._owns_async_client and self._async_client is not None:
            logger.warning(
                f"Async client of {self.index_name} is still open; "
                "use aclose() or 'async with' to close it"
            )

    async def aclose(self):
        """Close both clients this repository created."""
        if self._owns_client:
            self._client.close()
        if self._owns_async_client and self._async_client is not None:
            await self._async_client.close()
            self._async_client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
