"""
esrepo — Typed Document Repository over Elasticsearch
=====================================================

A generic repository for one document type stored in one Elasticsearch
index. It covers three concerns:

- Bootstrap: create the index with its declared mapping and shard/replica
  topology if missing, and bind a stable alias to it.
- CRUD: create (engine-assigned ids), get, partial update, upsert, delete.
- Exhaustive search: drive the scroll API to completion so a query returns
  every matching document despite per-request size limits, and always
  release the server-side cursor.

Usage:
    from esrepo import ElasticRepository, ElasticSearchSettings, DocumentSchema
    from esrepo.query import match_all, sort_by

    settings = ElasticSearchSettings.from_env()
    repo = ElasticRepository(settings, "people_v1", "people", schema)

    doc_id = repo.index_document({"name": "John Doe", "age": 25})
    everyone = repo.search(match_all(), [sort_by("age", "desc")], page_size=500)

License: MIT
"""

__version__ = "0.1.0"

from .aliases import AliasManager
from .bootstrap import IndexBootstrapper
from .core import ElasticRepository, IndexDescriptor
from .documents import DocumentRepository
from .exceptions import (
    AliasError, ClusterConnectionError, ConfigurationError, ESRepoError,
    IndexCreationError, MappingError, NotFoundError, SerializationError,
    ServerResponseError
)
from .observability import LoggingRequestObserver, NullRequestObserver, RequestObserver
from .schema import DocumentSchema, FieldDescriptor
from .scroll import AsyncScrollPaginator, PageRequest, ResultSet, ScrollCursor, ScrollPaginator
from .session import SessionFactory
from .settings import ElasticSearchSettings

__all__ = [
    "ElasticRepository",
    "IndexDescriptor",
    "ElasticSearchSettings",
    "SessionFactory",
    "IndexBootstrapper",
    "AliasManager",
    "DocumentRepository",
    "ScrollPaginator",
    "AsyncScrollPaginator",
    "ScrollCursor",
    "PageRequest",
    "ResultSet",
    "DocumentSchema",
    "FieldDescriptor",
    "RequestObserver",
    "LoggingRequestObserver",
    "NullRequestObserver",
    "ESRepoError",
    "ClusterConnectionError",
    "IndexCreationError",
    "MappingError",
    "AliasError",
    "NotFoundError",
    "ServerResponseError",
    "SerializationError",
    "ConfigurationError",
]
