"""
esrepo Bootstrap
================

Guarantees that an index exists with the declared schema and topology and
that its alias points at it. Safe to run on every repository construction:
an existing index is never re-mapped.
"""

import logging
from typing import Any, Dict, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError

from .exceptions import (
    AliasError, IndexCreationError, MappingError, error_type, translate
)
from .observability import LoggingRequestObserver, RequestObserver
from .schema import DocumentSchema
from .settings import ElasticSearchSettings

logger = logging.getLogger(__name__)

MAPPING_ERRORS = {"mapper_parsing_exception", "illegal_argument_exception"}


class IndexBootstrapper:
    """
    Create-if-missing for an index plus its alias.

    Example:
        IndexBootstrapper(client, settings).ensure("people_v1", "people", schema)
    """

    def __init__(
        self,
        client: Elasticsearch,
        settings: ElasticSearchSettings,
        observer: Optional[RequestObserver] = None
    ):
        self._client = client
        self._settings = settings
        self._observer = observer or LoggingRequestObserver()

    def index_body(self, schema: Optional[DocumentSchema] = None) -> Dict[str, Any]:
        """
        Settings and mappings for a new index.

        Args:
            schema: Declared document schema (dynamic mapping if None or empty)

        Returns:
            Dict with ``settings`` and, if a schema is declared, ``mappings``
        """
        body: Dict[str, Any] = {
            "settings": {
                "number_of_shards": self._settings.number_of_shards,
                "number_of_replicas": self._settings.number_of_replicas,
            }
        }
        if schema is not None and schema.fields:
            body["mappings"] = schema.mappings()
        return body

    def ensure(
        self,
        index_name: str,
        alias_name: Optional[str] = None,
        schema: Optional[DocumentSchema] = None
    ) -> bool:
        """
        Make sure ``index_name`` exists and ``alias_name`` resolves to it.

        Args:
            index_name: Concrete index
            alias_name: Alias to bind (skipped if None or equal to index_name)
            schema: Declared document schema

        Returns:
            True if the index was created by this call
        """
        created = False
        if not self._exists(index_name):
            created = self._create(index_name, schema)

        if alias_name and alias_name != index_name:
            if not self._alias_bound(alias_name, index_name):
                self._bind_alias(alias_name, index_name)

        return created

    def _exists(self, index_name: str) -> bool:
        self._observer.on_request("index exists", f"HEAD /{index_name}")
        try:
            return bool(self._client.indices.exists(index=index_name))
        except (ApiError, TransportError) as e:
            raise translate(e, "check index", f"/{index_name}", IndexCreationError) from e

    def _create(self, index_name: str, schema: Optional[DocumentSchema]) -> bool:
        body = self.index_body(schema)
        endpoint = f"PUT /{index_name}"
        self._observer.on_request("create index", endpoint, body)

        try:
            self._client.indices.create(index=index_name, **body)
        except ApiError as e:
            kind = error_type(e)
            if kind == "resource_already_exists_exception":
                logger.info(f"Index {index_name} was created concurrently; keeping it")
                return False
            if kind in MAPPING_ERRORS:
                raise translate(e, "create index mapping", endpoint, MappingError) from e
            raise translate(e, "create index", endpoint, IndexCreationError) from e
        except TransportError as e:
            raise translate(e, "create index", endpoint, IndexCreationError) from e

        logger.info(
            f"Created index {index_name} "
            f"({self._settings.number_of_shards} shards, "
            f"{self._settings.number_of_replicas} replicas)"
        )
        return True

    def _alias_bound(self, alias_name: str, index_name: str) -> bool:
        self._observer.on_request("alias exists", f"HEAD /{index_name}/_alias/{alias_name}")
        try:
            return bool(self._client.indices.exists_alias(name=alias_name, index=index_name))
        except (ApiError, TransportError) as e:
            raise translate(
                e, "check alias", f"/{index_name}/_alias/{alias_name}", AliasError
            ) from e

    def _bind_alias(self, alias_name: str, index_name: str) -> None:
        endpoint = f"PUT /{index_name}/_alias/{alias_name}"
        self._observer.on_request("create alias", endpoint)
        try:
            self._client.indices.put_alias(index=index_name, name=alias_name)
        except (ApiError, TransportError) as e:
            raise translate(e, "create alias", endpoint, AliasError) from e
        logger.info(f"Bound alias {alias_name} -> {index_name}")
