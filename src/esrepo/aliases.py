"""
esrepo Aliases
==============

Direct alias and index lifecycle operations. Nothing is cached: every call
is a single round trip against live cluster state.
"""

import logging
from typing import Any, Dict, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError

from .exceptions import AliasError, IndexCreationError, ServerResponseError, translate
from .observability import LoggingRequestObserver, RequestObserver

logger = logging.getLogger(__name__)


class AliasManager:
    """
    Alias binding and index deletion.

    Example:
        manager = AliasManager(client)
        manager.create_alias("people", "people_v2")
        manager.delete_index("people_v1")
    """

    def __init__(
        self,
        client: Elasticsearch,
        observer: Optional[RequestObserver] = None
    ):
        self._client = client
        self._observer = observer or LoggingRequestObserver()

    def create_alias(self, alias_name: str, index_name: str) -> None:
        """
        Bind an alias to an index.

        Args:
            alias_name: Alias name
            index_name: Index name

        Raises:
            AliasError: The cluster rejected the binding
        """
        endpoint = f"PUT /{index_name}/_alias/{alias_name}"
        self._observer.on_request("create alias", endpoint)
        try:
            self._client.indices.put_alias(index=index_name, name=alias_name)
        except (ApiError, TransportError) as e:
            raise translate(e, "create alias", endpoint, AliasError) from e
        logger.info(f"Bound alias {alias_name} -> {index_name}")

    def alias_exists(self, alias_name: str, index_name: Optional[str] = None) -> bool:
        """True if ``alias_name`` exists (on ``index_name``, if given)."""
        endpoint = f"HEAD /{index_name or '_all'}/_alias/{alias_name}"
        self._observer.on_request("alias exists", endpoint)
        kwargs: Dict[str, Any] = {"name": alias_name}
        if index_name:
            kwargs["index"] = index_name
        try:
            return bool(self._client.indices.exists_alias(**kwargs))
        except (ApiError, TransportError) as e:
            raise translate(e, "check alias", endpoint, AliasError) from e

    def delete_index(self, index_name: str) -> None:
        """
        Delete an index together with every alias bound to it.

        Args:
            index_name: Index name

        Raises:
            IndexCreationError: The cluster rejected the deletion
        """
        endpoint = f"DELETE /{index_name}"
        self._observer.on_request("delete index", endpoint)
        try:
            self._client.indices.delete(index=index_name)
        except (ApiError, TransportError) as e:
            raise translate(e, "delete index", endpoint, IndexCreationError) from e
        logger.info(f"Deleted index {index_name}")

    def get_mapping(self, index_name: str) -> Dict[str, Any]:
        """
        Current field mappings of an index.

        Returns:
            Mapping body keyed by concrete index name
        """
        endpoint = f"GET /{index_name}/_mapping"
        self._observer.on_request("get mapping", endpoint)
        try:
            response = self._client.indices.get_mapping(index=index_name)
        except (ApiError, TransportError) as e:
            raise translate(e, "get mapping", endpoint, ServerResponseError) from e
        return dict(response.body)
