"""
esrepo Documents
================

Single-document CRUD against a concrete index. Ids are always assigned by
the engine on create; writes honour the configured refresh policy
(``wait_for`` by default) so they are visible to the next read or search.

Deleting a missing id raises :class:`NotFoundError`; it is never a silent
no-op.
"""

import logging
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from elasticsearch import ApiError, Elasticsearch, TransportError

from .exceptions import NotFoundError, ServerResponseError, translate
from .observability import LoggingRequestObserver, RequestObserver
from .schema import DocumentSchema, encode_document

logger = logging.getLogger(__name__)

T = TypeVar("T")

Partial = Union[Dict[str, Any], Any]


class DocumentRepository(Generic[T]):
    """
    Create, read, update, upsert and delete documents of type T.

    Example:
        repo = DocumentRepository(client, "people_v1", schema)
        doc_id = repo.index_document(Person("John Doe", 25, "New York"))
        person = repo.get_document_by_id(doc_id)
    """

    def __init__(
        self,
        client: Elasticsearch,
        index_name: str,
        schema: Optional[DocumentSchema[T]] = None,
        refresh: str = "wait_for",
        observer: Optional[RequestObserver] = None
    ):
        self._client = client
        self.index_name = index_name
        self.schema: DocumentSchema[T] = schema or DocumentSchema([])
        self.refresh = refresh
        self._observer = observer or LoggingRequestObserver()

    def _encode_partial(self, partial: Partial) -> Dict[str, Any]:
        # Partial updates of typed documents are plain dicts
        if isinstance(partial, dict) and self.schema.document_class is not None:
            return encode_document(partial)
        return self.schema.serialize(partial)

    def index_document(self, document: T) -> str:
        """
        Write a new document with an engine-generated id.

        Args:
            document: Document to store

        Returns:
            The generated ``_id``
        """
        body = self.schema.serialize(document)
        endpoint = f"POST /{self.index_name}/_doc"
        self._observer.on_request("index document", endpoint, body)

        try:
            response = self._client.index(
                index=self.index_name,
                document=body,
                refresh=self.refresh
            )
        except (ApiError, TransportError) as e:
            raise translate(e, "index document", endpoint, ServerResponseError) from e

        result = response.body
        doc_id = result.get("_id")
        if not doc_id:
            message = f"Failed to index document ({endpoint}): response carried no _id"
            logger.error(message)
            raise ServerResponseError(message, endpoint=endpoint, server_error=result)

        return doc_id

    def get_document_by_id(self, document_id: str) -> T:
        """
        Fetch a document from the concrete index.

        Raises:
            NotFoundError: No document with that id
        """
        endpoint = f"GET /{self.index_name}/_doc/{document_id}"
        self._observer.on_request("get document", endpoint)

        try:
            response = self._client.get(index=self.index_name, id=document_id)
        except (ApiError, TransportError) as e:
            raise translate(
                e, "get document", endpoint, ServerResponseError, not_found=NotFoundError
            ) from e

        result = response.body
        if not result.get("found", True) or "_source" not in result:
            message = f"Document with ID {document_id} not found."
            logger.error(message)
            raise NotFoundError(message, endpoint=endpoint)

        return self.schema.deserialize(result["_source"])

    def update_document(self, document_id: str, partial: Partial) -> None:
        """
        Merge ``partial`` into an existing document (field-level overwrite).

        Raises:
            NotFoundError: No document with that id
            ServerResponseError: The update was rejected
        """
        doc = self._encode_partial(partial)
        endpoint = f"POST /{self.index_name}/_update/{document_id}"
        self._observer.on_request("update document", endpoint, {"doc": doc})

        try:
            self._client.update(
                index=self.index_name,
                id=document_id,
                doc=doc,
                refresh=self.refresh
            )
        except (ApiError, TransportError) as e:
            raise translate(
                e, "update document", endpoint, ServerResponseError, not_found=NotFoundError
            ) from e

    def upsert_document(self, document_id: str, partial: Partial) -> None:
        """
        Merge ``partial`` into the document at ``document_id``, or create it
        with ``partial`` as its full body if the id is unclaimed.
        """
        doc = self._encode_partial(partial)
        endpoint = f"POST /{self.index_name}/_update/{document_id}"
        self._observer.on_request("upsert document", endpoint, {"doc": doc, "upsert": doc})

        try:
            self._client.update(
                index=self.index_name,
                id=document_id,
                doc=doc,
                upsert=doc,
                refresh=self.refresh
            )
        except (ApiError, TransportError) as e:
            raise translate(e, "upsert document", endpoint, ServerResponseError) from e

    def delete_document(self, document_id: str) -> None:
        """
        Remove the document at ``document_id``.

        Raises:
            NotFoundError: No document with that id
        """
        endpoint = f"DELETE /{self.index_name}/_doc/{document_id}"
        self._observer.on_request("delete document", endpoint)

        try:
            self._client.delete(
                index=self.index_name,
                id=document_id,
                refresh=self.refresh
            )
        except (ApiError, TransportError) as e:
            raise translate(
                e, "delete document", endpoint, ServerResponseError, not_found=NotFoundError
            ) from e
