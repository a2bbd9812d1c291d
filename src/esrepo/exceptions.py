"""
esrepo Exceptions
=================

Error taxonomy for every repository operation. Each error carries the
endpoint it was raised for and, where the engine supplied one, the raw
server error payload.

Low-level ``elasticsearch`` exceptions are mapped onto this taxonomy by
:func:`translate`; the original exception is always chained.
"""

import logging
from typing import Any, Optional, Type

from elasticsearch import ApiError
from elasticsearch import ConnectionError as ESConnectionError

logger = logging.getLogger(__name__)


class ESRepoError(Exception):
    """Base class for all esrepo failures."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        server_error: Any = None
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.server_error = server_error


class ClusterConnectionError(ESRepoError):
    """The session could not reach any configured host."""


class IndexCreationError(ESRepoError):
    """Index creation or deletion was rejected."""


class MappingError(ESRepoError):
    """Schema derivation or mapping creation was rejected."""


class AliasError(ESRepoError):
    """Alias binding was rejected."""


class NotFoundError(ESRepoError):
    """The requested document (or index) does not exist."""


class ServerResponseError(ESRepoError):
    """A read, write or search returned an invalid or error response."""


class SerializationError(ESRepoError):
    """A document could not be encoded or decoded against its schema."""


class ConfigurationError(ESRepoError):
    """Settings are incomplete or contradictory."""


def error_type(exc: Exception) -> Optional[str]:
    """Return the engine's error type (e.g. ``index_not_found_exception``)."""
    if isinstance(exc, ApiError):
        body = exc.body
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return body["error"].get("type")
    return None


def server_payload(exc: Exception) -> Any:
    """Raw server error payload, if the exception carries one."""
    if isinstance(exc, ApiError):
        return exc.body
    return None


def translate(
    exc: Exception,
    operation: str,
    endpoint: str,
    default: Type[ESRepoError] = ServerResponseError,
    not_found: Optional[Type[ESRepoError]] = None
) -> ESRepoError:
    """
    Map a low-level client exception onto the esrepo taxonomy and log it.

    Args:
        exc: Exception raised by the ``elasticsearch`` client
        operation: Human-readable operation name ("index document", ...)
        endpoint: Target endpoint, e.g. ``people/_doc``
        default: Error class for rejections
        not_found: Error class for HTTP 404 responses (``default`` if None)

    Returns:
        The translated exception, ready to be raised ``from exc``
    """
    if isinstance(exc, ESRepoError):
        return exc

    payload = server_payload(exc)

    if isinstance(exc, ESConnectionError):
        cls: Type[ESRepoError] = ClusterConnectionError
    elif isinstance(exc, ApiError) and exc.status_code == 404 and not_found is not None:
        cls = not_found
    else:
        cls = default

    message = f"Failed to {operation} ({endpoint}): {exc}"
    logger.error(f"{message}. Server error: {payload}")
    return cls(message, endpoint=endpoint, server_error=payload)
