"""
esrepo Observability
====================

Per-request observation hook. Every round trip to the cluster is reported
to a :class:`RequestObserver` before it is sent; the default observer logs
the operation, endpoint and body at DEBUG level.
"""

import json
import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class RequestObserver(Protocol):
    """Side channel invoked before every round trip to the cluster."""

    def on_request(
        self,
        operation: str,
        endpoint: str,
        body: Optional[Any] = None
    ) -> None:
        ...


class LoggingRequestObserver:
    """Logs every request (endpoint and body) at DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def on_request(
        self,
        operation: str,
        endpoint: str,
        body: Optional[Any] = None
    ) -> None:
        if not self._log.isEnabledFor(logging.DEBUG):
            return
        if body is None:
            self._log.debug(f"{operation}: {endpoint}")
        else:
            self._log.debug(
                f"{operation}: {endpoint}\n{json.dumps(body, default=str, indent=2)}"
            )


class NullRequestObserver:
    """Observer that ignores everything."""

    def on_request(
        self,
        operation: str,
        endpoint: str,
        body: Optional[Any] = None
    ) -> None:
        pass
