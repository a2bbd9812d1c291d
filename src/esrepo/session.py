"""
esrepo Session
==============

Builds the shared client handle. The ``elasticsearch`` client is
thread-safe and pools connections per node, so one handle is built per
repository and reused by every call.
"""

import logging
from typing import Any, Dict

from elasticsearch import AsyncElasticsearch, Elasticsearch

from .settings import ElasticSearchSettings

logger = logging.getLogger(__name__)


class SessionFactory:
    """
    Build sync or async Elasticsearch clients from settings.

    Example:
        settings = ElasticSearchSettings(url="https://es1:9200,https://es2:9200")
        client = SessionFactory.create(settings)
    """

    @staticmethod
    def connection_kwargs(settings: ElasticSearchSettings) -> Dict[str, Any]:
        """
        Keyword arguments shared by the sync and async clients.

        Args:
            settings: Validated settings

        Returns:
            Dict suitable for ``Elasticsearch(**kwargs)``
        """
        settings.validate()

        conn_kwargs: Dict[str, Any] = {
            "hosts": settings.hosts(),
            "request_timeout": settings.request_timeout,
            "verify_certs": settings.tls_verification_enabled,
        }

        if settings.username:
            conn_kwargs["basic_auth"] = (settings.username, settings.password)

        if settings.ca_certs:
            conn_kwargs["ca_certs"] = settings.ca_certs

        if settings.insecure_skip_tls_verify:
            logger.warning(
                "TLS certificate verification is disabled "
                "(insecure_skip_tls_verify=True)"
            )
            conn_kwargs["ssl_show_warn"] = False

        return conn_kwargs

    @classmethod
    def create(cls, settings: ElasticSearchSettings) -> Elasticsearch:
        """Build a blocking client."""
        conn_kwargs = cls.connection_kwargs(settings)
        logger.debug(f"Creating Elasticsearch client for {conn_kwargs['hosts']}")
        return Elasticsearch(**conn_kwargs)

    @classmethod
    def create_async(cls, settings: ElasticSearchSettings) -> AsyncElasticsearch:
        """Build an asyncio client with the same connection options."""
        conn_kwargs = cls.connection_kwargs(settings)
        logger.debug(f"Creating AsyncElasticsearch client for {conn_kwargs['hosts']}")
        return AsyncElasticsearch(**conn_kwargs)
