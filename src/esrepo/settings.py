"""
esrepo Settings
===============

Connection and index-topology configuration. Values can be given directly
or read from ``ES_*`` environment variables via
:meth:`ElasticSearchSettings.from_env`.
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .exceptions import ConfigurationError

DEFAULT_URL = "http://localhost:9200"

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class ElasticSearchSettings:
    """
    Settings for one repository handle.

    Attributes:
        url: Node URL, or a comma-separated list of node URLs
        username: Basic-auth user (auth is skipped when empty)
        password: Basic-auth password
        index_name: Default index name for tools that need one
        single_node: Target exactly one host instead of a pool
        number_of_shards: Primary shards for newly created indices
        number_of_replicas: Replica shards for newly created indices
        request_timeout: Per-request timeout in seconds
        verify_certs: Verify TLS certificates
        ca_certs: Path to a CA bundle for self-signed clusters
        insecure_skip_tls_verify: Disable certificate verification entirely
        refresh: Refresh policy applied to writes
    """

    url: str = DEFAULT_URL
    username: str = ""
    password: str = ""
    index_name: str = ""
    single_node: bool = False
    number_of_shards: int = 1
    number_of_replicas: int = 0
    request_timeout: int = 30
    verify_certs: bool = True
    ca_certs: Optional[str] = None
    insecure_skip_tls_verify: bool = False
    refresh: str = "wait_for"

    def hosts(self) -> List[str]:
        """Host list the session should target."""
        if self.single_node:
            url = self.url.strip()
            if "," in url:
                raise ConfigurationError(
                    f"single_node is set but url lists several hosts: {self.url}"
                )
            return [url]

        hosts = [h.strip() for h in self.url.split(",") if h.strip()]
        if not hosts:
            raise ConfigurationError("url does not contain any host")
        return hosts

    def validate(self) -> "ElasticSearchSettings":
        """Check invariants; returns self so it can be chained."""
        if not self.url or not self.url.strip():
            raise ConfigurationError("url is required")
        if self.number_of_shards < 1:
            raise ConfigurationError(
                f"number_of_shards must be >= 1, got {self.number_of_shards}"
            )
        if self.number_of_replicas < 0:
            raise ConfigurationError(
                f"number_of_replicas must be >= 0, got {self.number_of_replicas}"
            )
        self.hosts()
        return self

    @property
    def tls_verification_enabled(self) -> bool:
        return self.verify_certs and not self.insecure_skip_tls_verify

    @classmethod
    def from_env(
        cls,
        prefix: str = "ES_",
        environ: Optional[Mapping[str, str]] = None
    ) -> "ElasticSearchSettings":
        """
        Build settings from environment variables.

        Args:
            prefix: Variable prefix (``ES_URL``, ``ES_USERNAME``, ...)
            environ: Mapping to read instead of ``os.environ``

        Returns:
            Validated settings
        """
        env = os.environ if environ is None else environ

        return cls(
            url=env.get(f"{prefix}URL", DEFAULT_URL),
            username=env.get(f"{prefix}USERNAME", ""),
            password=env.get(f"{prefix}PASSWORD", ""),
            index_name=env.get(f"{prefix}INDEX_NAME", ""),
            single_node=_env_bool(env, f"{prefix}SINGLE_NODE", False),
            number_of_shards=_env_int(env, f"{prefix}NUMBER_OF_SHARDS", 1),
            number_of_replicas=_env_int(env, f"{prefix}NUMBER_OF_REPLICAS", 0),
            request_timeout=_env_int(env, f"{prefix}TIMEOUT", 30),
            verify_certs=_env_bool(env, f"{prefix}VERIFY_CERTS", True),
            ca_certs=env.get(f"{prefix}CA_CERTS") or None,
            insecure_skip_tls_verify=_env_bool(
                env, f"{prefix}INSECURE_SKIP_TLS_VERIFY", False
            ),
            refresh=env.get(f"{prefix}REFRESH", "wait_for"),
        ).validate()
