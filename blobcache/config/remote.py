"""
Remote table configuration.

CacheConfig is the staging area: fields may be filled in one at a time
(directly, via the with_* helpers, or from the environment). Nothing is
checked until validate(), which runs once and produces the immutable
RemoteTableConfig used by the remote store.
"""

from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple
from urllib.parse import urlparse

from ..errors import ConfigError
from .settings import settings

# Transform applied to every chunk on the way to and from the remote table
Reducer = Callable[[bytes], bytes]


@dataclass(frozen=True)
class RemoteTableConfig:
    """
    Identifies the remote namespace backing one cache instance.

    Attributes:
        endpoint: Base URL of the remote KV service, without trailing slash
        auth: Value for the Authorization header (bearer credential)
        table: Logical table / namespace name
        timeout: Per-request timeout in seconds
        max_retries: Extra attempts after a transport failure (0 = none)
        client_cert: PEM file with a TLS client certificate and key
    """
    endpoint: str
    auth: str
    table: str
    timeout: float = 30.0
    max_retries: int = 0
    client_cert: Optional[str] = None

    @property
    def authorization(self) -> str:
        """Authorization header value; a bare token gets the Bearer scheme."""
        if " " in self.auth.strip():
            return self.auth.strip()
        return f"Bearer {self.auth.strip()}"


@dataclass(frozen=True)
class CacheConfig:
    """
    Staged configuration for a CacheHandler.

    Capacity left unset on both bounds falls back to MAX_ENTRIES and
    MAX_BYTES from settings.

    Usage:
        config = CacheConfig(endpoint="https://kv.example.com")
        config = config.with_auth("secret").with_table("fs")
        handler = CacheHandler.from_config(config)
    """
    endpoint: Optional[str] = None
    auth: Optional[str] = None
    table: Optional[str] = None
    max_entries: Optional[int] = None
    max_bytes: Optional[int] = None
    timeout: float = 30.0
    max_retries: int = 0
    chunk_size: Optional[int] = None
    client_cert: Optional[str] = None
    reducer: Optional[Reducer] = None

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Build a staged config from the BLOB_CACHE_* environment settings."""
        return cls(
            endpoint=settings.ENDPOINT or None,
            auth=settings.AUTH or None,
            table=settings.TABLE or None,
            max_entries=settings.MAX_ENTRIES or None,
            max_bytes=settings.MAX_BYTES or None,
            timeout=settings.REQUEST_TIMEOUT,
            max_retries=settings.MAX_RETRIES,
            chunk_size=settings.CHUNK_SIZE or None,
            client_cert=settings.CLIENT_CERT or None,
        )

    def with_endpoint(self, endpoint: str) -> "CacheConfig":
        return replace(self, endpoint=endpoint)

    def with_auth(self, auth: str) -> "CacheConfig":
        return replace(self, auth=auth)

    def with_table(self, table: str) -> "CacheConfig":
        return replace(self, table=table)

    def with_capacity(self, max_entries: Optional[int] = None, max_bytes: Optional[int] = None) -> "CacheConfig":
        return replace(self, max_entries=max_entries, max_bytes=max_bytes)

    def with_client_cert(self, client_cert: str) -> "CacheConfig":
        return replace(self, client_cert=client_cert)

    def with_reducer(self, reducer: Reducer) -> "CacheConfig":
        return replace(self, reducer=reducer)

    def capacity(self) -> Tuple[Optional[int], Optional[int]]:
        """(max_entries, max_bytes) for the LRU cache, defaulted from settings."""
        if self.max_entries is None and self.max_bytes is None:
            return settings.MAX_ENTRIES or None, settings.MAX_BYTES or None
        return self.max_entries, self.max_bytes

    def validate(self) -> RemoteTableConfig:
        """
        Check the staged values and freeze them.

        Returns:
            The RemoteTableConfig for the remote store

        Raises:
            ConfigError: If endpoint, auth or table is missing, the endpoint
                is not an http(s) URL, or a numeric option is out of range
        """
        missing = [name for name in ("endpoint", "auth", "table") if not (getattr(self, name) or "").strip()]
        if missing:
            raise ConfigError(f"missing required option(s): {', '.join(missing)}")

        endpoint = self.endpoint.strip().rstrip("/")
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"endpoint must be an http(s) URL: {self.endpoint!r}")

        table = self.table.strip().strip("/")
        if not table or "/" in table:
            raise ConfigError(f"invalid table name: {self.table!r}")

        max_entries, max_bytes = self.capacity()
        if max_entries is None and max_bytes is None:
            raise ConfigError("no cache capacity: set max_entries or max_bytes")
        for name, value in (("max_entries", max_entries), ("max_bytes", max_bytes), ("chunk_size", self.chunk_size)):
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must not be negative, got {self.max_retries}")
        if self.reducer is not None and not callable(self.reducer):
            raise ConfigError("reducer must be callable")

        return RemoteTableConfig(
            endpoint=endpoint,
            auth=self.auth,
            table=table,
            timeout=self.timeout,
            max_retries=self.max_retries,
            client_cert=self.client_cert or None,
        )
