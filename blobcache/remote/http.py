"""
HTTP remote store.

Wire contract:
    GET    {endpoint}/{table}/{key}   -> 2xx raw body | 404 | other
    POST   {endpoint}/{table}/{key}   raw body
    DELETE {endpoint}/{table}/{key}

Every request carries the Authorization header from RemoteTableConfig.
Redirects are not followed; a 3xx is treated as an unexpected status.
"""

import logging
import ssl
from typing import Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.remote import RemoteTableConfig
from ..errors import ConfigError, NotFoundError, TransportError
from .base import RemoteStore

logger = logging.getLogger(__name__)

# Backoff between transport retries, doubled per attempt
RETRY_BACKOFF = 0.1
RETRY_BACKOFF_MAX = 5.0


def client_ssl_context(cert_path: str) -> ssl.SSLContext:
    """
    TLS context presenting a client certificate.

    Args:
        cert_path: PEM file holding the certificate and its private key

    Raises:
        ConfigError: If the file cannot be read or is not a valid identity
    """
    context = ssl.create_default_context()
    try:
        context.load_cert_chain(cert_path)
    except (OSError, ssl.SSLError) as e:
        raise ConfigError(f"cannot load client certificate {cert_path!r}: {e}") from e
    return context


class HttpRemoteStore(RemoteStore):
    """
    RemoteStore over one HTTP table using httpx.

    Usage:
        store = HttpRemoteStore(config)
        data = await store.fetch("images/a.bin")
        await store.close()

    Attributes:
        config: The remote table this store is bound to
    """

    def __init__(
            self,
            config: RemoteTableConfig,
            client: Optional[httpx.AsyncClient] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the store.

        Args:
            config: Endpoint, auth and table to talk to
            client: Pre-built client to use instead of creating one
            transport: httpx transport for the created client (tests pass
                an httpx.MockTransport here)
        """
        self.config = config
        self._owns_client = client is None
        if client is None:
            verify = client_ssl_context(config.client_cert) if config.client_cert else True
            client = httpx.AsyncClient(
                timeout=config.timeout,
                follow_redirects=False,
                verify=verify,
                transport=transport,
            )
        self._client = client

    def url_for(self, key: str) -> str:
        """Absolute URL of a key within the bound table."""
        return f"{self.config.endpoint}/{quote(self.config.table, safe='')}/{quote(key, safe='/:')}"

    async def fetch(self, key: str) -> bytes:
        response = await self._send("GET", key)
        if response.status_code == 404:
            raise NotFoundError(key)
        self._check_status(key, response)
        return response.content

    async def put(self, key: str, data: bytes) -> None:
        response = await self._send("POST", key, content=bytes(data))
        self._check_status(key, response)

    async def delete(self, key: str) -> None:
        response = await self._send("DELETE", key)
        if response.status_code == 404:
            return
        self._check_status(key, response)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, key: str, content: Optional[bytes] = None) -> httpx.Response:
        """
        Issue one request, retrying transport failures up to max_retries.

        Unexpected statuses are returned, not retried here; the caller
        decides what they mean.
        """
        url = self.url_for(key)
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.HTTPError),
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_exponential(multiplier=RETRY_BACKOFF, max=RETRY_BACKOFF_MAX),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._client.request(
                        method,
                        url,
                        content=content,
                        headers={"Authorization": self.config.authorization},
                    )
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e!r}")
            raise TransportError(f"{method} {key!r} failed: {e}", key=key) from e

    @staticmethod
    def _check_status(key: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        logger.error(f"{response.request.method} {response.request.url} returned {response.status_code}")
        raise TransportError(
            f"unexpected status {response.status_code} for {key!r}",
            key=key,
            status_code=response.status_code,
        )
