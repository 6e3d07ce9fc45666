"""Shared request template and HTTP client used by every dispatch worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import aiohttp

from slt._internal.errors import FatalTransportError

if TYPE_CHECKING:
    from slt._internal.config import RunConfig
    from slt._internal.types import Headers


@dataclass(frozen=True)
class RequestTemplate:
    """A GET request built once per run and reused by every worker.

    Attributes:
        url: Target URL.
        headers: Read-only request headers.
        method: HTTP method. Always ``GET``.
    """

    url: str
    headers: Headers = field(default_factory=lambda: MappingProxyType({}))
    method: str = "GET"

    @classmethod
    def from_config(cls, config: RunConfig) -> RequestTemplate:
        """Build the template for a run configuration."""
        return cls(url=config.url, headers=MappingProxyType(dict(config.headers)))


class LoadClient:
    """Async HTTP client wrapping one ``aiohttp.ClientSession``.

    The session and its timeout are fixed when the context is entered and
    shared by all concurrent workers for the whole run.

    Attributes:
        timeout_seconds: Total time budget for one request.
    """

    def __init__(self, timeout_seconds: float, connection_limit: int = 0) -> None:
        """Initialize the client.

        Args:
            timeout_seconds: Total time budget for one request.
            connection_limit: Maximum open connections. 0 means unlimited.
        """
        self.timeout_seconds = timeout_seconds
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._connection_limit = connection_limit
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> LoadClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=aiohttp.TCPConnector(limit=self._connection_limit),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(self, template: RequestTemplate) -> int:
        """Send one request described by ``template``.

        The response body is read and released before returning so the
        connection can be reused.

        Args:
            template: The shared request template.

        Returns:
            The HTTP status code of the response.

        Raises:
            FatalTransportError: If no response was received (connection
                refused, DNS failure, timeout, broken payload).
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "LoadClient must be used as an async context manager"
            raise RuntimeError(msg)

        try:
            async with self._session.request(
                template.method,
                template.url,
                headers=dict(template.headers),
            ) as resp:
                await resp.read()
                return resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise FatalTransportError(template.url, exc) from exc
