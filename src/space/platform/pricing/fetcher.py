"""
Retrieval of URL-backed pricing documents.

Remote documents are fetched with httpx under a hard deadline; pricings
whose locator is a local path (``public/...``) are read from disk.
"""

import asyncio
from pathlib import Path

import httpx

from space.platform.exceptions import RemoteFetchError, RemoteFetchTimeoutError
from space.platform.logging import get_logger
from space.platform.pricing.models import Pricing
from space.platform.pricing.parser import parse_pricing_document

logger = get_logger(__name__)


class PricingFetcher:
    """Fetches and parses pricing documents referenced by URL."""

    def __init__(
        self,
        timeout: float = 5.0,
        verify_ssl: bool = False,
        local_root: str = "public",
        base_dir: str | Path = ".",
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.local_root = local_root.rstrip("/") + "/"
        self.base_dir = Path(base_dir)
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            verify=verify_ssl,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )

    def is_local(self, url: str) -> bool:
        return url.startswith(self.local_root)

    async def fetch(self, url: str) -> Pricing:
        """Retrieve and parse the pricing at ``url``.

        Raises:
            RemoteFetchTimeoutError: If the host does not answer in time
            RemoteFetchError: If the document cannot be retrieved
            InvalidPricingError: If the document is not a valid pricing
        """
        if self.is_local(url):
            content = await self._read_local(url)
        else:
            content = await self._get_remote(url)
        return parse_pricing_document(content, source=url)

    async def _read_local(self, path: str) -> str:
        target = (self.base_dir / path).resolve()
        if not target.is_relative_to((self.base_dir / self.local_root).resolve()):
            logger.warning("pricing.fetch.outside_local_root", path=path)
            raise RemoteFetchError(f"Pricing file {path} is outside {self.local_root}", url=path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except OSError as e:
            logger.error("pricing.fetch.local_failed", path=path, error=str(e))
            raise RemoteFetchError(f"Could not read pricing file {path}", url=path) from e

    async def _get_remote(self, url: str) -> str:
        try:
            async with asyncio.timeout(self.timeout):
                response = await self._client.get(url)
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error("pricing.fetch.timeout", url=url, timeout=self.timeout)
            raise RemoteFetchTimeoutError(
                f"Timed out fetching pricing from {url}", url=url, timeout=self.timeout
            ) from e
        except httpx.HTTPError as e:
            logger.error("pricing.fetch.failed", url=url, error=str(e))
            raise RemoteFetchError(f"Could not fetch pricing from {url}: {e}", url=url) from e

        if not response.is_success:
            logger.error("pricing.fetch.bad_status", url=url, status=response.status_code)
            raise RemoteFetchError(
                f"Failed to fetch pricing from {url}: HTTP {response.status_code}",
                url=url,
                status=response.status_code,
            )

        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()
