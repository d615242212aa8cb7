"""HTTP object-store download adapter.

Uploads live in an external object store; the caller hands over a signed
URL and this adapter fetches it.  The ``httpx.AsyncClient`` is injected
for connection pooling and testability.
"""

from __future__ import annotations

import httpx
import structlog

from exambank.interfaces.object_store_provider import IObjectStoreProvider
from exambank.utils.errors import DownloadError

logger = structlog.get_logger(logger_name=__name__)


class HTTPObjectStoreProvider(IObjectStoreProvider):
    """Downloads uploaded blobs by signed URL over HTTP(S)."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def download(self, url: str) -> bytes:
        try:
            response = await self._http.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DownloadError(
                message=f"Could not download upload: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("upload_downloaded", bytes=len(response.content))
        return response.content

    def get_provider_name(self) -> str:
        return "http"
