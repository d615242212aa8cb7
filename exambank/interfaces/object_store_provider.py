"""Abstract base class for fetching uploaded blobs from object storage.

Uploads land in an object store outside this service; the caller hands the
pipeline a signed download URL and this contract turns it into bytes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IObjectStoreProvider(ABC):
    """Contract for downloading an uploaded file by signed URL."""

    @abstractmethod
    async def download(self, url: str) -> bytes:
        """Fetch the object at *url*.

        Raises
        ------
        exambank.utils.errors.DownloadError
            If the request fails or returns a non-success status.  This
            aborts the whole batch.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"http"``."""
