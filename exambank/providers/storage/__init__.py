"""Object-store download adapters."""

from exambank.providers.storage.http_object_store import HTTPObjectStoreProvider

__all__ = ["HTTPObjectStoreProvider"]
