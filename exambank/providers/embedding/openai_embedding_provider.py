"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Uses ``text-embedding-3-small`` at 1536 dimensions by default; newlines are
flattened to spaces before embedding.
"""

from __future__ import annotations

import openai
import structlog

from exambank.config.settings import Settings
from exambank.interfaces.embedding_provider import IEmbeddingProvider
from exambank.interfaces.usage_tracker import IUsageTracker
from exambank.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

# text-embedding-3-* accept a ``dimensions`` argument; ada-002 does not.
_SUPPORTS_DIMENSIONS = ("text-embedding-3-",)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(self, settings: Settings, usage_tracker: IUsageTracker | None = None) -> None:
        self._api_key = settings.openai_api_key
        client_kwargs: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)
        self._usage_tracker = usage_tracker
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, splitting into API-sized batches when needed."""
        if not texts:
            return []

        cleaned = [text.replace("\n", " ") for text in texts]
        request: dict = {"model": self._model}
        if self._model.startswith(_SUPPORTS_DIMENSIONS):
            request["dimensions"] = self._dimension

        client = self._require_client()
        all_embeddings: list[list[float]] = []
        try:
            for start in range(0, len(cleaned), _OPENAI_BATCH_LIMIT):
                batch = cleaned[start : start + _OPENAI_BATCH_LIMIT]
                response = await client.embeddings.create(input=batch, **request)
                all_embeddings.extend(item.embedding for item in response.data)
                tokens = response.usage.total_tokens if response.usage else None
                logger.debug(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=tokens,
                )
                if self._usage_tracker is not None and tokens is not None:
                    await self._usage_tracker.log_usage(
                        provider=self._provider_label,
                        model=self._model,
                        tokens_input=tokens,
                        context="embedding",
                    )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        if not result:
            raise EmbeddingError(
                message=f"{self._provider_label} returned no embedding",
                provider_name=self.get_provider_name(),
            )
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise EmbeddingError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        return self._client
