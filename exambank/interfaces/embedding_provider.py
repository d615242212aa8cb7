"""Abstract base class for text-embedding providers.

The embedding indexer and the CLI ``search`` command use this contract;
vectors are persisted by :class:`~exambank.interfaces.question_store.IQuestionStore`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (exambank/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the retrieval corpus."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Returns
        -------
        list[list[float]]
            Vectors in the same order as *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        exambank.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text; convenience wrapper around :meth:`embed`."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed vector dimensionality (1536 for text-embedding-3-small)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
