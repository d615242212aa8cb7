"""Abstract base class for generative completion providers.

Both the question extractor and the auto-fix loop talk to the language
model exclusively through :class:`ILLMProvider`, so the pipeline never
constructs an SDK client itself and tests can inject a fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: exambank/providers/llm/
class ILLMProvider(ABC):
    """Contract for chat-style completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion for a system + user prompt pair.

        Parameters
        ----------
        system_prompt:
            The instruction message that sets the model's behaviour.
        user_prompt:
            The request itself, including any document text.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the number of tokens in the response.
        json_mode:
            Ask the provider to constrain output to a JSON object where the
            backend supports it.  Callers must still parse defensively.

        Returns
        -------
        str
            The model's raw text response.

        Raises
        ------
        exambank.utils.errors.LLMError
            If the API call fails or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"`` or ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured (no network call)."""

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight API call to confirm the credentials work."""
