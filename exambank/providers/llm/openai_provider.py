"""OpenAI-compatible completion provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When ``openai_base_url`` is configured (TogetherAI, Azure proxies,
Fireworks ...) the client points at that URL instead of the default
OpenAI endpoint.  JSON mode maps onto ``response_format``.
"""

from __future__ import annotations

import openai
import structlog

from exambank.config.settings import Settings
from exambank.interfaces.llm_provider import ILLMProvider
from exambank.interfaces.usage_tracker import IUsageTracker
from exambank.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

# Extraction prompts carry up to ~30k characters of document text and ask
# for 15 full questions back, so allow well beyond a chat-sized timeout.
_REQUEST_TIMEOUT_SECONDS = 120.0


class OpenAILLMProvider(ILLMProvider):
    """Completion provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o`` by default; override with ``OPENAI_TEXT_MODEL``.
    """

    def __init__(self, settings: Settings, usage_tracker: IUsageTracker | None = None) -> None:
        self._api_key = settings.openai_api_key
        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(_REQUEST_TIMEOUT_SECONDS, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        # The SDK refuses to build a client without a key.
        self._client = openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        self._model = settings.openai_text_model or "gpt-4o"
        self._usage_tracker = usage_tracker
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion via the chat completions API."""
        request: dict = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        client = self._require_client()
        try:
            response = await client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out after {_REQUEST_TIMEOUT_SECONDS:.0f}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )

        usage = response.usage
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            json_mode=json_mode,
            tokens=usage.total_tokens if usage else None,
        )
        if self._usage_tracker is not None and usage is not None:
            await self._usage_tracker.log_usage(
                provider=self._provider_label,
                model=self._model,
                tokens_input=usage.prompt_tokens,
                tokens_output=usage.completion_tokens,
                context="completion",
            )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """List models to confirm the key is accepted without inference cost."""
        if not self.is_available():
            return False
        try:
            await self._require_client().models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        return self._provider_label

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise LLMError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        return self._client
