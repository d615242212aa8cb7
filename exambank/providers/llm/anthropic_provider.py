"""Anthropic completion provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Differences from the OpenAI adapter:
    - The system prompt is a top-level parameter, not a message.
    - There is no JSON response mode; ``json_mode`` adds an explicit
      instruction to the system prompt instead, and callers already strip
      code fences and locate the JSON body themselves.
    - Response content is a list of blocks; text blocks are joined.
"""

from __future__ import annotations

import anthropic
import structlog

from exambank.config.settings import Settings
from exambank.interfaces.llm_provider import ILLMProvider
from exambank.interfaces.usage_tracker import IUsageTracker
from exambank.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_JSON_ONLY_SUFFIX = "\n\nRespond with a single valid JSON object and nothing else."


class AnthropicLLMProvider(ILLMProvider):
    """Completion provider backed by the Anthropic Messages API."""

    def __init__(self, settings: Settings, usage_tracker: IUsageTracker | None = None) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key) if self._api_key else None
        self._model = settings.anthropic_model or "claude-sonnet-4-20250514"
        self._usage_tracker = usage_tracker

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        """Generate a completion via the Messages API."""
        system = system_prompt + _JSON_ONLY_SUFFIX if json_mode else system_prompt
        client = self._require_client()
        try:
            response = await client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        if self._usage_tracker is not None:
            await self._usage_tracker.log_usage(
                provider=self.get_provider_name(),
                model=self._model,
                tokens_input=response.usage.input_tokens,
                tokens_output=response.usage.output_tokens,
                context="completion",
            )
        return "\n".join(text_blocks)

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """Send a one-token message to confirm the key is accepted."""
        if not self.is_available():
            return False
        try:
            await self._require_client().messages.create(
                model=self._model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
            return True
        except anthropic.APIError:
            return False

    def _require_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            raise LLMError(
                message="ANTHROPIC_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        return self._client
