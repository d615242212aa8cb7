"""Completion provider adapters.

Two concrete implementations of ILLMProvider (exambank/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o (also OpenAI-compatible gateways)
    - AnthropicLLMProvider -- Claude via the Messages API

main.py picks one from LLM_PROVIDER and the configured API keys.
"""

from exambank.providers.llm.anthropic_provider import AnthropicLLMProvider
from exambank.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
