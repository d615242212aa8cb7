"""Public interface definitions for every external collaborator.

The pipeline reaches the outside world only through these abstract base
classes; concrete adapters live in ``exambank/providers/`` and are wired
together in ``exambank/main.py``.

    Interface              →  Concrete implementation
    ──────────────────────────────────────────────────────────
    ILLMProvider           →  OpenAILLMProvider, AnthropicLLMProvider
    IEmbeddingProvider     →  OpenAIEmbeddingProvider
    IQuestionStore         →  SQLiteQuestionStore
    IUsageTracker          →  SQLiteUsageTracker
    IObjectStoreProvider   →  HTTPObjectStoreProvider
    INotificationProvider  →  WebhookNotificationProvider
"""

from exambank.interfaces.embedding_provider import IEmbeddingProvider
from exambank.interfaces.llm_provider import ILLMProvider
from exambank.interfaces.notification_provider import INotificationProvider
from exambank.interfaces.object_store_provider import IObjectStoreProvider
from exambank.interfaces.question_store import IQuestionStore
from exambank.interfaces.usage_tracker import IUsageTracker

__all__ = [
    "IEmbeddingProvider",
    "ILLMProvider",
    "INotificationProvider",
    "IObjectStoreProvider",
    "IQuestionStore",
    "IUsageTracker",
]
