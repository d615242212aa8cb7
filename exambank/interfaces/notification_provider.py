"""Abstract base class for the downstream notification collaborator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class INotificationProvider(ABC):
    """Contract for emitting pipeline events to an external notifier.

    Delivery (push, email, chat) is the collaborator's concern; the
    pipeline only emits an event name and a JSON-serializable payload.
    """

    @abstractmethod
    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        """Emit *event* with *payload*.

        Raises
        ------
        exambank.utils.errors.ExamBankError
            If delivery fails.  The orchestrator logs and ignores it.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"webhook"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if a delivery target is configured."""
