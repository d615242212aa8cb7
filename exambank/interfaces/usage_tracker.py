"""Abstract base class for the usage-accounting sink.

Providers report every completion and embedding call here.  The sink is
best effort: implementations log their own failures and never raise into
the calling provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IUsageTracker(ABC):
    """Contract for recording model/embedding call cost per invocation."""

    @abstractmethod
    async def log_usage(
        self,
        provider: str,
        model: str,
        tokens_input: int,
        tokens_output: int = 0,
        context: str = "",
    ) -> None:
        """Record one call's token counts and computed cost.

        Parameters
        ----------
        provider:
            Provider identifier, e.g. ``"openai"``.
        model:
            Model identifier used for the call; selects the price row.
        tokens_input, tokens_output:
            Prompt and completion token counts reported by the API.
        context:
            Free-form label of what the call was for (``"question_extraction"``,
            ``"auto_fix"``, ``"embedding"``).
        """

    @abstractmethod
    async def get_summary(self) -> dict[str, Any]:
        """Return totals: ``calls``, ``tokens_input``, ``tokens_output``, ``cost_usd``."""
