"""Token usage tracking — a ready-made usage callback for the orchestrator.

Keeps running per-model totals in memory and logs a one-line summary for
every completed chat call or stream.
"""

import logging

from carrot.domain.entities import TokenUsage

logger = logging.getLogger(__name__)


class UsageTracker:
    """Accumulates token usage across calls.

    Usage:
        tracker = UsageTracker()
        orchestrator = ChatOrchestrator(backend, on_usage=tracker)
        ...
        tracker.total.total_tokens
    """

    def __init__(self, feature: str = "chat"):
        self._feature = feature
        self._by_model: dict[str, TokenUsage] = {}
        self._calls = 0

    def __call__(self, usage: TokenUsage, model: str) -> None:
        self._calls += 1
        self._by_model[model] = self._by_model.get(model, TokenUsage()) + usage

        logger.info(
            "LLM [%s] model=%s tokens=%d (in=%d out=%d)",
            self._feature,
            model,
            usage.total_tokens,
            usage.input_tokens,
            usage.output_tokens,
        )

    @property
    def calls(self) -> int:
        return self._calls

    @property
    def total(self) -> TokenUsage:
        total = TokenUsage()
        for usage in self._by_model.values():
            total = total + usage
        return total

    def for_model(self, model: str) -> TokenUsage:
        return self._by_model.get(model, TokenUsage())

    def reset(self) -> None:
        self._by_model.clear()
        self._calls = 0
