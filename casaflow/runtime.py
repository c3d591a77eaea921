"""Per-invocation runtime budget and the summary every orchestrator run returns."""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

DEFAULT_MAX_RUNTIME_SECONDS = 110.0


class RuntimeBudget:
    """
    Wall-clock budget for one invocation.

    Checked before starting each new batch, review or workflow. Work already
    in flight is never interrupted.
    """

    def __init__(self, max_seconds: float = DEFAULT_MAX_RUNTIME_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.max_seconds = max_seconds
        self._clock = clock
        self._start = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)

    def expired(self) -> bool:
        return self.elapsed > self.max_seconds


@dataclass
class RunSummary:
    """Counters returned by every orchestrator run."""

    mode: str
    processed: int = 0
    events_processed: int = 0
    workflows_advanced: int = 0
    actions_taken: int = 0
    notifications_sent: int = 0
    total_tokens: int = 0
    duration_ms: int = 0
    errors: List[str] = field(default_factory=list)

    def add_loop(self, result) -> None:
        """Fold one LoopResult into the counters."""
        self.actions_taken += result.actions_taken
        self.notifications_sent += result.notifications_sent
        self.total_tokens += result.token_usage.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "processed": self.processed,
            "events_processed": self.events_processed,
            "workflows_advanced": self.workflows_advanced,
            "actions_taken": self.actions_taken,
            "notifications_sent": self.notifications_sent,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
            "total_tokens": self.total_tokens,
        }
