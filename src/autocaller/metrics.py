"""Process-wide turn counters exposed on /metrics."""

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class TurnMetrics:
    """Counters only; nothing here is read back by turn handling."""
    start_time: float = field(default_factory=time.time)
    total_turns: int = 0
    errors: int = 0
    responses: Counter = field(default_factory=Counter)
    fallbacks: Counter = field(default_factory=Counter)

    def record_response(self, kind: str) -> None:
        self.total_turns += 1
        self.responses[kind] += 1

    def record_fallback(self, reason: str) -> None:
        self.fallbacks[reason] += 1

    def record_error(self) -> None:
        self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_seconds": round(time.time() - self.start_time, 2),
            "total_turns": self.total_turns,
            "errors": self.errors,
            "responses": dict(self.responses),
            "fallbacks": dict(self.fallbacks),
        }
