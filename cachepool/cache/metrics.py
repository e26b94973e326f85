"""
Per-pool operation counters.

Counters are plain integers: pool operations run on a single event loop and
only suspend on driver calls, so increments never interleave.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(slots=True)
class PoolMetrics:
    hits: int = 0
    misses: int = 0
    saves: int = 0
    deletes: int = 0
    clears: int = 0
    backend_errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Share of materialized items that were hits."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record_item(self, is_hit: bool) -> None:
        if is_hit:
            self.hits += 1
        else:
            self.misses += 1

    def snapshot(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = round(self.hit_rate, 4)
        return data

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.saves = 0
        self.deletes = 0
        self.clears = 0
        self.backend_errors = 0
