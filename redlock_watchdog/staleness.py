"""Per-key stale streak accounting driven by successive counter snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional


def _counter_value(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def counters_equal(previous: str, current: str) -> bool:
    """Compare two counter values numerically.

    A value that is not an integer never equals anything, so a lock whose
    counter holds garbage is treated as changed and never reclaimed.
    """

    left, right = _counter_value(previous), _counter_value(current)
    if left is None or right is None:
        return False
    return left == right


@dataclass
class Observation:
    """Outcome of feeding one snapshot to :class:`StalenessTracker`."""

    stale: List[str] = field(default_factory=list)
    reconciled: List[str] = field(default_factory=list)


class StalenessTracker:
    """Counts consecutive cycles in which a lock's counter did not move.

    ``streaks`` maps a lock key to its stale streak, ``previous`` holds the
    snapshot observed on the prior cycle.  Both are process-local and safe to
    lose: a fresh tracker simply starts counting from zero again.
    """

    def __init__(self, threshold: int) -> None:
        self.threshold = threshold
        self.streaks: Dict[str, int] = {}
        self.previous: Dict[str, str] = {}

    def observe(self, snapshot: Mapping[str, str]) -> Observation:
        observation = Observation()

        for key, current in snapshot.items():
            previous = self.previous.get(key, "0")
            if not counters_equal(previous, current):
                self.streaks[key] = 0
            else:
                self.streaks[key] = self.streaks.get(key, 0) + 1

            if self.streaks[key] >= self.threshold:
                observation.stale.append(key)

        # Keys gone from the shared hash were released by their owner or
        # reclaimed by another watchdog.
        for key in [key for key in self.streaks if key not in snapshot]:
            del self.streaks[key]
            observation.reconciled.append(key)

        self.previous = dict(snapshot)
        return observation

    def forget(self, key: str) -> None:
        self.streaks.pop(key, None)

    def streak(self, key: str) -> int:
        return self.streaks.get(key, 0)

    def reset(self) -> None:
        self.streaks.clear()
        self.previous.clear()


__all__ = ["StalenessTracker", "Observation", "counters_equal"]
