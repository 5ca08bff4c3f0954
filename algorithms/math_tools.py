from typing import Hashable, Iterable, Mapping, Optional
import numpy as np


class MathTools:
    """Small numeric helpers shared by the behavior engine."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def mean(values: Iterable[float]) -> float:
        """Return the arithmetic mean of ``values`` or ``0.0`` when empty."""
        data = list(values)
        if not data:
            return 0.0
        return float(np.mean(np.array(data, dtype=float)))

    @staticmethod
    def safe_ratio(part: float, whole: float) -> float:
        if whole <= 0:
            return 0.0
        return part / whole

    @staticmethod
    def shares(counts: Mapping[Hashable, int]) -> dict:
        """Return each key's share of the total count, preserving key order."""
        total = sum(counts.values())
        if total <= 0:
            return {}
        return {k: round(v / total, 4) for k, v in counts.items()}

    @staticmethod
    def most_frequent(counts: Mapping[Hashable, int]) -> Optional[Hashable]:
        """Return the key with the highest count.

        Ties go to the key encountered first, so callers must build
        ``counts`` in a deterministic order.
        """
        best = None
        best_count = 0
        for key, count in counts.items():
            if count > best_count:
                best = key
                best_count = count
        return best
