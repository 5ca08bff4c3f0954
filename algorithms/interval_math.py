import datetime
from typing import Iterable, Tuple


class IntervalMath:
    """Overlap and containment tests on half-open time intervals."""

    @staticmethod
    def _bounds(interval) -> Tuple[datetime.datetime, datetime.datetime]:
        if isinstance(interval, tuple):
            return interval[0], interval[1]
        return interval.start, interval.end

    @staticmethod
    def overlaps(a, b) -> bool:
        """Return ``True`` when ``a`` and ``b`` share any instant.

        Intervals touching at an endpoint do not overlap and zero-duration
        intervals never overlap anything.
        """
        a_start, a_end = IntervalMath._bounds(a)
        b_start, b_end = IntervalMath._bounds(b)
        if a_start >= a_end or b_start >= b_end:
            return False
        return a_start < b_end and b_start < a_end

    @staticmethod
    def contains(outer, inner) -> bool:
        o_start, o_end = IntervalMath._bounds(outer)
        i_start, i_end = IntervalMath._bounds(inner)
        return o_start <= i_start and i_end <= o_end

    @staticmethod
    def duration_seconds(interval) -> float:
        start, end = IntervalMath._bounds(interval)
        return max(0.0, (end - start).total_seconds())

    @staticmethod
    def clip(interval, start: datetime.datetime, end: datetime.datetime):
        """Return ``interval`` cut to ``[start, end)`` or ``None`` if disjoint."""
        i_start, i_end = IntervalMath._bounds(interval)
        lo = max(i_start, start)
        hi = min(i_end, end)
        if lo >= hi:
            return None
        return lo, hi

    @staticmethod
    def total_busy_seconds(intervals: Iterable) -> float:
        """Return the covered duration of ``intervals`` counting overlaps once."""
        spans = sorted(IntervalMath._bounds(i) for i in intervals)
        total = 0.0
        cur_start = cur_end = None
        for start, end in spans:
            if start >= end:
                continue
            if cur_end is None or start > cur_end:
                if cur_end is not None:
                    total += (cur_end - cur_start).total_seconds()
                cur_start, cur_end = start, end
            else:
                cur_end = max(cur_end, end)
        if cur_end is not None:
            total += (cur_end - cur_start).total_seconds()
        return total
