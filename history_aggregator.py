from __future__ import annotations

import datetime
from typing import Callable, Iterable

from algorithms.math_tools import MathTools
from models import MissedWorkoutPatterns, WorkoutAttempt


class HistoryAggregator:
    """Pure reductions over a list of workout attempts.

    Frequency tables are plain dicts filled in input order, which makes the
    "most problematic" choice stable: on equal counts the key seen first wins.
    """

    @staticmethod
    def partition(
        attempts: Iterable[WorkoutAttempt],
        now: datetime.datetime | None = None,
    ) -> tuple[list[WorkoutAttempt], list[WorkoutAttempt]]:
        """Split ``attempts`` into completed and missed lists.

        Unfinished attempts scheduled at or after ``now`` belong to neither.
        """
        now = now or datetime.datetime.now()
        completed: list[WorkoutAttempt] = []
        missed: list[WorkoutAttempt] = []
        for attempt in attempts:
            if attempt.is_completed:
                completed.append(attempt)
            elif attempt.scheduled_date < now:
                missed.append(attempt)
        return completed, missed

    @staticmethod
    def _count(
        attempts: Iterable[WorkoutAttempt], key: Callable[[WorkoutAttempt], object]
    ) -> dict:
        counts: dict = {}
        for attempt in attempts:
            k = key(attempt)
            counts[k] = counts.get(k, 0) + 1
        return counts

    @staticmethod
    def _moment(attempt: WorkoutAttempt) -> datetime.datetime:
        if attempt.is_completed:
            return attempt.effective_date
        return attempt.scheduled_date

    @classmethod
    def by_weekday(cls, attempts: Iterable[WorkoutAttempt]) -> dict[int, int]:
        """Counts keyed by ISO weekday, 1 = Monday through 7 = Sunday."""
        return cls._count(attempts, lambda a: cls._moment(a).isoweekday())

    @classmethod
    def by_hour(cls, attempts: Iterable[WorkoutAttempt]) -> dict[int, int]:
        return cls._count(attempts, lambda a: cls._moment(a).hour)

    @classmethod
    def by_focus(cls, attempts: Iterable[WorkoutAttempt]) -> dict[str, int]:
        return cls._count(attempts, lambda a: a.focus_type.value)

    @classmethod
    def by_difficulty(cls, attempts: Iterable[WorkoutAttempt]) -> dict[int, int]:
        return cls._count(attempts, lambda a: a.difficulty_level)

    @classmethod
    def tables(cls, attempts: list[WorkoutAttempt]) -> dict[str, dict]:
        return {
            "weekday": cls.by_weekday(attempts),
            "hour": cls.by_hour(attempts),
            "focus": cls.by_focus(attempts),
            "difficulty": cls.by_difficulty(attempts),
        }

    @classmethod
    def summary(
        cls, completed: list[WorkoutAttempt], missed: list[WorkoutAttempt]
    ) -> dict[str, dict[str, dict]]:
        """Return the frequency tables for both completed and missed sets."""
        return {"completed": cls.tables(completed), "missed": cls.tables(missed)}

    @classmethod
    def missed_patterns(cls, missed: list[WorkoutAttempt]) -> MissedWorkoutPatterns:
        days = cls.by_weekday(missed)
        hours = cls.by_hour(missed)
        types = cls.by_focus(missed)
        return MissedWorkoutPatterns(
            days_missed=days,
            times_missed=hours,
            types_missed=types,
            most_problematic_day=MathTools.most_frequent(days),
            most_problematic_hour=MathTools.most_frequent(hours),
            most_missed_type=MathTools.most_frequent(types),
        )
