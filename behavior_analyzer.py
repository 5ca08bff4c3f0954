from __future__ import annotations

import datetime
from typing import Iterable

from algorithms.math_tools import MathTools
from history_aggregator import HistoryAggregator
from models import (
    BehaviorPatterns,
    DifficultyTolerance,
    StreakPatterns,
    TimeOfDay,
    ToleranceLevel,
    WorkoutAttempt,
)


class BehaviorPatternAnalyzer:
    """Build a behavior snapshot from completed and missed attempts."""

    # Minimum gap between mean difficulties before tolerance leaves "medium".
    TOLERANCE_MARGIN = 1.0
    # Largest gap in days that still continues a streak.
    STREAK_GAP_DAYS = 2

    def analyze(
        self,
        completed: list[WorkoutAttempt],
        missed: list[WorkoutAttempt],
        now: datetime.datetime | None = None,
    ) -> BehaviorPatterns:
        return BehaviorPatterns(
            completion_rate=self.completion_rate(completed, missed),
            preferred_times=self.preferred_times(completed),
            type_preferences=self.type_preferences(completed),
            missed_workout_patterns=HistoryAggregator.missed_patterns(missed),
            difficulty_tolerance=self.difficulty_tolerance(completed, missed),
            streak_patterns=self.streaks(completed),
            last_analyzed=now or datetime.datetime.now(),
        )

    def analyze_attempts(
        self,
        attempts: Iterable[WorkoutAttempt],
        now: datetime.datetime | None = None,
    ) -> BehaviorPatterns:
        now = now or datetime.datetime.now()
        completed, missed = HistoryAggregator.partition(attempts, now)
        return self.analyze(completed, missed, now)

    @staticmethod
    def completion_rate(
        completed: list[WorkoutAttempt], missed: list[WorkoutAttempt]
    ) -> float:
        total = len(completed) + len(missed)
        return MathTools.safe_ratio(len(completed), total)

    @staticmethod
    def preferred_times(completed: list[WorkoutAttempt]) -> dict[str, float]:
        counts: dict[str, int] = {}
        for attempt in completed:
            band = TimeOfDay.for_hour(attempt.effective_date.hour).value
            counts[band] = counts.get(band, 0) + 1
        return MathTools.shares(counts)

    @staticmethod
    def type_preferences(completed: list[WorkoutAttempt]) -> dict[str, float]:
        return MathTools.shares(HistoryAggregator.by_focus(completed))

    def difficulty_tolerance(
        self, completed: list[WorkoutAttempt], missed: list[WorkoutAttempt]
    ) -> DifficultyTolerance:
        avg_completed = MathTools.mean(a.difficulty_level for a in completed)
        avg_missed = MathTools.mean(a.difficulty_level for a in missed)
        # An empty side averages to 0.0 and still takes part in the comparison.
        level = ToleranceLevel.MEDIUM
        if avg_missed > avg_completed + self.TOLERANCE_MARGIN:
            level = ToleranceLevel.LOW
        elif avg_completed > avg_missed + self.TOLERANCE_MARGIN:
            level = ToleranceLevel.HIGH
        return DifficultyTolerance(
            level=level,
            avg_completed_difficulty=round(avg_completed, 2),
            avg_missed_difficulty=round(avg_missed, 2),
        )

    def streaks(self, completed: list[WorkoutAttempt]) -> StreakPatterns:
        """Group completed attempts into streaks split by gaps over two days."""
        if not completed:
            return StreakPatterns()
        dates = sorted(a.effective_date.date() for a in completed)
        lengths: list[int] = []
        current = 1
        for prev, day in zip(dates, dates[1:]):
            if (day - prev).days > self.STREAK_GAP_DAYS:
                lengths.append(current)
                current = 1
            else:
                current += 1
        lengths.append(current)
        return StreakPatterns(
            average_streak=round(MathTools.mean(lengths), 2),
            longest_streak=max(lengths),
            current_streak=lengths[-1],
            streak_breaks=len(lengths),
        )
