from __future__ import annotations

import calendar
import datetime
import os
import sqlite3
import threading

from behavior_analyzer import BehaviorPatternAnalyzer
from db import (
    AdaptiveStateRepository,
    AnalysisLogRepository,
    BehaviorSnapshotRepository,
    CheckInRepository,
    SettingsRepository,
    WorkoutRepository,
)
from history_aggregator import HistoryAggregator
from models import (
    DEFAULT_BEHAVIOR_PATTERNS,
    AnalysisResult,
    BehaviorPatterns,
    CheckInAnalysis,
    CheckInRatings,
    ModificationType,
    PlannedWorkout,
    WorkoutModification,
)
from notification_service import NotificationService
from recommendation_service import AVOIDANCE_RULES, RecommendationEngine, normalize_body_part
from text_insights import TextInsightExtractor


class AnalysisError(Exception):
    """Raised when an analysis run aborts before anything was committed."""


_RUN_LOCKS: dict[str, threading.Lock] = {}
_RUN_LOCKS_GUARD = threading.Lock()


def run_lock(db_path: str) -> threading.Lock:
    """Return the lock serializing analysis runs against one user database."""
    key = os.path.abspath(db_path)
    with _RUN_LOCKS_GUARD:
        if key not in _RUN_LOCKS:
            _RUN_LOCKS[key] = threading.Lock()
        return _RUN_LOCKS[key]


class AdaptiveBehaviorService:
    """Runs the fetch, analyze, recommend, apply and persist pipeline."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        snapshot_repo: BehaviorSnapshotRepository,
        state_repo: AdaptiveStateRepository,
        settings_repo: SettingsRepository,
        notifications: NotificationService,
        check_in_repo: CheckInRepository | None = None,
        log_repo: AnalysisLogRepository | None = None,
        analyzer: BehaviorPatternAnalyzer | None = None,
        extractor: TextInsightExtractor | None = None,
        engine: RecommendationEngine | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.snapshots = snapshot_repo
        self.state = state_repo
        self.settings = settings_repo
        self.notifications = notifications
        self.check_ins = check_in_repo
        self.log_repo = log_repo
        self.analyzer = analyzer or BehaviorPatternAnalyzer()
        self.extractor = extractor or TextInsightExtractor()
        self.engine = engine or RecommendationEngine()

    def load_behavior_patterns(self) -> BehaviorPatterns:
        """Return the stored snapshot or the default baseline."""
        try:
            patterns = self.snapshots.load()
        except sqlite3.Error:
            patterns = None
        return patterns or DEFAULT_BEHAVIOR_PATTERNS

    def current_multiplier(self) -> float:
        return self.state.get_multiplier()

    def history_summary(self, now: datetime.datetime | None = None) -> dict:
        now = now or datetime.datetime.now()
        days = self.settings.get_int("history_days", 30)
        attempts = self.workouts.fetch_recent_attempts(days, now)
        completed, missed = HistoryAggregator.partition(attempts, now)
        return HistoryAggregator.summary(completed, missed)

    def analyze_user_behavior(
        self,
        check_in: CheckInAnalysis | str | None = None,
        ratings: CheckInRatings | None = None,
        now: datetime.datetime | None = None,
    ) -> AnalysisResult:
        now = now or datetime.datetime.now()
        if isinstance(check_in, str):
            check_in = self.extractor.extract(check_in, now)
        with run_lock(self.snapshots.db_path):
            try:
                result = self._run(check_in, ratings, now)
            except Exception as e:
                if self.log_repo is not None:
                    self.log_repo.log_error(f"{type(e).__name__}: {e}")
                raise AnalysisError(str(e)) from e
        if self.log_repo is not None:
            self.log_repo.log_success(
                f"completion {result.patterns.completion_rate:.2f}, "
                f"{len(result.modifications)} modifications"
            )
        result.notifications = self._notify(result, check_in)
        return result

    def _run(
        self,
        check_in: CheckInAnalysis | None,
        ratings: CheckInRatings | None,
        now: datetime.datetime,
    ) -> AnalysisResult:
        days = self.settings.get_int("history_days", 30)
        attempts = self.workouts.fetch_recent_attempts(days, now)
        completed, missed = HistoryAggregator.partition(attempts, now)
        used_default = not completed and not missed
        if used_default:
            patterns = DEFAULT_BEHAVIOR_PATTERNS.model_copy(update={"last_analyzed": now})
        else:
            patterns = self.analyzer.analyze(completed, missed, now)
        insights, mods = self.engine.recommend(patterns, check_in, ratings)
        previous = self.state.get_multiplier()
        multiplier = self.engine.apply_modifications(mods, previous)
        upcoming = self.workouts.fetch_upcoming(now)
        rewritten = self.engine.apply_structural(mods, upcoming)
        changed = [new for new, old in zip(rewritten, upcoming) if new != old]
        self.snapshots.commit_run(patterns, multiplier, changed)
        return AnalysisResult(
            patterns=patterns,
            insights=insights,
            modifications=mods,
            previous_multiplier=previous,
            difficulty_multiplier=multiplier,
            updated_workouts=[w.id for w in changed],
            used_default=used_default,
        )

    def _notify(
        self, result: AnalysisResult, check_in: CheckInAnalysis | None
    ) -> list[int]:
        patterns = result.patterns
        by_type = {m.type: m for m in result.modifications}
        sent: list[int | None] = []
        rate = patterns.completion_rate
        if rate < 0.5:
            sent.append(
                self.notifications.schedule_alert(
                    f"You completed {int(rate * 100)}% of recent workouts. "
                    "Consider fewer sessions per week.",
                    {"completion_rate": rate},
                )
            )
        if result.difficulty_multiplier != result.previous_multiplier:
            reason = next(
                (
                    m.reason
                    for m in result.modifications
                    if m.type
                    in (
                        ModificationType.REDUCE_INTENSITY,
                        ModificationType.INCREASE_INTENSITY,
                    )
                ),
                "",
            )
            sent.append(
                self.notifications.difficulty_changed(
                    result.previous_multiplier, result.difficulty_multiplier, reason
                )
            )
        missed = patterns.missed_workout_patterns
        day = missed.most_problematic_day
        if day is not None and missed.days_missed.get(day, 0) > 2:
            day_name = calendar.day_name[day - 1]
            sent.append(
                self.notifications.schedule_alert(
                    f"You often miss {day_name} workouts. Consider moving them.",
                    {"weekday": day},
                )
            )
        if ModificationType.ADD_RECOVERY in by_type:
            sent.append(
                self.notifications.rest_alert(by_type[ModificationType.ADD_RECOVERY].reason)
            )
        injury = by_type.get(ModificationType.INJURY_MODIFICATION)
        if injury is not None and check_in is not None:
            sent.append(
                self.notifications.injury_alert(
                    check_in.physical_limitations, injury.body_parts
                )
            )
        if rate < 0.6 or abs(result.difficulty_multiplier - 1.0) > 0.1:
            sent.append(
                self.notifications.motivation(
                    "Your plan was adjusted to fit your routine. Small steps still count!"
                )
            )
        if ModificationType.VARIETY_INCREASE in by_type:
            sent.append(
                self.notifications.motivation(
                    "Try a new exercise this week to keep things fresh."
                )
            )
        return [nid for nid in sent if nid is not None]

    def submit_check_in(
        self,
        text: str,
        ratings: CheckInRatings | None = None,
        now: datetime.datetime | None = None,
    ) -> tuple[int | None, CheckInAnalysis, AnalysisResult]:
        """Store a check-in, analyze it and feed it into a full run."""
        now = now or datetime.datetime.now()
        analysis = self.extractor.extract(text, now)
        check_in_id = None
        if self.check_ins is not None:
            check_in_id = self.check_ins.add(
                text,
                ratings.energy_level if ratings else None,
                ratings.soreness if ratings else None,
                ratings.motivation if ratings else None,
                analysis.model_dump(mode="json"),
                now,
            )
        result = self.analyze_user_behavior(analysis, ratings, now)
        return check_in_id, analysis, result

    def adapt_for_injury(
        self, body_parts: list[str], now: datetime.datetime | None = None
    ) -> list[PlannedWorkout]:
        """Rewrite upcoming workouts around the given body parts."""
        now = now or datetime.datetime.now()
        parts: list[str] = []
        for part in body_parts:
            key = normalize_body_part(part)
            if key and key not in parts:
                parts.append(key)
        if not parts:
            raise ValueError("at least one body part required")
        avoid: list[str] = []
        for part in parts:
            for name in AVOIDANCE_RULES.get(part, []):
                if name not in avoid:
                    avoid.append(name)
        mod = WorkoutModification(
            type=ModificationType.INJURY_MODIFICATION,
            reason="Reported " + ", ".join(parts),
            body_parts=parts,
            avoid_exercises=avoid,
        )
        with run_lock(self.workouts.db_path):
            upcoming = self.workouts.fetch_upcoming(now)
            rewritten = self.engine.apply_structural([mod], upcoming)
            changed = [new for new, old in zip(rewritten, upcoming) if new != old]
            for workout in changed:
                self.workouts.update_workout(workout)
        if changed:
            self.notifications.injury_alert(parts, parts)
        return changed
