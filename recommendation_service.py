from __future__ import annotations

import calendar
import datetime
import re

from algorithms.math_tools import MathTools
from models import (
    AdaptiveInsight,
    BehaviorPatterns,
    CheckInAnalysis,
    CheckInRatings,
    Exercise,
    FocusType,
    InsightType,
    ModificationType,
    PlannedWorkout,
    SentimentPolarity,
    Severity,
    TimeOfDay,
    ToleranceLevel,
    WorkoutModification,
)
from text_insights import BODY_PARTS


MULTIPLIER_MIN = 0.5
MULTIPLIER_MAX = 1.5

MULTIPLIER_DELTAS = {
    ModificationType.REDUCE_INTENSITY: -0.2,
    ModificationType.INCREASE_INTENSITY: 0.1,
}

AVOIDANCE_RULES = {
    "back": ["deadlifts", "heavy squats"],
    "knee": ["jumping", "lunges"],
    "shoulder": ["overhead press", "dips"],
    "wrist": ["push-ups"],
    "ankle": ["jumping", "running"],
}

# Name stems matched at a word boundary against exercise names.
_AVOID_PATTERNS = {
    "deadlifts": r"\bdeadlift",
    "heavy squats": r"\bsquat",
    "jumping": r"\bjump",
    "lunges": r"\blunge",
    "overhead press": r"\boverhead press",
    "dips": r"\bdips?\b",
    "push-ups": r"\bpush[- ]?ups?\b",
    "running": r"\b(run|running|sprint)",
}

BODY_PART_MUSCLES = {
    "back": ["back", "lats", "erector", "spine"],
    "knee": ["knee", "quadriceps", "quads"],
    "shoulder": ["shoulder", "delts", "deltoid", "rotator cuff"],
    "ankle": ["ankle", "calves"],
    "wrist": ["wrist", "forearms"],
    "elbow": ["elbow", "forearms"],
    "hip": ["hip", "glutes"],
    "neck": ["neck", "traps"],
}

REHAB_CATALOG = {
    "shoulder": Exercise(
        name="Shoulder Rolls",
        target_muscles=["shoulders"],
        sets=2,
        reps=10,
        rest_seconds=30,
    ),
    "back": Exercise(
        name="Cat-Cow Stretch", target_muscles=["back"], sets=2, reps=10, rest_seconds=30
    ),
    "knee": Exercise(
        name="Seated Leg Extensions",
        target_muscles=["quadriceps"],
        sets=2,
        reps=8,
        rest_seconds=45,
    ),
}

GENTLE_STRETCHING = Exercise(
    name="Gentle Stretching",
    target_muscles=["core"],
    sets=1,
    reps=None,
    duration_seconds=60,
    rest_seconds=0,
)

RECOVERY_DURATION_SECONDS = 1800


def normalize_body_part(part: str) -> str:
    """Collapse sub-regions like "lower back" onto their avoidance key."""
    part = part.lower().strip()
    if part.endswith("back"):
        return "back"
    return part


def body_parts_from_limitations(limitations: list[str]) -> list[str]:
    parts: list[str] = []
    for entry in limitations:
        lowered = entry.lower()
        for part in BODY_PARTS:
            if part in lowered:
                key = normalize_body_part(part)
                if key not in parts:
                    parts.append(key)
                break
    return parts


def rehab_exercise(body_part: str) -> Exercise:
    return REHAB_CATALOG.get(normalize_body_part(body_part), GENTLE_STRETCHING)


class RecommendationEngine:
    """Rule union turning behavior patterns and check-ins into plan changes."""

    def recommend(
        self,
        patterns: BehaviorPatterns,
        check_in: CheckInAnalysis | None = None,
        ratings: CheckInRatings | None = None,
    ) -> tuple[list[AdaptiveInsight], list[WorkoutModification]]:
        insights: list[AdaptiveInsight] = []
        mods: list[WorkoutModification] = []
        self._pattern_rules(patterns, insights, mods)
        if check_in is not None:
            self._check_in_rules(check_in, insights, mods)
        if ratings is not None:
            self._rating_rules(ratings, mods)
        insights.sort(key=lambda i: i.severity.rank)
        return insights, self._dedupe(mods)

    def _pattern_rules(
        self,
        patterns: BehaviorPatterns,
        insights: list[AdaptiveInsight],
        mods: list[WorkoutModification],
    ) -> None:
        rate = patterns.completion_rate
        if rate < 0.7:
            insights.append(
                AdaptiveInsight(
                    type=InsightType.COMPLETION_RATE,
                    severity=Severity.HIGH,
                    title="Low Completion Rate",
                    description=(
                        f"You're completing {int(rate * 100)}% of scheduled workouts. "
                        "Consider reducing workout frequency or intensity."
                    ),
                    recommendation="Reduce weekly frequency by 1 day or switch to shorter workouts",
                    confidence=0.8,
                )
            )
            mods.append(
                WorkoutModification(
                    type=ModificationType.REDUCE_INTENSITY,
                    reason=f"Completion rate is {int(rate * 100)}%",
                    suggestion="Lower intensity until completion recovers",
                )
            )
        missed = patterns.missed_workout_patterns
        if missed.most_problematic_day is not None:
            day_name = calendar.day_name[missed.most_problematic_day - 1]
            insights.append(
                AdaptiveInsight(
                    type=InsightType.MISSED_WORKOUTS,
                    severity=Severity.MEDIUM,
                    title="Problematic Day Detected",
                    description=f"You tend to miss workouts on {day_name}s. Consider rescheduling.",
                    recommendation=f"Move {day_name} workouts to a different day",
                    confidence=0.7,
                )
            )
        if missed.most_problematic_hour is not None:
            band = TimeOfDay.for_hour(missed.most_problematic_hour)
            insights.append(
                AdaptiveInsight(
                    type=InsightType.TIMING,
                    severity=Severity.MEDIUM,
                    title="Problematic Time Detected",
                    description=f"You often miss {band.value} workouts. Consider adjusting timing.",
                    recommendation="Schedule workouts at your most successful times",
                    confidence=0.6,
                )
            )
        level = patterns.difficulty_tolerance.level
        if level == ToleranceLevel.LOW:
            insights.append(
                AdaptiveInsight(
                    type=InsightType.DIFFICULTY,
                    severity=Severity.HIGH,
                    title="Difficulty Too High",
                    description="You're struggling with current workout difficulty.",
                    recommendation="Reduce workout intensity by 20-30%",
                    confidence=0.9,
                )
            )
            mods.append(
                WorkoutModification(
                    type=ModificationType.REDUCE_INTENSITY,
                    reason="Harder sessions are missed more often",
                    suggestion="Reduce workout intensity",
                )
            )
        elif level == ToleranceLevel.HIGH:
            insights.append(
                AdaptiveInsight(
                    type=InsightType.DIFFICULTY,
                    severity=Severity.LOW,
                    title="Ready for More Challenge",
                    description="You're handling current workouts well. Consider increasing difficulty.",
                    recommendation="Gradually increase workout intensity",
                    confidence=0.7,
                )
            )
            mods.append(
                WorkoutModification(
                    type=ModificationType.INCREASE_INTENSITY,
                    reason="Harder sessions are completed readily",
                    suggestion="Gradually increase workout intensity",
                )
            )
        if patterns.streak_patterns.average_streak < 3:
            insights.append(
                AdaptiveInsight(
                    type=InsightType.CONSISTENCY,
                    severity=Severity.MEDIUM,
                    title="Consistency Challenge",
                    description="Your workout streaks are short. Focus on building consistency.",
                    recommendation="Set smaller, more achievable daily goals",
                    confidence=0.8,
                )
            )

    def _check_in_rules(
        self,
        check_in: CheckInAnalysis,
        insights: list[AdaptiveInsight],
        mods: list[WorkoutModification],
    ) -> None:
        if check_in.sentiment.polarity == SentimentPolarity.NEGATIVE:
            mods.append(
                WorkoutModification(
                    type=ModificationType.VARIETY_INCREASE,
                    reason="Check-in reads negative",
                    suggestion="Add new exercises to keep sessions fresh",
                )
            )
        if check_in.physical_limitations:
            parts = body_parts_from_limitations(check_in.physical_limitations)
            avoid: list[str] = []
            for part in parts:
                for name in AVOIDANCE_RULES.get(part, []):
                    if name not in avoid:
                        avoid.append(name)
            insights.append(
                AdaptiveInsight(
                    type=InsightType.INJURY,
                    severity=Severity.HIGH,
                    title="Physical Limitation Reported",
                    description="You mentioned " + ", ".join(check_in.physical_limitations) + ".",
                    recommendation="Workouts will avoid the affected area",
                    confidence=0.8,
                )
            )
            mods.append(
                WorkoutModification(
                    type=ModificationType.INJURY_MODIFICATION,
                    reason="Reported " + ", ".join(check_in.physical_limitations),
                    suggestion="Avoid " + ", ".join(avoid) if avoid else "Train around the affected area",
                    body_parts=parts,
                    avoid_exercises=avoid,
                )
            )
        if len(check_in.busy_periods) > 2:
            mods.append(
                WorkoutModification(
                    type=ModificationType.SHORTER_WORKOUTS,
                    reason="Busy week: " + ", ".join(check_in.busy_periods),
                    suggestion="Keep sessions short",
                )
            )
        for feedback in check_in.workout_feedback:
            if feedback.endswith(("too hard", "difficult")):
                mods.append(
                    WorkoutModification(
                        type=ModificationType.REDUCE_INTENSITY,
                        reason=f"Feedback: {feedback}",
                        suggestion="Reduce workout intensity",
                    )
                )
            elif feedback.endswith(("too easy", "boring")):
                mods.append(
                    WorkoutModification(
                        type=ModificationType.INCREASE_INTENSITY,
                        reason=f"Feedback: {feedback}",
                        suggestion="Increase workout intensity",
                    )
                )
        if check_in.motivation_polarity == SentimentPolarity.NEGATIVE:
            insights.append(
                AdaptiveInsight(
                    type=InsightType.MOTIVATION,
                    severity=Severity.MEDIUM,
                    title="Motivation Dip",
                    description="Your check-in suggests motivation is low this week.",
                    recommendation="Pick shorter sessions you enjoy",
                    confidence=0.6,
                )
            )

    def _rating_rules(
        self, ratings: CheckInRatings, mods: list[WorkoutModification]
    ) -> None:
        if ratings.energy_level <= 2:
            mods.append(
                WorkoutModification(
                    type=ModificationType.REDUCE_INTENSITY,
                    reason="Low energy levels reported",
                    suggestion="Reduce workout intensity",
                )
            )
        elif ratings.energy_level >= 4:
            mods.append(
                WorkoutModification(
                    type=ModificationType.INCREASE_INTENSITY,
                    reason="High energy levels reported",
                    suggestion="Increase workout intensity",
                )
            )
        if ratings.soreness >= 4:
            mods.append(
                WorkoutModification(
                    type=ModificationType.ADD_RECOVERY,
                    reason="High soreness reported",
                    suggestion="Add a recovery day",
                )
            )
        if ratings.motivation <= 2:
            mods.append(
                WorkoutModification(
                    type=ModificationType.SHORTER_WORKOUTS,
                    reason="Low motivation reported",
                    suggestion="Keep sessions short",
                )
            )

    @staticmethod
    def _dedupe(mods: list[WorkoutModification]) -> list[WorkoutModification]:
        result: dict[ModificationType, WorkoutModification] = {}
        for mod in mods:
            existing = result.get(mod.type)
            if existing is None:
                result[mod.type] = mod
            elif mod.type == ModificationType.INJURY_MODIFICATION:
                result[mod.type] = existing.model_copy(
                    update={
                        "body_parts": existing.body_parts
                        + [p for p in mod.body_parts if p not in existing.body_parts],
                        "avoid_exercises": existing.avoid_exercises
                        + [a for a in mod.avoid_exercises if a not in existing.avoid_exercises],
                    }
                )
        return list(result.values())

    @staticmethod
    def apply_modifications(
        mods: list[WorkoutModification], current: float
    ) -> float:
        """Return the multiplier after applying each modification's delta."""
        value = MathTools.clamp(current, MULTIPLIER_MIN, MULTIPLIER_MAX)
        for mod in mods:
            delta = MULTIPLIER_DELTAS.get(mod.type, 0.0)
            value = MathTools.clamp(value + delta, MULTIPLIER_MIN, MULTIPLIER_MAX)
        return round(value, 2)

    def apply_structural(
        self, mods: list[WorkoutModification], upcoming: list[PlannedWorkout]
    ) -> list[PlannedWorkout]:
        """Rewrite upcoming workouts for recovery, time and injury changes."""
        result = list(upcoming)
        for mod in mods:
            if mod.type == ModificationType.INJURY_MODIFICATION:
                result = [
                    self.adapt_for_injury(w, mod.body_parts, mod.avoid_exercises)
                    for w in result
                ]
            elif mod.type == ModificationType.SHORTER_WORKOUTS:
                result = [self.shorten(w) for w in result]
            elif mod.type == ModificationType.ADD_RECOVERY:
                result = self.add_recovery(result)
        return result

    @staticmethod
    def _targets(exercise: Exercise, body_parts: list[str]) -> bool:
        for muscle in exercise.target_muscles:
            lowered = muscle.lower()
            for part in body_parts:
                key = normalize_body_part(part)
                terms = BODY_PART_MUSCLES.get(key, [key])
                if any(t in lowered for t in terms):
                    return True
        return False

    @staticmethod
    def _avoided(exercise: Exercise, avoid: list[str]) -> bool:
        name = exercise.name.lower()
        for item in avoid:
            pattern = _AVOID_PATTERNS.get(item, r"\b" + re.escape(item.lower()))
            if re.search(pattern, name):
                return True
        return False

    def adapt_for_injury(
        self,
        workout: PlannedWorkout,
        body_parts: list[str],
        avoid: list[str] | None = None,
    ) -> PlannedWorkout:
        avoid = avoid or []
        original = workout.exercises
        safe = [
            e
            for e in original
            if not self._targets(e, body_parts) and not self._avoided(e, avoid)
        ]
        if len(safe) == len(original):
            return workout
        exercises = list(safe)
        if len(safe) * 2 < len(original):
            for part in body_parts:
                sub = rehab_exercise(part)
                if all(e.name != sub.name for e in exercises):
                    exercises.append(sub.model_copy())
        return workout.model_copy(
            update={
                "exercises": exercises,
                "difficulty": max(1, workout.difficulty - 1),
            }
        )

    @staticmethod
    def shorten(workout: PlannedWorkout) -> PlannedWorkout:
        count = len(workout.exercises)
        keep = max(3, count * 2 // 3)
        if count <= keep:
            return workout
        duration = int(workout.duration_seconds * keep / count)
        return workout.model_copy(
            update={"exercises": workout.exercises[:keep], "duration_seconds": duration}
        )

    @staticmethod
    def add_recovery(workouts: list[PlannedWorkout]) -> list[PlannedWorkout]:
        """Turn the second of two back-to-back training days into recovery."""
        ordered = sorted(workouts, key=lambda w: w.scheduled_at)
        converted: dict[int, PlannedWorkout] = {}
        prev: PlannedWorkout | None = None
        for workout in ordered:
            if (
                prev is not None
                and id(prev) not in converted
                and (workout.scheduled_at.date() - prev.scheduled_at.date())
                == datetime.timedelta(days=1)
                and workout.focus != FocusType.MOBILITY
            ):
                converted[id(workout)] = workout.model_copy(
                    update={
                        "title": f"Recovery: {workout.title}",
                        "focus": FocusType.MOBILITY,
                        "difficulty": 1,
                        "duration_seconds": min(
                            workout.duration_seconds, RECOVERY_DURATION_SECONDS
                        ),
                        "exercises": [GENTLE_STRETCHING.model_copy()],
                    }
                )
            prev = workout
        return [converted.get(id(w), w) for w in workouts]
