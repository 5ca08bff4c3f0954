from __future__ import annotations

import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FocusType(str, Enum):
    PUSH = "push"
    PULL = "pull"
    LEGS = "legs"
    CARDIO = "cardio"
    MOBILITY = "mobility"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def for_hour(cls, hour: int) -> "TimeOfDay":
        """Return the band a completed workout hour falls into."""
        if 6 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 17:
            return cls.AFTERNOON
        return cls.EVENING


class ToleranceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class InsightType(str, Enum):
    COMPLETION_RATE = "completionRate"
    MISSED_WORKOUTS = "missedWorkouts"
    TIMING = "timing"
    DIFFICULTY = "difficulty"
    CONSISTENCY = "consistency"
    MOTIVATION = "motivation"
    INJURY = "injury"


class ModificationType(str, Enum):
    REDUCE_INTENSITY = "reduceIntensity"
    INCREASE_INTENSITY = "increaseIntensity"
    ADD_RECOVERY = "addRecovery"
    SHORTER_WORKOUTS = "shorterWorkouts"
    VARIETY_INCREASE = "varietyIncrease"
    INJURY_MODIFICATION = "injuryModification"


class SentimentPolarity(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class SlotStatus(str, Enum):
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"


class NotificationKind(str, Enum):
    ADAPTIVE_DIFFICULTY = "adaptive_difficulty"
    ADAPTIVE_REST = "adaptive_rest"
    ADAPTIVE_SCHEDULE = "adaptive_schedule"
    INJURY_DETECTION = "injury_detection"
    MOTIVATION = "motivation"
    CHECK_IN_PROMPT = "check_in_prompt"


class BusyInterval(BaseModel):
    """Calendar block treated as the half-open range [start, end)."""

    model_config = ConfigDict(frozen=True)

    start: datetime.datetime
    end: datetime.datetime
    title: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "BusyInterval":
        if self.start >= self.end:
            raise ValueError("busy interval start must be before end")
        return self


class WorkoutSlotRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    workout_id: int
    desired_date: datetime.datetime
    duration_seconds: int = Field(gt=0)

    @property
    def day(self) -> datetime.date:
        return self.desired_date.date()


class ScheduledWorkout(BaseModel):
    request: WorkoutSlotRequest
    start_time: Optional[datetime.datetime] = None
    status: SlotStatus = SlotStatus.UNASSIGNED

    @property
    def original_time(self) -> datetime.datetime:
        return self.request.desired_date

    @property
    def end_time(self) -> Optional[datetime.datetime]:
        if self.start_time is None:
            return None
        return self.start_time + datetime.timedelta(
            seconds=self.request.duration_seconds
        )


class WorkoutAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheduled_date: datetime.datetime
    completed_at: Optional[datetime.datetime] = None
    is_completed: bool = False
    focus_type: FocusType = FocusType.PUSH
    difficulty_level: int = Field(default=2, ge=1, le=3)

    @property
    def effective_date(self) -> datetime.datetime:
        return self.completed_at or self.scheduled_date


class Exercise(BaseModel):
    name: str
    target_muscles: list[str] = Field(default_factory=list)
    sets: int = 3
    reps: Optional[int] = 10
    duration_seconds: Optional[int] = None
    rest_seconds: int = 60


class PlannedWorkout(BaseModel):
    """Upcoming workout that structural modifications may rewrite."""

    id: Optional[int] = None
    title: str
    focus: FocusType = FocusType.PUSH
    scheduled_at: datetime.datetime
    duration_seconds: int = 2700
    difficulty: int = Field(default=2, ge=1, le=3)
    is_completed: bool = False
    completed_at: Optional[datetime.datetime] = None
    exercises: list[Exercise] = Field(default_factory=list)

    def to_attempt(self) -> WorkoutAttempt:
        return WorkoutAttempt(
            scheduled_date=self.scheduled_at,
            completed_at=self.completed_at,
            is_completed=self.is_completed,
            focus_type=self.focus,
            difficulty_level=self.difficulty,
        )


class MissedWorkoutPatterns(BaseModel):
    days_missed: dict[int, int] = Field(default_factory=dict)
    times_missed: dict[int, int] = Field(default_factory=dict)
    types_missed: dict[str, int] = Field(default_factory=dict)
    most_problematic_day: Optional[int] = None
    most_problematic_hour: Optional[int] = None
    most_missed_type: Optional[str] = None


class DifficultyTolerance(BaseModel):
    level: ToleranceLevel = ToleranceLevel.MEDIUM
    avg_completed_difficulty: float = 0.0
    avg_missed_difficulty: float = 0.0


class StreakPatterns(BaseModel):
    average_streak: float = 0.0
    longest_streak: int = 0
    current_streak: int = 0
    streak_breaks: int = 0


class BehaviorPatterns(BaseModel):
    completion_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    preferred_times: dict[str, float] = Field(default_factory=dict)
    type_preferences: dict[str, float] = Field(default_factory=dict)
    missed_workout_patterns: MissedWorkoutPatterns = Field(
        default_factory=MissedWorkoutPatterns
    )
    difficulty_tolerance: DifficultyTolerance = Field(
        default_factory=DifficultyTolerance
    )
    streak_patterns: StreakPatterns = Field(default_factory=StreakPatterns)
    last_analyzed: Optional[datetime.datetime] = None


# Baseline used whenever there is no history or no stored snapshot yet.
DEFAULT_BEHAVIOR_PATTERNS = BehaviorPatterns(
    completion_rate=0.8,
    preferred_times={TimeOfDay.MORNING.value: 0.6, TimeOfDay.EVENING.value: 0.4},
    type_preferences={
        FocusType.PUSH.value: 0.2,
        FocusType.PULL.value: 0.15,
        FocusType.LEGS.value: 0.15,
        FocusType.CARDIO.value: 0.3,
        FocusType.MOBILITY.value: 0.2,
    },
    difficulty_tolerance=DifficultyTolerance(
        level=ToleranceLevel.MEDIUM,
        avg_completed_difficulty=2.0,
        avg_missed_difficulty=2.0,
    ),
    streak_patterns=StreakPatterns(
        average_streak=3.0, longest_streak=7, current_streak=0, streak_breaks=0
    ),
)


class SentimentAnalysis(BaseModel):
    polarity: SentimentPolarity = SentimentPolarity.NEUTRAL
    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class DateInterval(BaseModel):
    phrase: str
    start: datetime.datetime
    end: datetime.datetime


class CheckInAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str = ""
    sentiment: SentimentAnalysis = Field(default_factory=SentimentAnalysis)
    motivation_score: float = Field(default=0.5, ge=0.0, le=1.0)
    motivation_polarity: SentimentPolarity = SentimentPolarity.NEUTRAL
    physical_limitations: list[str] = Field(default_factory=list)
    injury_keywords: list[str] = Field(default_factory=list)
    pain_indicators: list[str] = Field(default_factory=list)
    workout_feedback: list[str] = Field(default_factory=list)
    busy_periods: list[str] = Field(default_factory=list)
    date_intervals: list[DateInterval] = Field(default_factory=list)
    processed_at: Optional[datetime.datetime] = None


class CheckInRatings(BaseModel):
    energy_level: int = Field(default=3, ge=1, le=5)
    soreness: int = Field(default=1, ge=1, le=5)
    motivation: int = Field(default=3, ge=1, le=5)

    @classmethod
    def from_values(
        cls,
        energy_level: Optional[int] = None,
        soreness: Optional[int] = None,
        motivation: Optional[int] = None,
    ) -> Optional["CheckInRatings"]:
        """Build ratings from the values given, or ``None`` when none are.

        Missing values take their defaults; an explicit 0 is rejected.
        """
        given = {
            "energy_level": energy_level,
            "soreness": soreness,
            "motivation": motivation,
        }
        given = {k: v for k, v in given.items() if v is not None}
        if not given:
            return None
        return cls(**given)


class AdaptiveInsight(BaseModel):
    type: InsightType
    severity: Severity
    title: str
    description: str
    recommendation: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class WorkoutModification(BaseModel):
    type: ModificationType
    reason: str
    suggestion: str = ""
    body_parts: list[str] = Field(default_factory=list)
    avoid_exercises: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    patterns: BehaviorPatterns
    insights: list[AdaptiveInsight] = Field(default_factory=list)
    modifications: list[WorkoutModification] = Field(default_factory=list)
    previous_multiplier: float = 1.0
    difficulty_multiplier: float = 1.0
    updated_workouts: list[int] = Field(default_factory=list)
    notifications: list[int] = Field(default_factory=list)
    used_default: bool = False
