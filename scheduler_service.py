from __future__ import annotations

import datetime
from typing import Iterable

from algorithms.interval_math import IntervalMath
from calendar_service import CalendarPermissionError, CalendarService
from db import (
    SchedulerLogRepository,
    SettingsRepository,
    WorkoutExerciseRepository,
    WorkoutRepository,
)
from models import (
    BusyInterval,
    FocusType,
    ScheduledWorkout,
    SlotStatus,
    TimeOfDay,
    WorkoutSlotRequest,
)


# Suggestion bands; the scan still stays inside the daily window.
TIME_OF_DAY_HOURS = {
    TimeOfDay.MORNING: (6, 11),
    TimeOfDay.AFTERNOON: (11, 17),
    TimeOfDay.EVENING: (17, 22),
}

BUSY_DAY_SECONDS = 6 * 3600

FOCUS_ROTATION = [
    FocusType.PUSH,
    FocusType.PULL,
    FocusType.LEGS,
    FocusType.CARDIO,
    FocusType.MOBILITY,
]

SAMPLE_EXERCISES = {
    FocusType.PUSH: [
        ("Bench Press", ["chest", "triceps", "shoulders"], 10, None),
        ("Overhead Press", ["shoulders", "triceps"], 8, None),
        ("Incline Dumbbell Press", ["chest", "shoulders"], 10, None),
        ("Dips", ["triceps", "chest"], 10, None),
        ("Push-Ups", ["chest", "triceps"], 15, None),
    ],
    FocusType.PULL: [
        ("Deadlift", ["back", "hamstrings", "glutes"], 5, None),
        ("Bent Over Row", ["back", "lats"], 10, None),
        ("Lat Pulldown", ["lats", "biceps"], 12, None),
        ("Face Pull", ["rear delts", "upper back"], 15, None),
        ("Biceps Curl", ["biceps"], 12, None),
    ],
    FocusType.LEGS: [
        ("Back Squat", ["quadriceps", "glutes"], 8, None),
        ("Walking Lunges", ["quadriceps", "glutes"], 12, None),
        ("Romanian Deadlift", ["hamstrings", "lower back"], 10, None),
        ("Leg Press", ["quadriceps", "glutes"], 12, None),
        ("Calf Raise", ["calves"], 15, None),
    ],
    FocusType.CARDIO: [
        ("Jump Rope", ["calves", "cardio"], None, 60),
        ("Rowing Intervals", ["back", "cardio"], None, 120),
        ("Cycling Intervals", ["quadriceps", "cardio"], None, 180),
        ("Mountain Climbers", ["core", "cardio"], None, 45),
    ],
    FocusType.MOBILITY: [
        ("Cat-Cow Stretch", ["back"], 10, None),
        ("Hip Openers", ["hips"], 10, None),
        ("World's Greatest Stretch", ["hips", "hamstrings"], 6, None),
        ("Thoracic Rotations", ["upper back"], 10, None),
    ],
}


class SlotScheduler:
    """First-fit placement of workouts around busy calendar blocks."""

    def __init__(
        self,
        window_start_hour: int = 6,
        window_end_hour: int = 22,
        granularity_minutes: int = 30,
    ) -> None:
        if not 0 <= window_start_hour < window_end_hour <= 24:
            raise ValueError("invalid scheduling window")
        if granularity_minutes <= 0:
            raise ValueError("granularity must be positive")
        self.window_start_hour = window_start_hour
        self.window_end_hour = window_end_hour
        self.step = datetime.timedelta(minutes=granularity_minutes)

    def _window(
        self, day: datetime.date
    ) -> tuple[datetime.datetime, datetime.datetime]:
        midnight = datetime.datetime.combine(day, datetime.time())
        return (
            midnight + datetime.timedelta(hours=self.window_start_hour),
            midnight + datetime.timedelta(hours=self.window_end_hour),
        )

    @staticmethod
    def busy_on_day(
        day: datetime.date, busy: Iterable[BusyInterval]
    ) -> list[BusyInterval]:
        start = datetime.datetime.combine(day, datetime.time())
        end = start + datetime.timedelta(days=1)
        return [b for b in busy if IntervalMath.overlaps(b, (start, end))]

    @staticmethod
    def is_slot_free(
        start: datetime.datetime,
        duration_seconds: int,
        busy: Iterable[BusyInterval],
    ) -> bool:
        candidate = (start, start + datetime.timedelta(seconds=duration_seconds))
        return not any(IntervalMath.overlaps(candidate, b) for b in busy)

    def _scan(
        self,
        start: datetime.datetime,
        stop: datetime.datetime,
        duration_seconds: int,
        busy: list[BusyInterval],
    ):
        candidate = start
        while candidate < stop:
            if self.is_slot_free(candidate, duration_seconds, busy):
                yield candidate
            candidate += self.step

    def find_first_slot(
        self,
        day: datetime.date,
        duration_seconds: int,
        busy: Iterable[BusyInterval],
    ) -> datetime.datetime | None:
        day_busy = self.busy_on_day(day, busy)
        start, end = self._window(day)
        return next(self._scan(start, end, duration_seconds, day_busy), None)

    def schedule_week(
        self,
        requests: Iterable[WorkoutSlotRequest],
        busy: Iterable[BusyInterval],
    ) -> list[ScheduledWorkout]:
        """Place each request in the first free slot of its own day.

        Output order matches input order. Requests without a free slot are
        returned unassigned with their desired time left as is.
        """
        busy = list(busy)
        result: list[ScheduledWorkout] = []
        for request in requests:
            slot = self.find_first_slot(request.day, request.duration_seconds, busy)
            if slot is None:
                result.append(
                    ScheduledWorkout(request=request, status=SlotStatus.UNASSIGNED)
                )
            else:
                result.append(
                    ScheduledWorkout(
                        request=request, start_time=slot, status=SlotStatus.ASSIGNED
                    )
                )
        return result

    def suggested_times(
        self,
        day: datetime.date,
        duration_seconds: int,
        busy: Iterable[BusyInterval],
        preferred_times: Iterable[str] | None = None,
    ) -> list[datetime.datetime]:
        """Return free slot starts on ``day`` grouped by preferred time of day."""
        bands = [TimeOfDay(t) for t in preferred_times] if preferred_times else list(TimeOfDay)
        day_busy = self.busy_on_day(day, busy)
        window_start, window_end = self._window(day)
        midnight = datetime.datetime.combine(day, datetime.time())
        result: list[datetime.datetime] = []
        for band in bands:
            lo, hi = TIME_OF_DAY_HOURS[band]
            start = max(window_start, midnight + datetime.timedelta(hours=lo))
            stop = min(window_end, midnight + datetime.timedelta(hours=hi))
            # Align to the window grid so suggestions match scheduled slots.
            offset = (start - window_start) % self.step
            if offset:
                start += self.step - offset
            for slot in self._scan(start, stop, duration_seconds, day_busy):
                if slot not in result:
                    result.append(slot)
        return result

    @staticmethod
    def has_busy_schedule(day: datetime.date, busy: Iterable[BusyInterval]) -> bool:
        """Return ``True`` when more than six hours of ``day`` are booked."""
        start = datetime.datetime.combine(day, datetime.time())
        end = start + datetime.timedelta(days=1)
        clipped = [
            c for c in (IntervalMath.clip(b, start, end) for b in busy) if c
        ]
        return IntervalMath.total_busy_seconds(clipped) > BUSY_DAY_SECONDS


class SchedulerService:
    """Places upcoming workouts into free calendar slots and stores the result."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        calendar: CalendarService,
        settings_repo: SettingsRepository,
        log_repo: SchedulerLogRepository | None = None,
        exercise_repo: WorkoutExerciseRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.calendar = calendar
        self.settings = settings_repo
        self.log_repo = log_repo
        self.exercises = exercise_repo

    def slot_scheduler(self) -> SlotScheduler:
        return SlotScheduler(
            self.settings.get_int("day_window_start_hour", 6),
            self.settings.get_int("day_window_end_hour", 22),
            self.settings.get_int("slot_granularity_minutes", 30),
        )

    def busy_intervals(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> list[BusyInterval]:
        """Return busy blocks, or an empty list when the calendar is unavailable."""
        try:
            return self.calendar.fetch_busy_intervals(start, end)
        except CalendarPermissionError:
            return []

    def _day_busy(self, day: datetime.date) -> list[BusyInterval]:
        start = datetime.datetime.combine(day, datetime.time())
        return self.busy_intervals(start, start + datetime.timedelta(days=1))

    def is_slot_free(self, start: datetime.datetime, duration_seconds: int) -> bool:
        end = start + datetime.timedelta(seconds=duration_seconds)
        if end <= start:
            raise ValueError("duration must be positive")
        return SlotScheduler.is_slot_free(
            start, duration_seconds, self.busy_intervals(start, end)
        )

    def suggested_times(
        self, day: datetime.date, duration_seconds: int | None = None
    ) -> list[datetime.datetime]:
        if duration_seconds is None:
            duration_seconds = self.settings.get_int("session_duration_minutes", 45) * 60
        return self.slot_scheduler().suggested_times(
            day,
            duration_seconds,
            self._day_busy(day),
            self.settings.get_list("preferred_times") or None,
        )

    def has_busy_schedule(self, day: datetime.date) -> bool:
        return SlotScheduler.has_busy_schedule(day, self._day_busy(day))

    def schedule_upcoming(
        self, start: datetime.datetime | None = None, days: int = 7
    ) -> list[ScheduledWorkout]:
        start = start or datetime.datetime.now()
        end = start + datetime.timedelta(days=days)
        try:
            upcoming = self.workouts.fetch_upcoming(start, days)
            requests = [
                WorkoutSlotRequest(
                    workout_id=w.id,
                    desired_date=w.scheduled_at,
                    duration_seconds=w.duration_seconds,
                )
                for w in upcoming
            ]
            busy = self.busy_intervals(
                datetime.datetime.combine(start.date(), datetime.time()),
                datetime.datetime.combine(end.date(), datetime.time())
                + datetime.timedelta(days=1),
            )
            results = self.slot_scheduler().schedule_week(requests, busy)
            for item in results:
                self.workouts.set_schedule(
                    item.request.workout_id, item.start_time, item.status.value
                )
        except Exception as e:
            if self.log_repo is not None:
                self.log_repo.log_error(str(e))
            raise
        if self.log_repo is not None:
            placed = sum(1 for r in results if r.status == SlotStatus.ASSIGNED)
            self.log_repo.log_success(f"{placed}/{len(results)} workouts placed")
        return results

    def _desired_hour(self) -> int:
        preferred = self.settings.get_list("preferred_times")
        if preferred:
            try:
                return TIME_OF_DAY_HOURS[TimeOfDay(preferred[0])][0]
            except ValueError:
                pass
        return self.settings.get_int("day_window_start_hour", 6)

    def generate_week(
        self, start: datetime.date | None = None
    ) -> list[ScheduledWorkout]:
        """Create this week's sessions from settings and schedule them."""
        if self.exercises is None:
            raise ValueError("exercise repository not configured")
        start = start or datetime.date.today()
        frequency = self.settings.get_int("weekly_frequency", 3)
        if not 1 <= frequency <= 7:
            raise ValueError("weekly_frequency must be between 1 and 7")
        duration = self.settings.get_int("session_duration_minutes", 45) * 60
        hour = self._desired_hour()
        existing = len(self.workouts.fetch_all_workouts())
        for i in range(frequency):
            day = start + datetime.timedelta(days=(i * 7) // frequency)
            focus = FOCUS_ROTATION[(existing + i) % len(FOCUS_ROTATION)]
            desired = datetime.datetime.combine(day, datetime.time(hour=hour))
            wid = self.workouts.create(
                f"{focus.value.title()} Day", desired, focus.value, duration
            )
            for name, muscles, reps, seconds in SAMPLE_EXERCISES[focus]:
                self.exercises.add(
                    wid, name, muscles, reps=reps, duration_seconds=seconds
                )
        return self.schedule_upcoming(
            datetime.datetime.combine(start, datetime.time()), 7
        )
