import datetime
import threading
from fastapi import FastAPI, HTTPException, Response, Body, APIRouter

from config import APP_VERSION, AppConfig
from db import (
    WorkoutRepository,
    WorkoutExerciseRepository,
    BusyIntervalRepository,
    BehaviorSnapshotRepository,
    AdaptiveStateRepository,
    CheckInRepository,
    NotificationRepository,
    AsyncNotificationRepository,
    AnalysisLogRepository,
    SchedulerLogRepository,
    SettingsRepository,
)
from models import CheckInRatings
from calendar_service import CalendarService
from scheduler_service import SchedulerService
from notification_service import NotificationService
from adaptive_service import AdaptiveBehaviorService, AnalysisError
from text_insights import TextInsightExtractor


def _parse_datetime(value: str, field: str) -> datetime.datetime:
    try:
        return datetime.datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid {field}")


def _parse_date(value: str, field: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid {field}")


def _workout_row(row: tuple) -> dict:
    wid, title, focus, scheduled, duration, difficulty, done, completed, status = row
    return {
        "id": wid,
        "title": title,
        "focus": focus,
        "scheduled_at": scheduled,
        "duration_seconds": duration,
        "difficulty": difficulty,
        "is_completed": bool(done),
        "completed_at": completed,
        "schedule_status": status,
    }


def _scheduled_dict(item) -> dict:
    return {
        "workout_id": item.request.workout_id,
        "status": item.status.value,
        "start_time": item.start_time.isoformat() if item.start_time else None,
        "original_time": item.original_time.isoformat(),
    }


class AnalysisScheduler(threading.Thread):
    """Background thread running behavior analysis on a fixed interval."""

    def __init__(self, api: "FitVitalAPI", interval_hours: int | None = None) -> None:
        super().__init__(daemon=True)
        self.api = api
        hours = interval_hours or api.settings.get_int("analysis_interval_hours", 168)
        self.interval = hours * 3600
        self.last_run: datetime.datetime | None = None
        self.running = True
        self._wake = threading.Event()

    def run_once(self) -> None:
        now = datetime.datetime.now()
        self.api.adaptive.analyze_user_behavior(now=now)
        self.api.notifier.check_in_prompt()
        self.last_run = now

    def run(self) -> None:
        while self.running:
            try:
                self.run_once()
            except AnalysisError:
                # already written to the analysis log
                pass
            self._wake.wait(self.interval)

    def stop(self) -> None:
        self.running = False
        self._wake.set()


class FitVitalAPI:
    """Provides REST endpoints for adaptive scheduling and behavior analysis."""

    def __init__(
        self,
        db_path: str = "fitvital.db",
        yaml_path: str = "settings.yaml",
        *,
        start_scheduler: bool = False,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.workouts = WorkoutRepository(db_path)
        self.exercises = WorkoutExerciseRepository(db_path)
        self.busy = BusyIntervalRepository(db_path)
        self.snapshots = BehaviorSnapshotRepository(db_path)
        self.state = AdaptiveStateRepository(db_path)
        self.check_ins = CheckInRepository(db_path)
        self.notifications = NotificationRepository(db_path)
        self.async_notifications = AsyncNotificationRepository(db_path)
        self.analysis_logs = AnalysisLogRepository(db_path)
        self.scheduler_logs = SchedulerLogRepository(db_path)
        self.calendar = CalendarService(self.busy, self.settings)
        self.notifier = NotificationService(
            self.notifications, self.settings, self.async_notifications
        )
        self.scheduling = SchedulerService(
            self.workouts,
            self.calendar,
            self.settings,
            log_repo=self.scheduler_logs,
            exercise_repo=self.exercises,
        )
        self.adaptive = AdaptiveBehaviorService(
            self.workouts,
            self.snapshots,
            self.state,
            self.settings,
            self.notifier,
            check_in_repo=self.check_ins,
            log_repo=self.analysis_logs,
        )
        self.extractor = TextInsightExtractor()
        self.app = FastAPI(
            title="FitVital API",
            description="Adaptive workout scheduling and behavior insights",
        )
        self.scheduler: AnalysisScheduler | None = None
        if start_scheduler:
            self.scheduler = AnalysisScheduler(self)
            self.scheduler.start()
        self._setup_routes()

    def _setup_routes(self) -> None:
        schedule_router = APIRouter(prefix="/schedule", tags=["Schedule"])
        behavior_router = APIRouter(prefix="/behavior", tags=["Behavior"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.workouts.fetch_all_workouts(limit=1)
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/workouts")
        def create_workout(
            title: str,
            scheduled_at: str,
            focus: str = "push",
            duration_minutes: int = 45,
            difficulty: int = 2,
        ):
            when = _parse_datetime(scheduled_at, "scheduled_at")
            try:
                wid = self.workouts.create(
                    title, when, focus, duration_minutes * 60, difficulty
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": wid}

        @self.app.get("/workouts")
        def list_workouts(start_date: str = None, end_date: str = None):
            rows = self.workouts.fetch_all_workouts(start_date, end_date)
            return [_workout_row(r) for r in rows]

        @self.app.get("/workouts/upcoming")
        def upcoming_workouts(days: int = None):
            workouts = self.workouts.fetch_upcoming(days=days)
            return [w.model_dump(mode="json") for w in workouts]

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            try:
                return self.workouts.fetch_workout(workout_id).model_dump(mode="json")
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: int):
            try:
                self.workouts.delete(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @self.app.post("/workouts/{workout_id}/complete")
        def complete_workout(workout_id: int, completed_at: str = None):
            when = _parse_datetime(completed_at, "completed_at") if completed_at else None
            try:
                self.workouts.set_completed(workout_id, when)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "completed"}

        @self.app.post("/workouts/{workout_id}/exercises")
        def add_exercise(
            workout_id: int,
            name: str,
            target_muscles: str = "",
            sets: int = 3,
            reps: int = None,
            duration_seconds: int = None,
        ):
            muscles = [m for m in target_muscles.replace("|", ",").split(",") if m]
            try:
                ex_id = self.exercises.add(
                    workout_id, name, muscles, sets, reps, duration_seconds
                )
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"id": ex_id}

        @self.app.get("/workouts/{workout_id}/exercises")
        def list_exercises(workout_id: int):
            return self.exercises.fetch_for_workout(workout_id)

        @self.app.delete("/exercises/{exercise_id}")
        def delete_exercise(exercise_id: int):
            try:
                self.exercises.remove(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @self.app.post("/busy_intervals")
        def add_busy_interval(start: str, end: str, title: str = None):
            try:
                bid = self.calendar.add_busy_interval(
                    _parse_datetime(start, "start"), _parse_datetime(end, "end"), title
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": bid}

        @self.app.get("/busy_intervals")
        def list_busy_intervals():
            return self.busy.fetch_all_records()

        @self.app.delete("/busy_intervals/{interval_id}")
        def delete_busy_interval(interval_id: int):
            try:
                self.busy.delete(interval_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @self.app.post("/calendar/import")
        def import_calendar(content: str = Body(...)):
            return {"imported": self.calendar.import_ics(content)}

        @schedule_router.post("/week")
        def schedule_week(start: str = None, days: int = 7):
            begin = _parse_datetime(start, "start") if start else None
            try:
                results = self.scheduling.schedule_upcoming(begin, days)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return [_scheduled_dict(r) for r in results]

        @schedule_router.post("/generate")
        def generate_week(start: str = None):
            begin = _parse_date(start, "start") if start else None
            try:
                results = self.scheduling.generate_week(begin)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return [_scheduled_dict(r) for r in results]

        @schedule_router.get("/slot_free")
        def slot_free(start: str, duration_minutes: int = 45):
            begin = _parse_datetime(start, "start")
            try:
                free = self.scheduling.is_slot_free(begin, duration_minutes * 60)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"free": free}

        @schedule_router.get("/suggestions")
        def suggestions(date: str, duration_minutes: int = None):
            day = _parse_date(date, "date")
            seconds = duration_minutes * 60 if duration_minutes else None
            slots = self.scheduling.suggested_times(day, seconds)
            return {
                "date": day.isoformat(),
                "slots": [s.isoformat() for s in slots],
                "busy_day": self.scheduling.has_busy_schedule(day),
            }

        @behavior_router.post("/analyze")
        def analyze_behavior():
            try:
                result = self.adaptive.analyze_user_behavior()
            except AnalysisError as e:
                raise HTTPException(status_code=500, detail=str(e))
            return result.model_dump(mode="json")

        @behavior_router.get("/patterns")
        def behavior_patterns():
            return self.adaptive.load_behavior_patterns().model_dump(mode="json")

        @behavior_router.get("/history")
        def behavior_history():
            return self.adaptive.history_summary()

        @behavior_router.get("/snapshots")
        def behavior_snapshots(limit: int = 10):
            return self.snapshots.history(limit)

        @behavior_router.get("/multiplier")
        def difficulty_multiplier():
            return {"multiplier": self.adaptive.current_multiplier()}

        @behavior_router.post("/injuries")
        def report_injury(body_parts: str):
            parts = [p.strip() for p in body_parts.split(",") if p.strip()]
            try:
                changed = self.adaptive.adapt_for_injury(parts)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"updated": [w.id for w in changed]}

        @self.app.post("/check_ins")
        def submit_check_in(
            text: str = Body(...),
            energy_level: int = None,
            soreness: int = None,
            motivation: int = None,
        ):
            try:
                ratings = CheckInRatings.from_values(energy_level, soreness, motivation)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            try:
                cid, analysis, result = self.adaptive.submit_check_in(text, ratings)
            except AnalysisError as e:
                raise HTTPException(status_code=500, detail=str(e))
            return {
                "id": cid,
                "analysis": analysis.model_dump(mode="json"),
                "result": result.model_dump(mode="json"),
            }

        @self.app.post("/check_ins/analyze")
        def analyze_check_in(text: str = Body(...)):
            return self.extractor.extract(text).model_dump(mode="json")

        @self.app.get("/check_ins")
        def list_check_ins(limit: int = None):
            return self.check_ins.fetch_all(limit)

        @self.app.get("/notifications")
        def get_notifications(unread_only: bool = False, kind: str = None):
            return self.notifications.fetch_all(unread_only, kind)

        @self.app.put("/notifications/{nid}/read")
        def mark_notification_read(nid: int):
            try:
                self.notifications.mark_read(nid)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "read"}

        @self.app.get("/notifications/unread_count")
        def unread_count():
            return {"count": self.notifications.unread_count()}

        @self.app.post("/notifications/drain")
        async def drain_notifications():
            return await self.notifier.drain()

        @self.app.get("/logs/analysis")
        def analysis_status():
            return {
                "last_success": self.analysis_logs.last_success(),
                "errors": [
                    {"timestamp": ts, "message": msg}
                    for ts, msg in self.analysis_logs.last_errors(5)
                ],
            }

        @self.app.get("/logs/scheduler")
        def scheduler_status():
            return {
                "last_success": self.scheduler_logs.last_success(),
                "errors": [
                    {"timestamp": ts, "message": msg}
                    for ts, msg in self.scheduler_logs.last_errors(5)
                ],
            }

        @self.app.get("/settings/general")
        def get_general_settings():
            return self.settings.all_settings()

        @self.app.post("/settings/general")
        def update_general_settings(
            calendar_access_enabled: bool = None,
            notifications_enabled: bool = None,
            day_window_start_hour: int = None,
            day_window_end_hour: int = None,
            slot_granularity_minutes: int = None,
            history_days: int = None,
            weekly_frequency: int = None,
            session_duration_minutes: int = None,
            preferred_times: str = None,
        ):
            values = {
                "calendar_access_enabled": calendar_access_enabled,
                "notifications_enabled": notifications_enabled,
                "day_window_start_hour": day_window_start_hour,
                "day_window_end_hour": day_window_end_hour,
                "slot_granularity_minutes": slot_granularity_minutes,
                "history_days": history_days,
                "weekly_frequency": weekly_frequency,
                "session_duration_minutes": session_duration_minutes,
            }
            values = {k: v for k, v in values.items() if v is not None}
            if preferred_times is not None:
                values["preferred_times"] = ",".join(
                    t.strip() for t in preferred_times.split(",") if t.strip()
                )
            try:
                self.settings.update(values)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @self.app.get("/settings/backup")
        def backup_db():
            with open(self.db_path, "rb") as f:
                data = f.read()
            return Response(
                content=data,
                media_type="application/octet-stream",
                headers={"Content-Disposition": "attachment; filename=backup.db"},
            )

        self.app.include_router(schedule_router)
        self.app.include_router(behavior_router)


_config = AppConfig.from_env()
api = FitVitalAPI(db_path=_config.db_path, yaml_path=_config.settings_path)
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
