import requests
from typing import Optional


class FitVitalClient:
    """Simple REST client for the adaptive scheduling API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, **params):
        resp = requests.get(f"{self.base_url}{path}", params=params)
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, json=None, **params):
        resp = requests.post(f"{self.base_url}{path}", params=params, json=json)
        resp.raise_for_status()
        return resp.json()

    def create_workout(self, title: str, scheduled_at: str, **params) -> int:
        return self._post(
            "/workouts", title=title, scheduled_at=scheduled_at, **params
        )["id"]

    def list_workouts(self, **params):
        return self._get("/workouts", **params)

    def complete_workout(self, workout_id: int, completed_at: Optional[str] = None):
        params = {"completed_at": completed_at} if completed_at else {}
        return self._post(f"/workouts/{workout_id}/complete", **params)

    def add_exercise(self, workout_id: int, name: str, target_muscles: str = "") -> int:
        return self._post(
            f"/workouts/{workout_id}/exercises",
            name=name,
            target_muscles=target_muscles,
        )["id"]

    def add_busy_interval(self, start: str, end: str, title: Optional[str] = None) -> int:
        params = {"start": start, "end": end}
        if title:
            params["title"] = title
        return self._post("/busy_intervals", **params)["id"]

    def import_calendar(self, content: str) -> int:
        return self._post("/calendar/import", json=content)["imported"]

    def schedule_week(self, start: Optional[str] = None, days: int = 7):
        params = {"days": days}
        if start:
            params["start"] = start
        return self._post("/schedule/week", **params)

    def suggestions(self, date: str, duration_minutes: Optional[int] = None):
        params = {"date": date}
        if duration_minutes:
            params["duration_minutes"] = duration_minutes
        return self._get("/schedule/suggestions", **params)

    def analyze(self):
        return self._post("/behavior/analyze")

    def behavior_patterns(self):
        return self._get("/behavior/patterns")

    def multiplier(self) -> float:
        return self._get("/behavior/multiplier")["multiplier"]

    def submit_check_in(self, text: str, **ratings: int):
        return self._post("/check_ins", json=text, **ratings)

    def notifications(self, unread_only: bool = False):
        return self._get("/notifications", unread_only=unread_only)
