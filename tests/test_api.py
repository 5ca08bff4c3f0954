import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import FitVitalAPI, AnalysisScheduler


TOMORROW = datetime.date.today() + datetime.timedelta(days=1)


def at(hour: int, minute: int = 0, day: datetime.date = TOMORROW) -> str:
    return datetime.datetime.combine(day, datetime.time(hour, minute)).isoformat()


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_fitvital.db"
        self.yaml_path = "test_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.api = FitVitalAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_workout_workflow(self) -> None:
        response = self.client.post(
            "/workouts",
            params={"title": "Push Day", "scheduled_at": at(6), "duration_minutes": 60},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"id": 1})

        response = self.client.post(
            "/workouts/1/exercises",
            params={"name": "Bench Press", "target_muscles": "chest,triceps"},
        )
        self.assertEqual(response.json(), {"id": 1})

        response = self.client.get("/workouts/1/exercises")
        self.assertEqual(response.json()[0]["target_muscles"], ["chest", "triceps"])

        response = self.client.post(
            "/busy_intervals", params={"start": at(6), "end": at(8), "title": "Standup"}
        )
        self.assertEqual(response.json(), {"id": 1})

        response = self.client.post(
            "/schedule/week",
            params={"start": datetime.datetime.combine(TOMORROW, datetime.time()).isoformat()},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            [
                {
                    "workout_id": 1,
                    "status": "assigned",
                    "start_time": at(8),
                    "original_time": at(6),
                }
            ],
        )

        response = self.client.get("/workouts/1")
        self.assertEqual(response.json()["scheduled_at"], at(8))
        self.assertEqual(response.json()["exercises"][0]["name"], "Bench Press")

        response = self.client.post("/workouts/1/complete")
        self.assertEqual(response.status_code, 200)
        rows = self.client.get("/workouts").json()
        self.assertTrue(rows[0]["is_completed"])
        self.assertEqual(rows[0]["schedule_status"], "assigned")

        self.assertEqual(self.client.delete("/workouts/1").status_code, 200)
        self.assertEqual(self.client.get("/workouts/1").status_code, 404)

    def test_validation_errors(self) -> None:
        response = self.client.post(
            "/busy_intervals", params={"start": at(9), "end": at(8)}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/workouts", params={"title": "Bad", "scheduled_at": "yesterday"}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/workouts",
            params={"title": "Bad", "scheduled_at": at(9), "difficulty": 5},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.delete("/busy_intervals/7").status_code, 404)
        self.assertEqual(self.client.put("/notifications/3/read").status_code, 404)

    def test_slot_queries(self) -> None:
        self.client.post("/busy_intervals", params={"start": at(6), "end": at(12)})
        response = self.client.get(
            "/schedule/slot_free", params={"start": at(9), "duration_minutes": 30}
        )
        self.assertEqual(response.json(), {"free": False})
        response = self.client.get(
            "/schedule/suggestions", params={"date": TOMORROW.isoformat()}
        )
        data = response.json()
        self.assertFalse(data["busy_day"])
        self.assertEqual(data["slots"][0], at(17))

    def test_calendar_import(self) -> None:
        stamp = TOMORROW.strftime("%Y%m%d")
        ics = (
            "BEGIN:VCALENDAR\nBEGIN:VEVENT\n"
            f"DTSTART:{stamp}T090000\nDTEND:{stamp}T100000\nSUMMARY:Call\n"
            "END:VEVENT\nEND:VCALENDAR\n"
        )
        response = self.client.post("/calendar/import", json=ics)
        self.assertEqual(response.json(), {"imported": 1})
        records = self.client.get("/busy_intervals").json()
        self.assertEqual(records[0]["title"], "Call")
        self.assertEqual(records[0]["source"], "ics")

    def test_behavior_endpoints(self) -> None:
        response = self.client.post("/behavior/analyze")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["used_default"])
        self.assertEqual(data["patterns"]["completion_rate"], 0.8)

        patterns = self.client.get("/behavior/patterns").json()
        self.assertEqual(patterns["completion_rate"], 0.8)
        self.assertEqual(
            self.client.get("/behavior/multiplier").json(), {"multiplier": 1.0}
        )
        self.assertEqual(len(self.client.get("/behavior/snapshots").json()), 1)
        logs = self.client.get("/logs/analysis").json()
        self.assertIsNotNone(logs["last_success"])
        self.assertEqual(logs["errors"], [])

    def test_check_in_flow(self) -> None:
        self.client.post(
            "/workouts",
            params={"title": "Legs", "scheduled_at": at(18), "focus": "legs"},
        )
        self.client.post(
            "/workouts/1/exercises",
            params={"name": "Walking Lunges", "target_muscles": "quadriceps,glutes"},
        )
        self.client.post(
            "/workouts/1/exercises", params={"name": "Calf Raise", "target_muscles": "calves"}
        )
        response = self.client.post(
            "/check_ins",
            json="Having some knee pain after the weekend",
            params={"energy_level": 2},
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["id"], 1)
        self.assertEqual(data["analysis"]["injury_keywords"], ["knee pain"])
        self.assertEqual(data["result"]["difficulty_multiplier"], 0.8)
        self.assertEqual(data["result"]["updated_workouts"], [1])

        exercises = self.client.get("/workouts/1/exercises").json()
        self.assertEqual([e["name"] for e in exercises], ["Calf Raise"])

        kinds = [n["kind"] for n in self.client.get("/notifications").json()]
        self.assertIn("injury_detection", kinds)
        self.assertIn("adaptive_difficulty", kinds)
        count = self.client.get("/notifications/unread_count").json()["count"]
        self.assertEqual(count, len(kinds))
        self.assertEqual(self.client.put("/notifications/1/read").status_code, 200)
        self.assertEqual(
            self.client.get("/notifications/unread_count").json()["count"], count - 1
        )

        drained = self.client.post("/notifications/drain").json()
        self.assertEqual(len(drained), len(kinds))
        self.assertEqual(self.client.post("/notifications/drain").json(), [])

        self.assertEqual(len(self.client.get("/check_ins").json()), 1)

    def test_check_in_rating_out_of_range(self) -> None:
        response = self.client.post(
            "/check_ins", json="fine", params={"soreness": 9}
        )
        self.assertEqual(response.status_code, 400)

    def test_check_in_analyze_only(self) -> None:
        response = self.client.post(
            "/check_ins/analyze", json="Feeling motivated and ready"
        )
        data = response.json()
        self.assertEqual(data["motivation_polarity"], "positive")
        self.assertEqual(self.client.get("/check_ins").json(), [])

    def test_report_injury(self) -> None:
        self.client.post(
            "/workouts", params={"title": "Push", "scheduled_at": at(7)}
        )
        self.client.post(
            "/workouts/1/exercises",
            params={"name": "Overhead Press", "target_muscles": "triceps"},
        )
        self.client.post(
            "/workouts/1/exercises", params={"name": "Bench Press", "target_muscles": "chest"}
        )
        response = self.client.post(
            "/behavior/injuries", params={"body_parts": "shoulder"}
        )
        self.assertEqual(response.json(), {"updated": [1]})
        response = self.client.post("/behavior/injuries", params={"body_parts": " "})
        self.assertEqual(response.status_code, 400)

    def test_settings(self) -> None:
        response = self.client.post(
            "/settings/general",
            params={"calendar_access_enabled": False, "preferred_times": "evening"},
        )
        self.assertEqual(response.status_code, 200)
        data = self.client.get("/settings/general").json()
        self.assertFalse(data["calendar_access_enabled"])
        self.assertEqual(data["preferred_times"], "evening")
        response = self.client.post(
            "/settings/general", params={"history_days": -1}
        )
        self.assertEqual(response.status_code, 400)

    def test_invalid_settings_are_not_stored(self) -> None:
        response = self.client.post(
            "/settings/general", params={"day_window_start_hour": 23}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/settings/general", params={"preferred_times": "morning,night"}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.get("/settings/general")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["day_window_start_hour"], 6)
        self.assertEqual(response.json()["preferred_times"], "morning,evening")
        # a fresh app still starts on the same files
        FitVitalAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        response = self.client.post(
            "/settings/general",
            params={"day_window_start_hour": 7, "day_window_end_hour": 21},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.api.settings.get_int("day_window_end_hour", 22), 21)

    def test_zero_rating_is_rejected(self) -> None:
        response = self.client.post(
            "/check_ins", json="Feeling fine", params={"energy_level": 0}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/check_ins").json(), [])

    def test_backup(self) -> None:
        response = self.client.get("/settings/backup")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.content.startswith(b"SQLite format 3"))

    def test_scheduler_run_once(self) -> None:
        scheduler = AnalysisScheduler(self.api, interval_hours=1)
        self.assertEqual(scheduler.interval, 3600)
        scheduler.run_once()
        self.assertIsNotNone(scheduler.last_run)
        kinds = [n["kind"] for n in self.api.notifications.fetch_all()]
        self.assertIn("check_in_prompt", kinds)
        self.assertEqual(self.api.analysis_logs.count(), 1)


if __name__ == "__main__":
    unittest.main()
