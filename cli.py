import argparse
import datetime
import json
import shutil
from typing import Optional

import requests
import time

from models import CheckInRatings
from rest_api import FitVitalAPI


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def run_analysis(db_path: str, yaml_path: str) -> dict:
    """Run one behavior analysis and print a short summary."""
    api = FitVitalAPI(db_path=db_path, yaml_path=yaml_path)
    result = api.adaptive.analyze_user_behavior()
    print(f"Completion rate: {result.patterns.completion_rate:.0%}")
    print(
        f"Difficulty multiplier: {result.previous_multiplier:.2f} -> "
        f"{result.difficulty_multiplier:.2f}"
    )
    for insight in result.insights:
        print(f"[{insight.severity.value}] {insight.title}: {insight.description}")
    return result.model_dump(mode="json")


def run_schedule(
    db_path: str, yaml_path: str, start: Optional[str] = None, days: int = 7
) -> list[dict]:
    api = FitVitalAPI(db_path=db_path, yaml_path=yaml_path)
    begin = datetime.datetime.fromisoformat(start) if start else None
    results = api.scheduling.schedule_upcoming(begin, days)
    rows = []
    for item in results:
        when = item.start_time.isoformat() if item.start_time else "-"
        print(f"workout {item.request.workout_id}: {item.status.value} {when}")
        rows.append(
            {
                "workout_id": item.request.workout_id,
                "status": item.status.value,
                "start_time": item.start_time.isoformat() if item.start_time else None,
            }
        )
    return rows


def submit_check_in(
    db_path: str,
    yaml_path: str,
    text: str,
    energy: Optional[int] = None,
    soreness: Optional[int] = None,
    motivation: Optional[int] = None,
) -> dict:
    api = FitVitalAPI(db_path=db_path, yaml_path=yaml_path)
    ratings = CheckInRatings.from_values(energy, soreness, motivation)
    cid, analysis, result = api.adaptive.submit_check_in(text, ratings)
    print(f"Check-in {cid} stored")
    print(
        f"Sentiment: {analysis.sentiment.polarity.value}, "
        f"motivation {analysis.motivation_score:.1f}"
    )
    for limitation in analysis.physical_limitations:
        print(f"Limitation: {limitation}")
    for mod in result.modifications:
        print(f"{mod.type.value}: {mod.reason}")
    return {"id": cid, "analysis": analysis.model_dump(mode="json")}


def demo_data(db_path: str, yaml_path: str) -> None:
    """Populate the database with a week of history and a generated plan."""
    api = FitVitalAPI(db_path=db_path, yaml_path=yaml_path)
    if api.workouts.fetch_all_workouts():
        print("Database already contains workouts")
        return
    today = datetime.date.today()
    history = [
        (14, "push", 7, True),
        (12, "legs", 18, False),
        (10, "cardio", 7, True),
        (7, "pull", 18, True),
        (5, "mobility", 7, False),
        (3, "push", 18, True),
    ]
    for days_ago, focus, hour, done in history:
        when = datetime.datetime.combine(
            today - datetime.timedelta(days=days_ago), datetime.time(hour=hour)
        )
        wid = api.workouts.create(f"{focus.title()} Session", when, focus)
        if done:
            api.workouts.set_completed(wid, when + datetime.timedelta(minutes=50))
    tomorrow = datetime.datetime.combine(
        today + datetime.timedelta(days=1), datetime.time(hour=9)
    )
    api.calendar.add_busy_interval(
        tomorrow, tomorrow + datetime.timedelta(hours=2), "Team meeting"
    )
    api.scheduling.generate_week(today + datetime.timedelta(days=1))
    print("Demo data inserted")


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="FitVital utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    ana = sub.add_parser("analyze")
    ana.add_argument("--db", default="fitvital.db")
    ana.add_argument("--yaml", default="settings.yaml")
    ana.add_argument("--json", action="store_true")

    sch = sub.add_parser("schedule")
    sch.add_argument("--db", default="fitvital.db")
    sch.add_argument("--yaml", default="settings.yaml")
    sch.add_argument("--start")
    sch.add_argument("--days", type=int, default=7)

    chk = sub.add_parser("checkin")
    chk.add_argument("text")
    chk.add_argument("--db", default="fitvital.db")
    chk.add_argument("--yaml", default="settings.yaml")
    chk.add_argument("--energy", type=int)
    chk.add_argument("--soreness", type=int)
    chk.add_argument("--motivation", type=int)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="fitvital.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="fitvital.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="fitvital.db")
    demo.add_argument("--yaml", default="settings.yaml")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    args = parser.parse_args(argv)

    if args.cmd == "analyze":
        data = run_analysis(args.db, args.yaml)
        if args.json:
            print(json.dumps(data, indent=2))
    elif args.cmd == "schedule":
        run_schedule(args.db, args.yaml, args.start, args.days)
    elif args.cmd == "checkin":
        try:
            submit_check_in(
                args.db, args.yaml, args.text, args.energy, args.soreness, args.motivation
            )
        except ValueError as e:
            parser.error(str(e))
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)


if __name__ == "__main__":
    main()
