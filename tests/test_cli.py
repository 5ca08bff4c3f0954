import os
import sys
import json

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from db import BehaviorSnapshotRepository, CheckInRepository, WorkoutRepository


def _paths(tmp_path):
    return str(tmp_path / "cli.db"), str(tmp_path / "cli.yaml")


def test_demo_then_analyze(tmp_path, capsys):
    db, yaml_path = _paths(tmp_path)
    cli.main(["demo", "--db", db, "--yaml", yaml_path])
    assert "Demo data inserted" in capsys.readouterr().out
    workouts = WorkoutRepository(db).fetch_all_workouts()
    assert len(workouts) == 9

    cli.main(["demo", "--db", db, "--yaml", yaml_path])
    assert "already contains" in capsys.readouterr().out

    cli.main(["analyze", "--db", db, "--yaml", yaml_path, "--json"])
    out = capsys.readouterr().out
    assert "Completion rate: 67%" in out
    data = json.loads(out[out.index("{"):])
    assert data["patterns"]["completion_rate"] == 0.6667
    assert BehaviorSnapshotRepository(db).load() is not None


def test_schedule_command(tmp_path, capsys):
    db, yaml_path = _paths(tmp_path)
    repo = WorkoutRepository(db)
    repo.create("Push", "2030-01-07T06:00:00", "push", 3600)
    rows = cli.run_schedule(db, yaml_path, "2030-01-07T00:00:00", 7)
    assert rows == [
        {"workout_id": 1, "status": "assigned", "start_time": "2030-01-07T06:00:00"}
    ]
    assert "workout 1: assigned" in capsys.readouterr().out


def test_checkin_command(tmp_path, capsys):
    db, yaml_path = _paths(tmp_path)
    cli.main(
        [
            "checkin",
            "My wrist hurts and I am exhausted",
            "--db",
            db,
            "--yaml",
            yaml_path,
            "--energy",
            "1",
        ]
    )
    out = capsys.readouterr().out
    assert "Limitation: hurt - wrist" in out
    assert "reduceIntensity" in out
    stored = CheckInRepository(db).latest()
    assert stored["energy_level"] == 1


def test_checkin_rejects_zero_rating(tmp_path, capsys):
    db, yaml_path = _paths(tmp_path)
    with pytest.raises(SystemExit):
        cli.main(["checkin", "Fine", "--db", db, "--yaml", yaml_path, "--soreness", "0"])
    assert "soreness" in capsys.readouterr().err
    assert CheckInRepository(db).latest() is None


def test_backup_and_restore(tmp_path):
    db, yaml_path = _paths(tmp_path)
    WorkoutRepository(db).create("Push", "2030-01-07T06:00:00")
    backup = str(tmp_path / "backup.db")
    cli.main(["backup", "--db", db, "--out", backup])
    WorkoutRepository(db).delete_all()
    assert WorkoutRepository(db).fetch_all_workouts() == []
    cli.main(["restore", "--in", backup, "--db", db])
    assert len(WorkoutRepository(db).fetch_all_workouts()) == 1
