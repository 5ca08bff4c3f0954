import sqlite3
import aiosqlite
import datetime
import json
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from pydantic import ValidationError

from config import YamlConfig
from settings_schema import validate_settings
from models import (
    BehaviorPatterns,
    BusyInterval,
    Exercise,
    FocusType,
    NotificationKind,
    PlannedWorkout,
    WorkoutAttempt,
)


def to_timestamp(value: datetime.datetime | datetime.date | str) -> str:
    """Return the ISO text stored for ``value`` (second precision)."""
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time())
    return value.replace(microsecond=0).isoformat()


def _parse(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    return datetime.datetime.fromisoformat(value)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    focus TEXT NOT NULL DEFAULT 'push',
                    scheduled_at TEXT NOT NULL,
                    duration_seconds INTEGER NOT NULL DEFAULT 2700,
                    difficulty INTEGER NOT NULL DEFAULT 2,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    schedule_status TEXT
                );""",
            [
                "id",
                "title",
                "focus",
                "scheduled_at",
                "duration_seconds",
                "difficulty",
                "is_completed",
                "completed_at",
                "schedule_status",
            ],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    name TEXT NOT NULL,
                    target_muscles TEXT NOT NULL DEFAULT '',
                    sets INTEGER NOT NULL DEFAULT 3,
                    reps INTEGER,
                    duration_seconds INTEGER,
                    rest_seconds INTEGER NOT NULL DEFAULT 60,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "position",
                "name",
                "target_muscles",
                "sets",
                "reps",
                "duration_seconds",
                "rest_seconds",
            ],
        ),
        "busy_intervals": (
            """CREATE TABLE busy_intervals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    title TEXT,
                    source TEXT NOT NULL DEFAULT 'manual'
                );""",
            ["id", "start_time", "end_time", "title", "source"],
        ),
        "behavior_snapshots": (
            """CREATE TABLE behavior_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    completion_rate REAL NOT NULL,
                    data TEXT NOT NULL
                );""",
            ["id", "timestamp", "completion_rate", "data"],
        ),
        "adaptive_state": (
            """CREATE TABLE adaptive_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
        "check_ins": (
            """CREATE TABLE check_ins (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    text TEXT NOT NULL,
                    energy_level INTEGER,
                    soreness INTEGER,
                    motivation INTEGER,
                    analysis TEXT
                );""",
            [
                "id",
                "timestamp",
                "text",
                "energy_level",
                "soreness",
                "motivation",
                "analysis",
            ],
        ),
        "notifications": (
            """CREATE TABLE notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'motivation',
                    message TEXT NOT NULL,
                    payload TEXT,
                    read INTEGER NOT NULL DEFAULT 0,
                    delivered INTEGER NOT NULL DEFAULT 0
                );""",
            ["id", "timestamp", "kind", "message", "payload", "read", "delivered"],
        ),
        "analysis_logs": (
            """CREATE TABLE analysis_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "status", "message"],
        ),
        "scheduler_logs": (
            """CREATE TABLE scheduler_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "status", "message"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _DEFAULT_SETTINGS = {
        "calendar_access_enabled": "1",
        "day_window_start_hour": "6",
        "day_window_end_hour": "22",
        "slot_granularity_minutes": "30",
        "history_days": "30",
        "analysis_interval_hours": "168",
        "notifications_enabled": "1",
        "weekly_frequency": "3",
        "session_duration_minutes": "45",
        "preferred_times": "morning,evening",
    }

    def __init__(self, db_path: str = "fitvital.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()
        self.vacuum()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            cursor.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "focus":
                        return "'push'"
                    if col == "kind":
                        return "'motivation'"
                    if col == "source":
                        return "'manual'"
                    if col in ("position", "is_completed", "read", "delivered"):
                        return "0"
                    if col == "difficulty":
                        return "2"
                    if col == "duration_seconds" and table == "workouts":
                        return "2700"
                    if col == "target_muscles":
                        return "''"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in self._DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows

    async def _delete_all(self, table: str) -> None:
        await self.execute(f"DELETE FROM {table};")


def _exercise_from_row(row: Tuple) -> Exercise:
    _id, name, muscles, sets, reps, duration, rest = row
    return Exercise(
        name=name,
        target_muscles=[m for m in (muscles or "").split("|") if m],
        sets=sets,
        reps=reps,
        duration_seconds=duration,
        rest_seconds=rest,
    )


class WorkoutRepository(BaseRepository):
    """Repository for workouts and their exercises."""

    _COLUMNS = (
        "id, title, focus, scheduled_at, duration_seconds, difficulty, "
        "is_completed, completed_at, schedule_status"
    )

    def create(
        self,
        title: str,
        scheduled_at: datetime.datetime | str,
        focus: str = "push",
        duration_seconds: int = 2700,
        difficulty: int = 2,
    ) -> int:
        FocusType(focus)
        if not 1 <= int(difficulty) <= 3:
            raise ValueError("difficulty must be between 1 and 3")
        if int(duration_seconds) <= 0:
            raise ValueError("duration must be positive")
        return self.execute(
            "INSERT INTO workouts (title, focus, scheduled_at, duration_seconds, difficulty) VALUES (?, ?, ?, ?, ?);",
            (title, focus, to_timestamp(scheduled_at), int(duration_seconds), int(difficulty)),
        )

    def fetch_detail(self, workout_id: int) -> Tuple:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return rows[0]

    def fetch_all_workouts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sort_by: str = "scheduled_at",
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Tuple]:
        query = f"SELECT {self._COLUMNS} FROM workouts"
        params: list[str | int] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("scheduled_at >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("scheduled_at <= ?")
            params.append(end_date)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        allowed = {"id", "scheduled_at", "focus", "difficulty"}
        if sort_by not in allowed:
            sort_by = "scheduled_at"
        order = "DESC" if descending else "ASC"
        query += f" ORDER BY {sort_by} {order}, id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        query += ";"
        return self.fetch_all(query, tuple(params))

    def _exercises(self, workout_id: int) -> List[Exercise]:
        rows = self.fetch_all(
            "SELECT id, name, target_muscles, sets, reps, duration_seconds, rest_seconds "
            "FROM workout_exercises WHERE workout_id = ? ORDER BY position, id;",
            (workout_id,),
        )
        return [_exercise_from_row(r) for r in rows]

    def _to_model(self, row: Tuple) -> PlannedWorkout:
        wid, title, focus, scheduled, duration, difficulty, done, completed, _status = row
        return PlannedWorkout(
            id=wid,
            title=title,
            focus=focus,
            scheduled_at=_parse(scheduled),
            duration_seconds=duration,
            difficulty=difficulty,
            is_completed=bool(done),
            completed_at=_parse(completed),
            exercises=self._exercises(wid),
        )

    def fetch_workout(self, workout_id: int) -> PlannedWorkout:
        return self._to_model(self.fetch_detail(workout_id))

    def fetch_recent_attempts(
        self, days_back: int = 30, now: datetime.datetime | None = None
    ) -> List[WorkoutAttempt]:
        """Return attempts scheduled within the last ``days_back`` days."""
        now = now or datetime.datetime.now()
        since = now - datetime.timedelta(days=days_back)
        rows = self.fetch_all(
            "SELECT scheduled_at, completed_at, is_completed, focus, difficulty FROM workouts "
            "WHERE scheduled_at >= ? AND scheduled_at <= ? ORDER BY scheduled_at, id;",
            (to_timestamp(since), to_timestamp(now)),
        )
        return [
            WorkoutAttempt(
                scheduled_date=_parse(s),
                completed_at=_parse(c),
                is_completed=bool(done),
                focus_type=focus,
                difficulty_level=diff,
            )
            for s, c, done, focus, diff in rows
        ]

    def fetch_upcoming(
        self, now: datetime.datetime | None = None, days: int | None = None
    ) -> List[PlannedWorkout]:
        """Return incomplete workouts scheduled from ``now`` onward."""
        now = now or datetime.datetime.now()
        query = f"SELECT {self._COLUMNS} FROM workouts WHERE is_completed = 0 AND scheduled_at >= ?"
        params: list[str] = [to_timestamp(now)]
        if days is not None:
            query += " AND scheduled_at < ?"
            params.append(to_timestamp(now + datetime.timedelta(days=days)))
        query += " ORDER BY scheduled_at, id;"
        return [self._to_model(r) for r in self.fetch_all(query, tuple(params))]

    def set_schedule(
        self, workout_id: int, scheduled_at: Optional[datetime.datetime], status: str
    ) -> None:
        self.fetch_detail(workout_id)
        if scheduled_at is None:
            self.execute(
                "UPDATE workouts SET schedule_status = ? WHERE id = ?;",
                (status, workout_id),
            )
            return
        self.execute(
            "UPDATE workouts SET scheduled_at = ?, schedule_status = ? WHERE id = ?;",
            (to_timestamp(scheduled_at), status, workout_id),
        )

    def set_completed(
        self, workout_id: int, completed_at: datetime.datetime | None = None
    ) -> None:
        self.fetch_detail(workout_id)
        stamp = to_timestamp(completed_at or datetime.datetime.now())
        self.execute(
            "UPDATE workouts SET is_completed = 1, completed_at = ? WHERE id = ?;",
            (stamp, workout_id),
        )

    @staticmethod
    def write_workout(conn: sqlite3.Connection, workout: PlannedWorkout) -> None:
        """Overwrite ``workout`` and its exercises using ``conn``."""
        if workout.id is None:
            raise ValueError("workout id required")
        cur = conn.execute(
            "UPDATE workouts SET title = ?, focus = ?, scheduled_at = ?, duration_seconds = ?, "
            "difficulty = ?, is_completed = ?, completed_at = ? WHERE id = ?;",
            (
                workout.title,
                workout.focus.value,
                to_timestamp(workout.scheduled_at),
                workout.duration_seconds,
                workout.difficulty,
                1 if workout.is_completed else 0,
                to_timestamp(workout.completed_at) if workout.completed_at else None,
                workout.id,
            ),
        )
        if cur.rowcount == 0:
            raise ValueError("workout not found")
        conn.execute("DELETE FROM workout_exercises WHERE workout_id = ?;", (workout.id,))
        for pos, ex in enumerate(workout.exercises):
            conn.execute(
                "INSERT INTO workout_exercises (workout_id, position, name, target_muscles, sets, reps, duration_seconds, rest_seconds) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                (
                    workout.id,
                    pos,
                    ex.name,
                    "|".join(ex.target_muscles),
                    ex.sets,
                    ex.reps,
                    ex.duration_seconds,
                    ex.rest_seconds,
                ),
            )

    def update_workout(self, workout: PlannedWorkout) -> None:
        with self._connection() as conn:
            self.write_workout(conn, workout)

    def delete(self, workout_id: int) -> None:
        self.fetch_detail(workout_id)
        with self._connection() as conn:
            conn.execute("DELETE FROM workout_exercises WHERE workout_id = ?;", (workout_id,))
            conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))

    def delete_all(self) -> None:
        self._delete_all("workout_exercises")
        self._delete_all("workouts")


class WorkoutExerciseRepository(BaseRepository):
    """Repository for exercises attached to a workout."""

    def add(
        self,
        workout_id: int,
        name: str,
        target_muscles: Iterable[str] = (),
        sets: int = 3,
        reps: Optional[int] = 10,
        duration_seconds: Optional[int] = None,
        rest_seconds: int = 60,
    ) -> int:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        pos_rows = self.fetch_all(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM workout_exercises WHERE workout_id = ?;",
            (workout_id,),
        )
        return self.execute(
            "INSERT INTO workout_exercises (workout_id, position, name, target_muscles, sets, reps, duration_seconds, rest_seconds) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                workout_id,
                pos_rows[0][0],
                name,
                "|".join(m.strip() for m in target_muscles if m.strip()),
                sets,
                reps,
                duration_seconds,
                rest_seconds,
            ),
        )

    def fetch_for_workout(self, workout_id: int) -> list[dict[str, object]]:
        rows = self.fetch_all(
            "SELECT id, name, target_muscles, sets, reps, duration_seconds, rest_seconds "
            "FROM workout_exercises WHERE workout_id = ? ORDER BY position, id;",
            (workout_id,),
        )
        result: list[dict[str, object]] = []
        for r in rows:
            ex = _exercise_from_row(r)
            result.append({"id": r[0], **ex.model_dump()})
        return result

    def remove(self, exercise_id: int) -> None:
        rows = self.fetch_all(
            "SELECT id FROM workout_exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        self.execute("DELETE FROM workout_exercises WHERE id = ?;", (exercise_id,))


class BusyIntervalRepository(BaseRepository):
    """Repository for calendar blocks the scheduler must avoid."""

    def add(
        self,
        start: datetime.datetime | str,
        end: datetime.datetime | str,
        title: str | None = None,
        source: str = "manual",
    ) -> int:
        interval = BusyInterval(start=start, end=end, title=title)
        return self.execute(
            "INSERT INTO busy_intervals (start_time, end_time, title, source) VALUES (?, ?, ?, ?);",
            (to_timestamp(interval.start), to_timestamp(interval.end), title, source),
        )

    def fetch_range(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> List[BusyInterval]:
        """Return intervals intersecting ``[start, end)`` ordered by start."""
        rows = self.fetch_all(
            "SELECT start_time, end_time, title FROM busy_intervals WHERE start_time < ? AND end_time > ? ORDER BY start_time, id;",
            (to_timestamp(end), to_timestamp(start)),
        )
        return [BusyInterval(start=s, end=e, title=t) for s, e, t in rows]

    def fetch_all_records(self) -> list[dict[str, object]]:
        rows = self.fetch_all(
            "SELECT id, start_time, end_time, title, source FROM busy_intervals ORDER BY start_time, id;"
        )
        return [
            {"id": r[0], "start": r[1], "end": r[2], "title": r[3], "source": r[4]}
            for r in rows
        ]

    def delete(self, interval_id: int) -> None:
        rows = self.fetch_all(
            "SELECT id FROM busy_intervals WHERE id = ?;", (interval_id,)
        )
        if not rows:
            raise ValueError("busy interval not found")
        self.execute("DELETE FROM busy_intervals WHERE id = ?;", (interval_id,))

    def delete_source(self, source: str) -> None:
        self.execute("DELETE FROM busy_intervals WHERE source = ?;", (source,))


class AdaptiveStateRepository(BaseRepository):
    """Key/value store for engine state such as the difficulty multiplier."""

    MULTIPLIER_KEY = "difficulty_multiplier"

    def get_float(self, key: str, default: float) -> float:
        rows = self.fetch_all("SELECT value FROM adaptive_state WHERE key = ?;", (key,))
        return float(rows[0][0]) if rows else default

    def set_float(self, key: str, value: float) -> None:
        self.execute(
            "INSERT INTO adaptive_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, str(value)),
        )

    def get_multiplier(self) -> float:
        return self.get_float(self.MULTIPLIER_KEY, 1.0)

    def set_multiplier(self, value: float) -> None:
        self.set_float(self.MULTIPLIER_KEY, value)


class BehaviorSnapshotRepository(BaseRepository):
    """Repository for persisted behavior snapshots."""

    def save(self, patterns: BehaviorPatterns) -> int:
        with self._connection() as conn:
            return self._insert(conn, patterns)

    @staticmethod
    def _insert(conn: sqlite3.Connection, patterns: BehaviorPatterns) -> int:
        stamp = to_timestamp(patterns.last_analyzed or datetime.datetime.now())
        cur = conn.execute(
            "INSERT INTO behavior_snapshots (timestamp, completion_rate, data) VALUES (?, ?, ?);",
            (stamp, patterns.completion_rate, patterns.model_dump_json()),
        )
        return cur.lastrowid

    def load(self) -> Optional[BehaviorPatterns]:
        """Return the newest snapshot or ``None`` when none is readable."""
        rows = self.fetch_all(
            "SELECT data FROM behavior_snapshots ORDER BY id DESC LIMIT 1;"
        )
        if not rows:
            return None
        try:
            return BehaviorPatterns.model_validate_json(rows[0][0])
        except ValidationError:
            return None

    def history(self, limit: int = 10) -> list[dict[str, object]]:
        rows = self.fetch_all(
            "SELECT id, timestamp, completion_rate FROM behavior_snapshots ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
        return [
            {"id": r[0], "timestamp": r[1], "completion_rate": r[2]} for r in rows
        ]

    def commit_run(
        self,
        patterns: BehaviorPatterns,
        multiplier: float,
        workouts: Iterable[PlannedWorkout] = (),
    ) -> int:
        """Persist snapshot, multiplier and rewritten workouts atomically."""
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            snapshot_id = self._insert(conn, patterns)
            conn.execute(
                "INSERT INTO adaptive_state (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (AdaptiveStateRepository.MULTIPLIER_KEY, str(multiplier)),
            )
            for workout in workouts:
                WorkoutRepository.write_workout(conn, workout)
            return snapshot_id


class CheckInRepository(BaseRepository):
    """Repository for weekly check-in notes."""

    def add(
        self,
        text: str,
        energy_level: Optional[int] = None,
        soreness: Optional[int] = None,
        motivation: Optional[int] = None,
        analysis: Optional[dict] = None,
        timestamp: Optional[datetime.datetime] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO check_ins (timestamp, text, energy_level, soreness, motivation, analysis) VALUES (?, ?, ?, ?, ?, ?);",
            (
                to_timestamp(timestamp or datetime.datetime.now()),
                text,
                energy_level,
                soreness,
                motivation,
                json.dumps(analysis, default=str) if analysis is not None else None,
            ),
        )

    def fetch_all(self, limit: int | None = None) -> list[dict[str, object]]:
        sql = "SELECT id, timestamp, text, energy_level, soreness, motivation, analysis FROM check_ins ORDER BY id DESC"
        params: Tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        rows = super().fetch_all(sql + ";", params)
        result: list[dict[str, object]] = []
        for r in rows:
            result.append(
                {
                    "id": r[0],
                    "timestamp": r[1],
                    "text": r[2],
                    "energy_level": r[3],
                    "soreness": r[4],
                    "motivation": r[5],
                    "analysis": json.loads(r[6]) if r[6] else None,
                }
            )
        return result

    def latest(self) -> Optional[dict[str, object]]:
        rows = self.fetch_all(limit=1)
        return rows[0] if rows else None


class RunLogRepository(BaseRepository):
    """Success/error log of background runs stored in ``_table``."""

    _table = "analysis_logs"

    def log_success(self, message: str | None = None) -> int:
        return self.execute(
            f"INSERT INTO {self._table} (timestamp, status, message) VALUES (?, 'success', ?);",
            (datetime.datetime.now().isoformat(), message),
        )

    def log_error(self, message: str) -> int:
        return self.execute(
            f"INSERT INTO {self._table} (timestamp, status, message) VALUES (?, 'error', ?);",
            (datetime.datetime.now().isoformat(), message),
        )

    def last_success(self) -> Optional[str]:
        rows = self.fetch_all(
            f"SELECT timestamp FROM {self._table} WHERE status='success' ORDER BY id DESC LIMIT 1;"
        )
        return rows[0][0] if rows else None

    def last_errors(self, limit: int = 5) -> list[tuple[str, str]]:
        rows = self.fetch_all(
            f"SELECT timestamp, message FROM {self._table} WHERE status='error' ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
        return [(r[0], r[1]) for r in rows]

    def count(self) -> int:
        rows = self.fetch_all(f"SELECT COUNT(*) FROM {self._table};")
        return rows[0][0] if rows else 0


class AnalysisLogRepository(RunLogRepository):
    """Repository for behavior analysis run logs."""

    _table = "analysis_logs"


class SchedulerLogRepository(RunLogRepository):
    """Repository for slot scheduling run logs."""

    _table = "scheduler_logs"


def _notification_from_row(r: Tuple) -> dict[str, object]:
    return {
        "id": r[0],
        "timestamp": r[1],
        "kind": r[2],
        "message": r[3],
        "payload": json.loads(r[4]) if r[4] else {},
        "read": bool(r[5]),
        "delivered": bool(r[6]),
    }


class NotificationRepository(BaseRepository):
    """Outbound queue of typed user notifications."""

    _SELECT = "SELECT id, timestamp, kind, message, payload, read, delivered FROM notifications"

    def add(
        self,
        message: str,
        kind: str = NotificationKind.MOTIVATION.value,
        payload: Optional[dict] = None,
    ) -> int:
        NotificationKind(kind)
        return self.execute(
            "INSERT INTO notifications (timestamp, kind, message, payload, read, delivered) VALUES (?, ?, ?, ?, 0, 0);",
            (
                datetime.datetime.now().isoformat(),
                kind,
                message,
                json.dumps(payload or {}, default=str),
            ),
        )

    def fetch_all(
        self, unread_only: bool = False, kind: str | None = None
    ) -> list[dict[str, object]]:
        sql = self._SELECT
        clauses: list[str] = []
        params: list[str] = []
        if unread_only:
            clauses.append("read=0")
        if kind:
            clauses.append("kind=?")
            params.append(kind)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id;"
        rows = super().fetch_all(sql, tuple(params))
        return [_notification_from_row(r) for r in rows]

    def mark_read(self, nid: int) -> None:
        rows = super().fetch_all("SELECT id FROM notifications WHERE id=?;", (nid,))
        if not rows:
            raise ValueError("notification not found")
        self.execute("UPDATE notifications SET read=1 WHERE id=?;", (nid,))

    def unread_count(self) -> int:
        rows = super().fetch_all(
            "SELECT COUNT(*) FROM notifications WHERE read=0;"
        )
        return rows[0][0] if rows else 0


class AsyncNotificationRepository(AsyncBaseRepository):
    """Async access to the notification queue used by the dispatcher."""

    async def add(
        self,
        message: str,
        kind: str = NotificationKind.MOTIVATION.value,
        payload: Optional[dict] = None,
    ) -> int:
        NotificationKind(kind)
        return await self.execute(
            "INSERT INTO notifications (timestamp, kind, message, payload, read, delivered) VALUES (?, ?, ?, ?, 0, 0);",
            (
                datetime.datetime.now().isoformat(),
                kind,
                message,
                json.dumps(payload or {}, default=str),
            ),
        )

    async def fetch_pending(self) -> list[dict[str, object]]:
        rows = await self.fetch_all(
            NotificationRepository._SELECT + " WHERE delivered=0 ORDER BY id;"
        )
        return [_notification_from_row(r) for r in rows]

    async def drain(self) -> list[dict[str, object]]:
        """Return undelivered notifications and mark them delivered."""
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                NotificationRepository._SELECT + " WHERE delivered=0 ORDER BY id;"
            )
            rows = await cursor.fetchall()
            if rows:
                await conn.executemany(
                    "UPDATE notifications SET delivered=1 WHERE id=?;",
                    [(r[0],) for r in rows],
                )
        return [_notification_from_row(r) for r in rows]


class SettingsRepository(BaseRepository):
    """Repository for engine settings synchronized with YAML."""

    _BOOL_KEYS = {
        "calendar_access_enabled",
        "notifications_enabled",
        "analysis_scheduler_enabled",
    }

    def __init__(
        self, db_path: str = "fitvital.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        self._write_many(data)

    def _write_many(self, data: dict) -> None:
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self._BOOL_KEYS:
                    if val in {"1", "1.0", "true", "True"}:
                        val = "1"
                    else:
                        val = "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def update(self, values: dict) -> None:
        """Validate ``values`` over the stored settings and write them together.

        Nothing is written when the merged settings are invalid.
        """
        merged = self._raw_all_settings()
        merged.update(values)
        validate_settings(merged)
        self._write_many(values)
        self._sync_to_yaml()

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            return default

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def get_list(self, key: str) -> list[str]:
        val = self.get_text(key, "")
        return [v for v in val.split(",") if v]

    def set_list(self, key: str, items: list[str]) -> None:
        self.set_text(key, ",".join(items))

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        data = self._raw_all_settings()
        for k in self._BOOL_KEYS:
            data[k] = bool(data.get(k, False))
        return data
