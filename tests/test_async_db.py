import os
import sys
import asyncio
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncBaseRepository,
    AsyncNotificationRepository,
    NotificationRepository,
    SettingsRepository,
)
from notification_service import NotificationService


class NumberRepository(AsyncBaseRepository):
    async def init_db(self) -> None:
        async with self._async_connection() as conn:
            await conn.execute("CREATE TABLE IF NOT EXISTS numbers (val INTEGER)")
            await conn.commit()

    async def add(self, val: int) -> int:
        return await self.execute("INSERT INTO numbers (val) VALUES (?)", (val,))

    async def all(self):
        rows = await self.fetch_all("SELECT val FROM numbers")
        return [r[0] for r in rows]


@pytest.mark.asyncio
async def test_async_repository(tmp_path):
    repo = NumberRepository(str(tmp_path / "test.db"))
    await repo.init_db()
    await repo.add(5)
    assert await repo.all() == [5]


@pytest.mark.asyncio
async def test_async_notification_drain(tmp_path):
    db_file = str(tmp_path / "notify.db")
    repo = AsyncNotificationRepository(db_file)
    nid = await repo.add("Time to stretch", "motivation", {"source": "test"})
    assert nid == 1
    pending = await repo.fetch_pending()
    assert pending[0]["payload"] == {"source": "test"}
    drained = await repo.drain()
    assert [n["message"] for n in drained] == ["Time to stretch"]
    assert await repo.drain() == []
    # delivery does not mark the notification as read
    assert NotificationRepository(db_file).unread_count() == 1


@pytest.mark.asyncio
async def test_async_rejects_unknown_kind(tmp_path):
    repo = AsyncNotificationRepository(str(tmp_path / "notify.db"))
    with pytest.raises(ValueError):
        await repo.add("bad", "newsletter")


@pytest.mark.asyncio
async def test_service_drain(tmp_path):
    db_file = str(tmp_path / "service.db")
    settings = SettingsRepository(db_file, str(tmp_path / "settings.yaml"))
    service = NotificationService(
        NotificationRepository(db_file), settings, AsyncNotificationRepository(db_file)
    )
    service.difficulty_changed(1.0, 0.8, "Completion rate is 40%")
    service.check_in_prompt()
    drained = await service.drain()
    assert [n["kind"] for n in drained] == ["adaptive_difficulty", "check_in_prompt"]
    assert drained[0]["message"].startswith("Workout difficulty reduced to 80%")
    assert drained[0]["payload"] == {"previous": 1.0, "current": 0.8}


@pytest.mark.asyncio
async def test_concurrent_adds(tmp_path):
    repo = AsyncNotificationRepository(str(tmp_path / "many.db"))
    ids = await asyncio.gather(*(repo.add(f"msg {i}") for i in range(5)))
    assert sorted(ids) == [1, 2, 3, 4, 5]
    assert len(await repo.fetch_pending()) == 5
