from __future__ import annotations

from db import AsyncNotificationRepository, NotificationRepository, SettingsRepository
from models import NotificationKind


class NotificationService:
    """Typed outbound notification queue.

    Producers only enqueue rows; delivery happens later through :meth:`drain`.
    """

    def __init__(
        self,
        repo: NotificationRepository,
        settings_repo: SettingsRepository | None = None,
        async_repo: AsyncNotificationRepository | None = None,
    ) -> None:
        self.repo = repo
        self.settings = settings_repo
        self.async_repo = async_repo

    def enabled(self) -> bool:
        if self.settings is None:
            return True
        return self.settings.get_bool("notifications_enabled", True)

    def enqueue(
        self, kind: NotificationKind | str, message: str, payload: dict | None = None
    ) -> int | None:
        """Queue a notification and return its id, or ``None`` when disabled."""
        kind = NotificationKind(kind)
        if not self.enabled():
            return None
        return self.repo.add(message, kind.value, payload)

    def difficulty_changed(self, old: float, new: float, reason: str) -> int | None:
        direction = "increased" if new > old else "reduced"
        return self.enqueue(
            NotificationKind.ADAPTIVE_DIFFICULTY,
            f"Workout difficulty {direction} to {int(round(new * 100))}%. {reason}",
            {"previous": old, "current": new},
        )

    def schedule_alert(self, message: str, payload: dict | None = None) -> int | None:
        return self.enqueue(NotificationKind.ADAPTIVE_SCHEDULE, message, payload)

    def rest_alert(self, reason: str) -> int | None:
        return self.enqueue(
            NotificationKind.ADAPTIVE_REST,
            f"Recovery day added. {reason}",
            {"reason": reason},
        )

    def injury_alert(self, limitations: list[str], body_parts: list[str]) -> int | None:
        return self.enqueue(
            NotificationKind.INJURY_DETECTION,
            "Upcoming workouts were adjusted for: " + ", ".join(limitations),
            {"limitations": limitations, "body_parts": body_parts},
        )

    def motivation(self, message: str) -> int | None:
        return self.enqueue(NotificationKind.MOTIVATION, message)

    def check_in_prompt(self) -> int | None:
        return self.enqueue(
            NotificationKind.CHECK_IN_PROMPT,
            "How was your week? Tell us in a quick check-in.",
        )

    async def drain(self) -> list[dict[str, object]]:
        """Hand undelivered notifications to the dispatcher."""
        if self.async_repo is None:
            raise ValueError("async repository not configured")
        return await self.async_repo.drain()
