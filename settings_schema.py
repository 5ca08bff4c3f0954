from pydantic import BaseModel, ValidationError, field_validator, model_validator

from models import TimeOfDay


class SettingsSchema(BaseModel):
    calendar_access_enabled: bool = True
    day_window_start_hour: int = 6
    day_window_end_hour: int = 22
    slot_granularity_minutes: int = 30
    history_days: int = 30
    analysis_interval_hours: int = 168
    notifications_enabled: bool = True
    analysis_scheduler_enabled: bool = False
    weekly_frequency: int = 3
    session_duration_minutes: int = 45
    preferred_times: str = "morning,evening"
    calendar_feed_url: str | bool | None = None
    notification_webhook_url: str | bool | None = None

    @field_validator("preferred_times")
    @classmethod
    def _check_times(cls, value: str) -> str:
        allowed = {t.value for t in TimeOfDay}
        for item in (v for v in value.split(",") if v):
            if item not in allowed:
                raise ValueError(f"unknown time of day: {item}")
        return value

    @model_validator(mode="after")
    def _check_ranges(self) -> "SettingsSchema":
        if not 0 <= self.day_window_start_hour < self.day_window_end_hour <= 24:
            raise ValueError("day window hours must satisfy 0 <= start < end <= 24")
        if self.slot_granularity_minutes <= 0:
            raise ValueError("slot_granularity_minutes must be positive")
        if self.history_days <= 0:
            raise ValueError("history_days must be positive")
        if self.analysis_interval_hours <= 0:
            raise ValueError("analysis_interval_hours must be positive")
        if self.session_duration_minutes <= 0:
            raise ValueError("session_duration_minutes must be positive")
        if self.weekly_frequency < 0:
            raise ValueError("weekly_frequency must not be negative")
        return self


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
