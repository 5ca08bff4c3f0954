import os

import yaml
import keyring

APP_VERSION = "1.0.0"


class AppConfig:
    """File locations and switches read from the environment."""

    def __init__(
        self,
        db_path: str = "fitvital.db",
        settings_path: str = "settings.yaml",
        encrypt_settings: bool = False,
    ) -> None:
        self.db_path = db_path
        self.settings_path = settings_path
        self.encrypt_settings = encrypt_settings

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            db_path=os.environ.get("DB_PATH", "fitvital.db"),
            settings_path=os.environ.get("SETTINGS_PATH", "settings.yaml"),
            encrypt_settings=os.environ.get("ENCRYPT_SETTINGS") == "1",
        )


class YamlConfig:
    """Engine settings stored as YAML.

    With ``ENCRYPT_SETTINGS=1`` the calendar feed and webhook URLs live in the
    OS keyring and the YAML file only records that a value is set.
    """

    SENSITIVE_KEYS = {
        "calendar_feed_url",
        "notification_webhook_url",
    }
    SERVICE = "fitvital"

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = AppConfig.from_env().encrypt_settings

    def _reveal(self, data: dict) -> dict:
        for key in self.SENSITIVE_KEYS & set(data):
            secret = keyring.get_password(self.SERVICE, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def _conceal(self, data: dict) -> dict:
        for key in self.SENSITIVE_KEYS:
            if data.get(key) in (None, False, ""):
                data.pop(key, None)
                if keyring.get_password(self.SERVICE, key) is not None:
                    keyring.delete_password(self.SERVICE, key)
            elif data[key] is not True:
                keyring.set_password(self.SERVICE, key, str(data[key]))
                data[key] = True
        return data

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return self._reveal(data) if self.encrypt else data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            out = self._conceal(out)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)
