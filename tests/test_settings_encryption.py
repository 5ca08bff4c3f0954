import os
import sys
import unittest
import keyring
import yaml
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository
from settings_schema import validate_settings

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = DummyKeyring()
        keyring.set_keyring(self.backend)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        if os.path.exists(self.path):
            os.remove(self.path)

    def tearDown(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'calendar_feed_url': 'https://cal.example/feed.ics', 'history_days': 30})
        with open(self.path, encoding='utf-8') as f:
            raw = yaml.safe_load(f)
        self.assertIs(raw['calendar_feed_url'], True)
        self.assertEqual(
            self.backend.store[('fitvital', 'calendar_feed_url')],
            'https://cal.example/feed.ics',
        )
        data = cfg.load()
        self.assertEqual(data['calendar_feed_url'], 'https://cal.example/feed.ics')
        self.assertEqual(data['history_days'], 30)

    def test_removed_secret_leaves_keyring(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'notification_webhook_url': 'https://hooks.example/abc'})
        cfg.save({'history_days': 14})
        self.assertNotIn(('fitvital', 'notification_webhook_url'), self.backend.store)
        self.assertEqual(cfg.load(), {'history_days': 14})


class SettingsValidationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = 'test_settings.db'
        self.yaml_path = 'test_settings.yaml'
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_defaults_written_to_yaml(self) -> None:
        settings = SettingsRepository(self.db_path, self.yaml_path)
        with open(self.yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        self.assertIs(data['calendar_access_enabled'], True)
        self.assertEqual(settings.get_int('day_window_end_hour', 0), 22)
        self.assertEqual(settings.get_list('preferred_times'), ['morning', 'evening'])

    def test_yaml_edits_are_picked_up(self) -> None:
        settings = SettingsRepository(self.db_path, self.yaml_path)
        with open(self.yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        data['history_days'] = 14
        with open(self.yaml_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f)
        self.assertEqual(settings.get_int('history_days', 30), 14)

    def test_invalid_window_rejected(self) -> None:
        with open(self.yaml_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'day_window_start_hour': 23, 'day_window_end_hour': 6}, f)
        with self.assertRaises(ValueError):
            SettingsRepository(self.db_path, self.yaml_path)

    def test_non_mapping_yaml_rejected(self) -> None:
        with open(self.yaml_path, 'w', encoding='utf-8') as f:
            f.write('- just\n- a list\n')
        with self.assertRaises(ValueError):
            YamlConfig(self.yaml_path).load()

    def test_validate_settings(self) -> None:
        validate_settings({'slot_granularity_minutes': 15})
        with self.assertRaises(ValueError):
            validate_settings({'slot_granularity_minutes': 0})
        validate_settings({'preferred_times': 'afternoon,evening'})
        with self.assertRaises(ValueError):
            validate_settings({'preferred_times': 'morning,night'})
        with self.assertRaises(ValueError):
            validate_settings({'session_duration_minutes': 0})

if __name__ == '__main__':
    unittest.main()
