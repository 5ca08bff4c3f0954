import unittest
import sys
import os
import datetime
from fastapi.testclient import TestClient
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import client as client_module
from client import FitVitalClient
from rest_api import FitVitalAPI


class _TestClientRequests:
    """Stands in for the ``requests`` module by routing to a TestClient."""

    def __init__(self, test_client: TestClient) -> None:
        self.test_client = test_client

    def get(self, url, params=None):
        return self.test_client.get(url, params=params)

    def post(self, url, params=None, json=None):
        return self.test_client.post(url, params=params, json=json)


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = 'test_client.db'
        self.yaml_path = 'test_client.yaml'
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = FitVitalAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self._requests = client_module.requests
        client_module.requests = _TestClientRequests(TestClient(self.api.app))
        self.client = FitVitalClient(base_url='http://testserver/')

    def tearDown(self) -> None:
        client_module.requests = self._requests
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_create_and_schedule(self) -> None:
        day = datetime.date.today() + datetime.timedelta(days=1)
        start = datetime.datetime.combine(day, datetime.time(7))
        wid = self.client.create_workout('Pull Day', start.isoformat(), focus='pull')
        self.assertEqual(wid, 1)
        self.assertEqual(self.client.add_exercise(wid, 'Lat Pulldown', 'lats,biceps'), 1)
        self.client.add_busy_interval(
            start.isoformat(), (start + datetime.timedelta(hours=1)).isoformat(), 'Gym closed'
        )
        result = self.client.schedule_week(
            datetime.datetime.combine(day, datetime.time()).isoformat()
        )
        self.assertEqual(result[0]['start_time'], start.replace(hour=8).isoformat())
        self.assertEqual(self.client.list_workouts()[0]['focus'], 'pull')

    def test_analysis_round_trip(self) -> None:
        data = self.client.analyze()
        self.assertTrue(data['used_default'])
        self.assertEqual(self.client.multiplier(), 1.0)
        self.assertEqual(self.client.behavior_patterns()['completion_rate'], 0.8)

    def test_check_in(self) -> None:
        data = self.client.submit_check_in('Feeling great', motivation=5)
        self.assertEqual(data['analysis']['sentiment']['polarity'], 'positive')
        self.assertEqual(self.client.notifications(), [])

if __name__ == '__main__':
    unittest.main()
