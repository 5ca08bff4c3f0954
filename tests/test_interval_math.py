import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import IntervalMath, MathTools
from models import BusyInterval


def dt(hour: int, minute: int = 0, day: int = 6) -> datetime.datetime:
    return datetime.datetime(2024, 5, day, hour, minute)


class IntervalMathTestCase(unittest.TestCase):
    def test_overlap_is_symmetric(self) -> None:
        a = (dt(9), dt(10))
        b = (dt(9, 30), dt(11))
        self.assertTrue(IntervalMath.overlaps(a, b))
        self.assertTrue(IntervalMath.overlaps(b, a))

    def test_touching_intervals_do_not_overlap(self) -> None:
        self.assertFalse(IntervalMath.overlaps((dt(9), dt(10)), (dt(10), dt(11))))
        self.assertFalse(IntervalMath.overlaps((dt(10), dt(11)), (dt(9), dt(10))))

    def test_zero_duration_never_overlaps(self) -> None:
        self.assertFalse(IntervalMath.overlaps((dt(9), dt(9)), (dt(8), dt(10))))

    def test_accepts_busy_interval_models(self) -> None:
        busy = BusyInterval(start=dt(12), end=dt(13), title="Lunch")
        self.assertTrue(IntervalMath.overlaps(busy, (dt(12, 30), dt(14))))
        self.assertTrue(IntervalMath.contains((dt(11), dt(14)), busy))
        self.assertFalse(IntervalMath.contains(busy, (dt(11), dt(14))))

    def test_clip_and_duration(self) -> None:
        self.assertEqual(
            IntervalMath.clip((dt(22), dt(2, day=7)), dt(0), dt(0, day=7)),
            (dt(22), dt(0, day=7)),
        )
        self.assertIsNone(IntervalMath.clip((dt(8), dt(9)), dt(10), dt(11)))
        self.assertEqual(IntervalMath.duration_seconds((dt(8), dt(9, 30))), 5400)

    def test_total_busy_counts_overlap_once(self) -> None:
        spans = [(dt(9), dt(11)), (dt(10), dt(12)), (dt(14), dt(15))]
        self.assertEqual(IntervalMath.total_busy_seconds(spans), 4 * 3600)
        self.assertEqual(IntervalMath.total_busy_seconds([]), 0.0)


class MathToolsTestCase(unittest.TestCase):
    def test_clamp(self) -> None:
        self.assertEqual(MathTools.clamp(2.0, 0.5, 1.5), 1.5)
        self.assertEqual(MathTools.clamp(0.1, 0.5, 1.5), 0.5)
        with self.assertRaises(ValueError):
            MathTools.clamp(1.0, 2.0, 1.0)

    def test_mean_and_ratio(self) -> None:
        self.assertEqual(MathTools.mean([]), 0.0)
        self.assertAlmostEqual(MathTools.mean([1, 2, 3]), 2.0)
        self.assertEqual(MathTools.safe_ratio(3, 0), 0.0)

    def test_most_frequent_first_key_wins_ties(self) -> None:
        self.assertEqual(MathTools.most_frequent({3: 2, 1: 2, 5: 1}), 3)
        self.assertIsNone(MathTools.most_frequent({}))

    def test_shares(self) -> None:
        self.assertEqual(MathTools.shares({"a": 1, "b": 3}), {"a": 0.25, "b": 0.75})
        self.assertEqual(MathTools.shares({}), {})


if __name__ == "__main__":
    unittest.main()
