import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import SentimentPolarity
from text_insights import TextInsightExtractor


# Wednesday
NOW = datetime.datetime(2024, 5, 8, 10, 0)


class TextInsightTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.extractor = TextInsightExtractor()

    def test_limitation_links_pain_to_nearby_body_part(self) -> None:
        result = self.extractor.extract("My lower back is really sore today", NOW)
        self.assertEqual(result.physical_limitations, ["sore - lower back"])
        self.assertEqual(result.injury_keywords, [])
        self.assertIn("sore", result.pain_indicators)
        self.assertIn("lower back", result.pain_indicators)

    def test_adjacent_pair_becomes_injury_keyword(self) -> None:
        result = self.extractor.extract("Having some knee pain after running", NOW)
        self.assertEqual(result.injury_keywords, ["knee pain"])
        self.assertEqual(result.physical_limitations, ["pain - knee"])

    def test_plural_body_part_and_pain_stem(self) -> None:
        limitations = self.extractor.limitations("Both shoulders are aching")
        self.assertEqual(limitations, ["aching - shoulder"])

    def test_pain_without_body_part(self) -> None:
        self.assertEqual(self.extractor.limitations("I feel stiff"), ["stiff"])

    def test_pain_words_match_inflections_only(self) -> None:
        self.assertEqual(
            self.extractor.limitations("Old knee injuries flaring up"), ["injury - knee"]
        )
        self.assertEqual(self.extractor.limitations("Shoulder soreness again"), ["sore - shoulder"])
        self.assertEqual(self.extractor.limitations("Painting my back porch today"), [])
        self.assertEqual(self.extractor.limitations("Time to tighten up my knee form"), [])
        self.assertEqual(self.extractor.pain_indicators("painting the fence"), [])

    def test_distant_body_part_is_not_linked(self) -> None:
        text = "My knee was fine on the long walk but today I am sore"
        self.assertEqual(self.extractor.limitations(text), ["sore"])

    def test_raw_sentiment_scale(self) -> None:
        positive = self.extractor.sentiment("Great week, I love the new plan")
        self.assertEqual(positive.polarity, SentimentPolarity.POSITIVE)
        self.assertEqual(positive.score, 1.0)
        self.assertEqual(positive.confidence, 0.5)

        mixed = self.extractor.sentiment("good but tired")
        self.assertEqual(mixed.polarity, SentimentPolarity.NEUTRAL)
        self.assertEqual(mixed.score, 0.0)

        neutral = self.extractor.sentiment("Nothing to report")
        self.assertEqual(neutral.polarity, SentimentPolarity.NEUTRAL)
        self.assertEqual(neutral.confidence, 0.0)

    def test_motivation_scale(self) -> None:
        high = self.extractor.motivation_score("Feeling motivated, excited and ready")
        self.assertAlmostEqual(high, 0.8)
        self.assertEqual(
            self.extractor.motivation_polarity(high), SentimentPolarity.POSITIVE
        )
        low = self.extractor.motivation_score("tired, exhausted and stressed")
        self.assertAlmostEqual(low, 0.2)
        self.assertEqual(
            self.extractor.motivation_polarity(low), SentimentPolarity.NEGATIVE
        )
        self.assertEqual(self.extractor.motivation_score(""), 0.5)

    def test_motivation_score_is_clamped(self) -> None:
        text = "tired exhausted difficult hard struggling weak unmotivated stressed busy overwhelmed"
        self.assertEqual(self.extractor.motivation_score(text), 0.0)

    def test_busy_periods_and_feedback(self) -> None:
        result = self.extractor.extract(
            "Busy week with meetings and a work trip. The workout was too hard.", NOW
        )
        self.assertEqual(result.busy_periods, ["busy", "meetings", "work trip"])
        self.assertEqual(result.workout_feedback, ["workout was too hard"])

    def test_feedback_needs_workout_word(self) -> None:
        self.assertEqual(self.extractor.workout_feedback("That was too hard"), [])

    def test_date_intervals(self) -> None:
        intervals = self.extractor.date_intervals(
            "Traveling tomorrow, busy this weekend and next week", NOW
        )
        by_phrase = {i.phrase: (i.start, i.end) for i in intervals}
        self.assertEqual(
            by_phrase["tomorrow"],
            (datetime.datetime(2024, 5, 9), datetime.datetime(2024, 5, 10)),
        )
        self.assertEqual(
            by_phrase["this weekend"],
            (datetime.datetime(2024, 5, 11), datetime.datetime(2024, 5, 13)),
        )
        self.assertEqual(
            by_phrase["next week"],
            (datetime.datetime(2024, 5, 13), datetime.datetime(2024, 5, 20)),
        )

    def test_empty_text(self) -> None:
        result = self.extractor.extract("", NOW)
        self.assertEqual(result.raw_text, "")
        self.assertEqual(result.motivation_score, 0.5)
        self.assertEqual(result.sentiment.polarity, SentimentPolarity.NEUTRAL)
        self.assertEqual(result.physical_limitations, [])
        self.assertEqual(result.processed_at, NOW)


if __name__ == "__main__":
    unittest.main()
