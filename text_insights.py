"""Lexicon based analysis of free-text weekly check-ins.

Two separately scaled scores come out of a check-in:

* ``sentiment`` is the raw polarity on [-1, 1] with a +/-0.1 neutral band.
  Rules about workout variety read this one.
* ``motivation_score`` is the motivational scale on [0, 1] that starts at
  0.5 and moves 0.1 per matched word, with bands above 0.6 and below 0.4.
  The motivation insight reads this one.

All matching is case-insensitive and keyword based.
"""
from __future__ import annotations

import datetime
import re

from algorithms.math_tools import MathTools
from models import CheckInAnalysis, DateInterval, SentimentAnalysis, SentimentPolarity


POSITIVE_SENTIMENT_WORDS = [
    "great",
    "good",
    "amazing",
    "awesome",
    "excellent",
    "love",
    "enjoy",
    "fun",
    "happy",
    "strong",
    "energized",
    "better",
    "proud",
]

NEGATIVE_SENTIMENT_WORDS = [
    "bad",
    "terrible",
    "awful",
    "hate",
    "boring",
    "tired",
    "exhausted",
    "frustrated",
    "stressed",
    "struggling",
    "worse",
    "sore",
    "pain",
]

MOTIVATION_POSITIVE_WORDS = [
    "great",
    "good",
    "amazing",
    "excellent",
    "motivated",
    "strong",
    "energetic",
    "ready",
    "excited",
    "confident",
]

MOTIVATION_NEGATIVE_WORDS = [
    "tired",
    "exhausted",
    "difficult",
    "hard",
    "struggling",
    "weak",
    "unmotivated",
    "stressed",
    "busy",
    "overwhelmed",
]

PAIN_KEYWORDS = [
    "pain",
    "hurt",
    "sore",
    "ache",
    "aching",
    "injured",
    "injury",
    "strain",
    "sprain",
    "tight",
    "stiff",
    "pulled muscle",
]

# Inflections a pain keyword may carry.
PAIN_SUFFIXES = ("", "s", "es", "ed", "ing", "ness", "ful")

# Multi-word parts come first so "lower back" wins over "back".
BODY_PARTS = [
    "lower back",
    "upper back",
    "back",
    "knee",
    "shoulder",
    "ankle",
    "wrist",
    "elbow",
    "hip",
    "neck",
]

BUSY_KEYWORDS = [
    "busy",
    "meetings",
    "travel",
    "conference",
    "deadline",
    "work trip",
    "vacation",
    "out of town",
    "visiting",
]

WORKOUT_WORDS = ["workout", "exercise", "training", "session"]

FEEDBACK_KEYWORDS = [
    "too hard",
    "too easy",
    "difficult",
    "challenging",
    "boring",
    "fun",
    "enjoyed",
    "hated",
    "loved",
    "tired",
    "energized",
    "sore",
    "great",
]

# Most words allowed between a pain word and a body part in one limitation.
LIMITATION_WINDOW = 3

_TOKEN_RE = re.compile(r"[a-z']+")


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hits(text: str, words: list[str]) -> list[str]:
    lowered = text.lower()
    return [w for w in words if w in lowered]


def _is_form_of(token: str, word: str) -> bool:
    if any(token == word + suffix for suffix in PAIN_SUFFIXES):
        return True
    # injury -> injuries
    return word.endswith("y") and token == word[:-1] + "ies"


class TextInsightExtractor:
    """Turn a check-in note into structured signals."""

    def extract(
        self, text: str | None, now: datetime.datetime | None = None
    ) -> CheckInAnalysis:
        now = now or datetime.datetime.now()
        text = text or ""
        score = self.motivation_score(text)
        return CheckInAnalysis(
            raw_text=text,
            sentiment=self.sentiment(text),
            motivation_score=score,
            motivation_polarity=self.motivation_polarity(score),
            physical_limitations=self.limitations(text),
            injury_keywords=self.injury_keywords(text),
            pain_indicators=self.pain_indicators(text),
            workout_feedback=self.workout_feedback(text),
            busy_periods=self.busy_periods(text),
            date_intervals=self.date_intervals(text, now),
            processed_at=now,
        )

    def sentiment(self, text: str) -> SentimentAnalysis:
        """Raw polarity on [-1, 1]."""
        positive = len(_hits(text, POSITIVE_SENTIMENT_WORDS))
        negative = len(_hits(text, NEGATIVE_SENTIMENT_WORDS))
        hits = positive + negative
        if hits == 0:
            return SentimentAnalysis()
        score = (positive - negative) / hits
        if score > 0.1:
            polarity = SentimentPolarity.POSITIVE
        elif score < -0.1:
            polarity = SentimentPolarity.NEGATIVE
        else:
            polarity = SentimentPolarity.NEUTRAL
        return SentimentAnalysis(
            polarity=polarity,
            score=round(score, 4),
            confidence=min(1.0, hits / 4),
        )

    def motivation_score(self, text: str) -> float:
        """Motivational score on [0, 1] starting from a 0.5 baseline."""
        score = 0.5
        score += 0.1 * len(_hits(text, MOTIVATION_POSITIVE_WORDS))
        score -= 0.1 * len(_hits(text, MOTIVATION_NEGATIVE_WORDS))
        return round(MathTools.clamp(score, 0.0, 1.0), 2)

    @staticmethod
    def motivation_polarity(score: float) -> SentimentPolarity:
        if score > 0.6:
            return SentimentPolarity.POSITIVE
        if score < 0.4:
            return SentimentPolarity.NEGATIVE
        return SentimentPolarity.NEUTRAL

    @staticmethod
    def _find_pain(tokens: list[str]) -> list[tuple[int, int, str]]:
        found = []
        for i, token in enumerate(tokens):
            for keyword in PAIN_KEYWORDS:
                parts = keyword.split()
                window = tokens[i : i + len(parts)]
                if len(window) != len(parts):
                    continue
                if all(_is_form_of(t, p) for t, p in zip(window, parts)):
                    found.append((i, i + len(parts) - 1, keyword))
                    break
        return found

    @staticmethod
    def _find_body_parts(tokens: list[str]) -> list[tuple[int, int, str]]:
        found = []
        i = 0
        while i < len(tokens):
            match = None
            for part in BODY_PARTS:
                words = part.split()
                window = tokens[i : i + len(words)]
                if len(window) != len(words):
                    continue
                if all(t in (w, w + "s") for t, w in zip(window, words)):
                    match = (i, i + len(words) - 1, part)
                    break
            if match:
                found.append(match)
                i = match[1] + 1
            else:
                i += 1
        return found

    @staticmethod
    def _gap(a: tuple[int, int, str], b: tuple[int, int, str]) -> int:
        if a[1] < b[0]:
            return b[0] - a[1] - 1
        return a[0] - b[1] - 1

    def limitations(self, text: str) -> list[str]:
        """Return ``"<pain> - <body part>"`` entries or bare pain keywords."""
        tokens = _tokens(text)
        parts = self._find_body_parts(tokens)
        result: list[str] = []
        for pain in self._find_pain(tokens):
            near = [p for p in parts if 0 <= self._gap(pain, p) <= LIMITATION_WINDOW]
            if near:
                best = min(near, key=lambda p: self._gap(pain, p))
                entry = f"{pain[2]} - {best[2]}"
            else:
                entry = pain[2]
            if entry not in result:
                result.append(entry)
        return result

    def injury_keywords(self, text: str) -> list[str]:
        """Return directly adjacent body part and pain word pairs."""
        tokens = _tokens(text)
        parts = self._find_body_parts(tokens)
        result: list[str] = []
        for pain in self._find_pain(tokens):
            for part in parts:
                if self._gap(pain, part) == 0:
                    entry = f"{part[2]} {pain[2]}"
                    if entry not in result:
                        result.append(entry)
        return result

    def pain_indicators(self, text: str) -> list[str]:
        found = {pain[2] for pain in self._find_pain(_tokens(text))}
        return [k for k in PAIN_KEYWORDS if k in found] + _hits(text, BODY_PARTS)

    def busy_periods(self, text: str) -> list[str]:
        return _hits(text, BUSY_KEYWORDS)

    def workout_feedback(self, text: str) -> list[str]:
        workout_words = _hits(text, WORKOUT_WORDS)
        if not workout_words:
            return []
        subject = workout_words[0]
        return [f"{subject} was {fb}" for fb in _hits(text, FEEDBACK_KEYWORDS)]

    def date_intervals(
        self, text: str, now: datetime.datetime | None = None
    ) -> list[DateInterval]:
        """Map the fixed relative phrases to concrete day ranges."""
        now = now or datetime.datetime.now()
        lowered = text.lower()
        today = datetime.datetime.combine(now.date(), datetime.time())
        monday = today - datetime.timedelta(days=now.isoweekday() - 1)
        result: list[DateInterval] = []
        if "tomorrow" in lowered:
            start = today + datetime.timedelta(days=1)
            result.append(
                DateInterval(
                    phrase="tomorrow",
                    start=start,
                    end=start + datetime.timedelta(days=1),
                )
            )
        if "weekend" in lowered:
            start = monday + datetime.timedelta(days=5)
            phrase = "this weekend" if "this weekend" in lowered else "weekend"
            result.append(
                DateInterval(
                    phrase=phrase,
                    start=start,
                    end=start + datetime.timedelta(days=2),
                )
            )
        if "next week" in lowered:
            start = monday + datetime.timedelta(days=7)
            result.append(
                DateInterval(
                    phrase="next week",
                    start=start,
                    end=start + datetime.timedelta(days=7),
                )
            )
        return result
