"""
Tests for services/signal_extractor.py - keyword, date, time and name signals.
"""

import pytest

from services.audit_config import DetectionConfig
from services.signal_extractor import TextSignalExtractor, _dedupe


@pytest.fixture
def extractor():
    return TextSignalExtractor(DetectionConfig())


class TestKeywordGate:
    """A message without any configured keyword is not a candidate."""

    def test_no_keyword_returns_none(self, extractor):
        assert extractor.extract("Hello there") is None

    def test_blank_text_returns_none(self, extractor):
        assert extractor.extract("") is None
        assert extractor.extract("   \n ") is None

    def test_keywords_are_case_insensitive(self, extractor):
        signals = extractor.extract("MEETING soon")
        assert signals is not None
        assert "meeting" in signals.keywords

    def test_keywords_match_as_substrings(self, extractor):
        # 'meet' is found inside 'meeting' as well
        signals = extractor.extract("meeting")
        assert "meet" in signals.keywords

    def test_custom_keyword_list(self):
        cfg = DetectionConfig(hebrew_keywords=[], english_keywords=["sync"])
        ex = TextSignalExtractor(cfg)
        assert ex.extract("Meeting tomorrow") is None
        assert ex.extract("quick sync?").keywords == ["sync"]


class TestEnglishSignals:
    """Dates, times and names in English text."""

    def test_numeric_date_time_and_name(self, extractor):
        signals = extractor.extract("Meeting on 15/12/2024 at 14:30 with Dana")
        assert signals.dates == ["15/12/2024"]
        assert signals.times == ["14:30"]
        assert "Dana" in signals.names

    def test_preposition_hour(self, extractor):
        signals = extractor.extract("Let's meet tomorrow at 3")
        assert signals.dates == ["tomorrow"]
        assert signals.times == ["at 3"]

    def test_preposition_hour_not_taken_from_clock_time(self, extractor):
        signals = extractor.extract("Meeting tomorrow at 10:00")
        assert signals.times == ["10:00"]

    def test_am_pm_hour(self, extractor):
        signals = extractor.extract("call on friday 4pm")
        assert signals.dates == ["friday"]
        assert signals.times == ["4pm"]

    def test_day_after_tomorrow_is_one_token(self, extractor):
        signals = extractor.extract("meeting the day after tomorrow")
        assert signals.dates == ["day after tomorrow"]

    def test_day_part_word(self, extractor):
        signals = extractor.extract("appointment tomorrow afternoon")
        assert "afternoon" in signals.times


class TestHebrewSignals:
    """Hebrew relative dates, weekdays and hour expressions."""

    def test_tomorrow_and_hour(self, extractor):
        signals = extractor.extract("פגישה מחר בשעה 10")
        assert "פגישה" in signals.keywords
        assert signals.dates == ["מחר"]
        assert "בשעה 10" in signals.times

    def test_weekday(self, extractor):
        signals = extractor.extract("נפגשים ביום שלישי")
        assert signals.dates == ["שלישי"]

    def test_name_after_with(self, extractor):
        signals = extractor.extract("פגישה עם דנה מחר")
        assert "דנה" in signals.names


class TestDedupe:
    def test_first_spelling_wins(self):
        assert _dedupe(["Tomorrow", "tomorrow", " TOMORROW ", "", "friday"]) == ["Tomorrow", "friday"]
