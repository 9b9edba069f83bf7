"""
Tests for the half-life regression model and lecture metadata helpers.
"""

from datetime import datetime, timedelta

import pytest

from services.spaced_repetition import (
    HalfLifeParams,
    calculate_half_life,
    convert_difficulty_to_numeric,
    estimate_study_duration,
    estimate_task_complexity,
    explain_half_life,
    parse_duration_minutes,
    schedule_next_review,
)
from utils.datetime_utils import utc


class TestHalfLife:
    def test_first_review_value(self):
        assert calculate_half_life(90, 60, 3, 0, None, 1) == pytest.approx(14.5575)

    def test_second_review_grows(self):
        first = calculate_half_life(90, 60, 3, 0, None, 1)
        second = calculate_half_life(90, 60, 3, 0, first, 2)
        assert second == pytest.approx(20.3805)
        assert second > first

    def test_monotonic_in_score(self):
        high = calculate_half_life(100, 60, 3)
        mid = calculate_half_life(50, 60, 3)
        low = calculate_half_life(0, 60, 3)
        assert high > mid > low
        assert mid == pytest.approx(3.1875)
        assert low == 1.0

    @pytest.mark.parametrize(
        "args",
        [
            (0, 0, 5, 0, None, 1),
            (5, 10, 5, 0, None, 1),
            (100, 1, 1, 30, 0.5, 4),
            (-20, 60, 9, 0, None, 1),
        ],
    )
    def test_never_below_floor(self, args):
        assert calculate_half_life(*args) >= 1.0

    def test_repetition_increases_half_life(self):
        assert calculate_half_life(80, 45, 2, 0, None, 3) > calculate_half_life(
            80, 45, 2, 0, None, 1
        )

    def test_spacing_effect(self):
        assert calculate_half_life(80, 45, 2, 7) > calculate_half_life(80, 45, 2, 0)

    def test_score_and_complexity_are_clamped(self):
        assert calculate_half_life(150, 60, 3) == calculate_half_life(100, 60, 3)
        assert calculate_half_life(90, 60, 12) == calculate_half_life(90, 60, 5)

    def test_fractional_complexity_is_not_truncated(self):
        assert calculate_half_life(90, 60, 2.5) == pytest.approx(17.469)
        assert calculate_half_life(90, 60, 2.5) != calculate_half_life(90, 60, 2)
        assert explain_half_life(90, 60, 2.5).task_complexity == 2.5

    @pytest.mark.parametrize("study_count", [0, -1])
    def test_study_count_below_one_rejected(self, study_count):
        with pytest.raises(ValueError):
            explain_half_life(90, 60, 3, 0, 5.0, study_count)

    def test_custom_params_are_used(self):
        params = HalfLifeParams(min_half_life=2.0)
        assert calculate_half_life(0, 60, 3, params=params) == 2.0

    def test_breakdown_steps(self):
        breakdown = explain_half_life(90, 60, 3, 0, 14.5575, 2)

        assert breakdown.base_half_life == pytest.approx(9.0)
        assert breakdown.performance_modifier == pytest.approx(1.6175)
        assert breakdown.spacing_effect == 1.0
        assert breakdown.weight_for_previous == pytest.approx(1 / 3)
        assert breakdown.repetition_factor == pytest.approx(1.4)
        assert breakdown.to_dict()["halfLife"] == pytest.approx(20.3805)


class TestScheduleNextReview:
    def test_adds_half_life_days_to_quiz_date(self):
        quiz = utc.localize(datetime(2024, 1, 1, 12, 0))
        review = schedule_next_review(2.5, quiz)
        assert review == quiz + timedelta(days=2, hours=12)

    def test_defaults_to_injected_now(self, fixed_now):
        review = schedule_next_review(1.0, now=fixed_now)
        assert review == fixed_now() + timedelta(days=1)

    def test_accepts_iso_string(self):
        review = schedule_next_review(1.0, "2024-01-01T00:00:00Z")
        assert review == utc.localize(datetime(2024, 1, 2))


class TestLectureMetadata:
    @pytest.mark.parametrize(
        "text,expected",
        [
            (None, 3),
            ("", 3),
            ("4", 4),
            ("9", 5),
            ("0", 1),
            ("Very Easy", 1),
            ("Beginner", 1),
            ("easy", 2),
            ("Medium", 3),
            ("Hard", 4),
            ("Very Hard", 5),
            ("expert", 5),
            ("unknown", 3),
        ],
    )
    def test_convert_difficulty(self, text, expected):
        assert convert_difficulty_to_numeric(text) == expected

    def test_parse_duration(self):
        assert parse_duration_minutes("60 minutes") == 60
        assert parse_duration_minutes("about 45") == 45
        assert parse_duration_minutes(None) == 30
        assert parse_duration_minutes("an hour") == 30

    def test_keyword_fallbacks(self):
        assert estimate_study_duration("Introduction to Graphs") == 20
        assert estimate_study_duration("Lab", "practical workshop") == 60
        assert estimate_study_duration("Lecture 3") == 30
        assert estimate_task_complexity("Quantum Computing") == 5
        assert estimate_task_complexity("System design") == 3
        assert estimate_task_complexity("Course overview") == 1
        assert estimate_task_complexity("Misc") == 3
