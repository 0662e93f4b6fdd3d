"""Tests for retirement eligibility rules."""

from datetime import date

import pytest

from licenca_premio.config.settings import Settings
from licenca_premio.schemas.leave_records import RawLeaveRecord, RetirementRule, Sex
from licenca_premio.services.retirement_engine import (
    RetirementEligibilityEngine,
    add_years,
    compute_age,
    compute_service_years,
)


TODAY = date(2025, 6, 1)


@pytest.fixture
def engine():
    return RetirementEligibilityEngine(Settings())


# =============================================================================
# Date Helper Tests
# =============================================================================

class TestDateHelpers:
    """Test cases for age and date arithmetic."""

    def test_compute_age_before_birthday(self):
        assert compute_age(date(1960, 6, 2), TODAY) == 64

    def test_compute_age_on_birthday(self):
        assert compute_age(date(1960, 6, 1), TODAY) == 65

    def test_compute_age_future_birth_is_zero(self):
        assert compute_age(date(2030, 1, 1), TODAY) == 0

    def test_compute_service_years(self):
        assert compute_service_years(date(2005, 7, 1), TODAY) == 19
        assert compute_service_years(date(2005, 6, 1), TODAY) == 20

    def test_add_years(self):
        assert add_years(date(2025, 6, 1), 3) == date(2028, 6, 1)

    def test_add_years_from_leap_day(self):
        """Test that 29 February falls back to 28 February."""
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)


# =============================================================================
# Rule Tests
# =============================================================================

class TestEvaluate:
    """Test cases for the three retirement rules."""

    def test_male_eligible_by_age(self, engine):
        """Test that a 65-year-old man with 20 years qualifies by age today."""
        analysis = engine.evaluate(Sex.MALE, 65, 20, TODAY)

        assert analysis.by_age.eligible is True
        assert analysis.by_age.required_date == TODAY
        assert analysis.by_age.years_remaining == 0
        assert analysis.eligible is True
        assert analysis.best_option.rule == RetirementRule.BY_AGE
        assert analysis.next_option.rule == RetirementRule.BY_AGE

    def test_male_by_age_other_rules(self, engine):
        analysis = engine.evaluate(Sex.MALE, 65, 20, TODAY)

        # 102 required, 85 held: 17 points at 2 per year
        assert analysis.by_points.eligible is False
        assert analysis.by_points.required_points == 102
        assert analysis.by_points.current_points == 85
        assert analysis.by_points.years_remaining == 9
        assert analysis.by_points.required_date == date(2034, 6, 1)

        assert analysis.by_progressive_age.eligible is False
        assert analysis.by_progressive_age.years_remaining == 10

    def test_not_yet_eligible(self, engine):
        """Test that the next option is the earliest projected date."""
        analysis = engine.evaluate(Sex.FEMALE, 55, 35, TODAY)

        assert analysis.eligible is False
        assert analysis.best_option is None
        assert analysis.by_age.years_remaining == 7
        assert analysis.by_points.years_remaining == 1
        assert analysis.by_progressive_age.years_remaining == 4
        assert analysis.next_option.rule == RetirementRule.BY_POINTS
        assert analysis.next_option.required_date == date(2026, 6, 1)

    def test_female_eligible_by_points(self, engine):
        analysis = engine.evaluate(Sex.FEMALE, 58, 34, TODAY)

        assert analysis.by_points.eligible is True
        assert analysis.by_age.eligible is False
        assert analysis.by_progressive_age.eligible is False
        assert analysis.best_option.rule == RetirementRule.BY_POINTS

    def test_ties_follow_rule_order(self, engine):
        """Test that equally early eligible options resolve to the first rule."""
        analysis = engine.evaluate(Sex.MALE, 66, 40, TODAY)

        assert all(option.eligible for option in analysis.options)
        assert analysis.best_option.rule == RetirementRule.BY_AGE

    def test_all_options_always_returned(self, engine):
        analysis = engine.evaluate(Sex.FEMALE, 30, 5, TODAY)

        assert [o.rule for o in analysis.options] == [
            RetirementRule.BY_AGE,
            RetirementRule.BY_POINTS,
            RetirementRule.BY_PROGRESSIVE_AGE,
        ]

    def test_eligible_iff_no_years_remaining(self, engine):
        analysis = engine.evaluate(Sex.FEMALE, 60, 25, TODAY)

        for option in analysis.options:
            assert option.eligible == (option.years_remaining == 0)


class TestYearlyProgression:
    """Test cases for thresholds that rise after the base year."""

    def test_points_rise_one_per_year(self, engine):
        analysis = engine.evaluate(Sex.MALE, 60, 30, date(2027, 3, 1))

        assert analysis.by_points.required_points == 104

    def test_points_capped(self, engine):
        analysis = engine.evaluate(Sex.FEMALE, 60, 30, date(2040, 1, 1))

        assert analysis.by_points.required_points == 100

    def test_progressive_age_rises_half_year(self, engine):
        """Test that the fractional requirement rounds the wait up to a whole year."""
        analysis = engine.evaluate(Sex.FEMALE, 59, 30, date(2026, 6, 1))

        assert analysis.by_progressive_age.required_age == 59.5
        assert analysis.by_progressive_age.years_remaining == 1
        assert analysis.by_progressive_age.required_date == date(2027, 6, 1)
        assert "59.5" in analysis.by_progressive_age.rule_description

    def test_progressive_age_capped(self, engine):
        analysis = engine.evaluate(Sex.MALE, 60, 30, date(2035, 1, 1))

        assert analysis.by_progressive_age.required_age == 65

    def test_before_base_year_uses_base_thresholds(self, engine):
        analysis = engine.evaluate(Sex.MALE, 60, 30, date(2020, 1, 1))

        assert analysis.by_points.required_points == 102
        assert analysis.by_progressive_age.required_age == 64


# =============================================================================
# Record Evaluation Tests
# =============================================================================

class TestEvaluateRecord:
    """Test cases for evaluating from personal data."""

    def test_missing_sex_returns_none(self, engine):
        record = RawLeaveRecord(birth_date=date(1960, 1, 1), admission_date=date(1990, 1, 1))

        assert engine.evaluate_record(record, TODAY) is None

    def test_missing_birth_date_returns_none(self, engine):
        record = RawLeaveRecord(sex=Sex.MALE, admission_date=date(1990, 1, 1))

        assert engine.evaluate_record(record, TODAY) is None

    def test_evaluate_from_dates(self, engine):
        record = RawLeaveRecord(
            sex=Sex.MALE,
            birth_date=date(1960, 1, 1),
            admission_date=date(2005, 1, 1),
        )

        analysis = engine.evaluate_record(record, TODAY)

        assert analysis.by_age.eligible is True
        assert analysis.by_points.current_points == 65 + 20

    def test_fallback_start_when_admission_missing(self, engine):
        """Test that service counts from the earliest acquisition start."""
        record = RawLeaveRecord(sex=Sex.FEMALE, birth_date=date(1970, 1, 1))

        analysis = engine.evaluate_record(record, TODAY, fallback_start=date(1995, 1, 1))

        assert analysis.by_points.current_points == 55 + 30

    def test_no_service_start_counts_zero_service(self, engine):
        record = RawLeaveRecord(sex=Sex.FEMALE, birth_date=date(1970, 1, 1))

        analysis = engine.evaluate_record(record, TODAY)

        assert analysis.by_points.current_points == 55
