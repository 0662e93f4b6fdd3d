"""
Retirement eligibility rules.

Three rules are evaluated for every employee; the rule constants (ages,
point thresholds and their yearly progression) come from
``RetirementSettings``.
"""

import logging
import math
from datetime import date
from typing import Optional

from licenca_premio.config.settings import Settings, get_settings
from licenca_premio.schemas.leave_records import (
    RetirementAnalysis,
    RetirementOption,
    RetirementRule,
    Sex,
)

logger = logging.getLogger(__name__)


def add_years(start: date, years: int) -> date:
    """Add whole years; 29 February falls back to 28 February."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def compute_age(birth_date: date, reference_date: Optional[date] = None) -> int:
    """Age in whole years, counting the birthday itself as completed."""
    today = reference_date or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return max(0, age)


def compute_service_years(start: date, reference_date: Optional[date] = None) -> int:
    """Completed years of service since ``start``."""
    return compute_age(start, reference_date)


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class RetirementEligibilityEngine:
    """Evaluates the by-age, by-points and progressive-age rules."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def rules(self):
        return self.settings.retirement

    def evaluate(
        self,
        sex: Sex,
        age: float,
        service_years: float,
        reference_date: Optional[date] = None,
    ) -> RetirementAnalysis:
        """
        Evaluate all three rules.

        Args:
            sex: Employee sex; the constants differ per sex
            age: Current age in years
            service_years: Completed years of service
            reference_date: Date the evaluation is made for (defaults to today)

        Returns:
            RetirementAnalysis with every option, the earliest eligible one
            and the one with the earliest projected date
        """
        today = reference_date or date.today()
        key = Sex(sex).value

        by_age = self._by_age(key, age, service_years, today)
        by_points = self._by_points(key, age, service_years, today)
        by_progressive_age = self._by_progressive_age(key, age, service_years, today)

        options = [by_age, by_points, by_progressive_age]
        eligible_options = [o for o in options if o.eligible]

        # min() keeps the first of equal dates, so ties follow rule order
        best = min(eligible_options, key=lambda o: o.required_date) if eligible_options else None
        upcoming = min(options, key=lambda o: o.required_date)

        return RetirementAnalysis(
            by_age=by_age,
            by_points=by_points,
            by_progressive_age=by_progressive_age,
            eligible=bool(eligible_options),
            best_option=best,
            next_option=upcoming,
        )

    def evaluate_record(
        self,
        record,
        reference_date: Optional[date] = None,
        fallback_start: Optional[date] = None,
    ) -> Optional[RetirementAnalysis]:
        """
        Evaluate from a record carrying ``sex``, ``birth_date`` and ``admission_date``.

        Returns None when sex or birth date is unknown. Service is counted
        from the admission date, or from ``fallback_start`` (the earliest
        acquisition start) when admission is missing.
        """
        if record.sex is None or record.birth_date is None:
            logger.debug(f"Skipping retirement evaluation for {getattr(record, 'employee_id', None)}: missing sex or birth date")
            return None

        today = reference_date or date.today()
        service_start = record.admission_date or fallback_start
        service_years = compute_service_years(service_start, today) if service_start else 0

        return self.evaluate(record.sex, compute_age(record.birth_date, today), service_years, today)

    # =========================================================================
    # Rules
    # =========================================================================

    def _elapsed_years(self, today: date) -> int:
        return max(0, today.year - self.rules.base_year)

    def _option(self, rule: RetirementRule, gap: float, today: date, description: str, **extra) -> RetirementOption:
        years = max(0, math.ceil(gap))
        return RetirementOption(
            rule=rule,
            eligible=years == 0,
            required_date=add_years(today, years),
            years_remaining=years,
            rule_description=description,
            **extra,
        )

    def _by_age(self, sex: str, age: float, service: float, today: date) -> RetirementOption:
        required_age = self.rules.minimum_age[sex]
        required_service = self.rules.minimum_service_by_age
        gap = max(required_age - age, required_service - service, 0)

        return self._option(
            RetirementRule.BY_AGE,
            gap,
            today,
            f"{_format_number(required_age)} anos de idade + "
            f"{_format_number(required_service)} anos de contribuição",
            required_age=required_age,
            required_service=required_service,
        )

    def _by_points(self, sex: str, age: float, service: float, today: date) -> RetirementOption:
        required_points = min(
            self.rules.base_points[sex] + self._elapsed_years(today) * self.rules.points_increment_per_year,
            self.rules.max_points[sex],
        )
        current_points = age + service
        deficit = max(0, required_points - current_points)

        # Each year adds one point of age and one of service
        return self._option(
            RetirementRule.BY_POINTS,
            deficit / self.rules.points_per_year,
            today,
            f"{_format_number(required_points)} pontos (idade + tempo de serviço)",
            required_points=required_points,
            current_points=current_points,
        )

    def _by_progressive_age(self, sex: str, age: float, service: float, today: date) -> RetirementOption:
        required_age = min(
            self.rules.base_progressive_age[sex]
            + self._elapsed_years(today) * self.rules.progressive_age_increment_per_year,
            self.rules.max_progressive_age[sex],
        )
        required_service = self.rules.minimum_service_progressive
        gap = max(required_age - age, required_service - service, 0)

        return self._option(
            RetirementRule.BY_PROGRESSIVE_AGE,
            gap,
            today,
            f"{_format_number(required_age)} anos de idade + "
            f"{_format_number(required_service)} anos de contribuição",
            required_age=required_age,
            required_service=required_service,
        )
