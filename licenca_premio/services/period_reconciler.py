"""Reconstruction of an employee's licença-prêmio ledger from sheet rows."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

from licenca_premio.config.settings import Settings, get_settings
from licenca_premio.schemas.leave_records import (
    AcquisitionPeriod,
    LeaveBalance,
    RawLeaveRecord,
    UnmatchedUsage,
)

logger = logging.getLogger(__name__)


@dataclass
class _PeriodAccumulator:
    """Mutable state for one acquisition window while rows are merged."""

    start: date
    end: Optional[date]
    days_used: int = 0
    days_earned_override: Optional[int] = None
    reported_remaining: Optional[int] = None
    row_numbers: List[Optional[int]] = field(default_factory=list)

    def absorb(self, record: RawLeaveRecord) -> None:
        self.days_used += record.days_taken
        self.row_numbers.append(record.row_number)
        if self.days_earned_override is None:
            self.days_earned_override = record.days_earned_override
        if record.days_remaining_reported is not None:
            self.reported_remaining = record.days_remaining_reported

    def overlaps(self, other: "_PeriodAccumulator") -> bool:
        if self.end is None or other.end is None:
            return False
        return self.start <= other.end and other.start <= self.end


class PeriodReconciler:
    """
    Builds a ``LeaveBalance`` out of one employee's rows.

    Rows repeating the same acquisition window (re-entries from different
    sheet tabs) merge into one period: their usage adds up but the earned
    days are counted once. Usage that cannot be tied to a window is kept
    in ``unmatched`` so data-quality problems surface instead of vanishing.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def days_per_period(self) -> int:
        return self.settings.leave_policy.days_per_period

    def reconcile(self, records: Sequence[RawLeaveRecord]) -> LeaveBalance:
        unmatched: List[UnmatchedUsage] = []
        candidates: List[RawLeaveRecord] = []

        for record in records:
            reason = self._rejection_reason(record)
            if reason is None:
                candidates.append(record)
            elif record.days_taken > 0:
                unmatched.append(UnmatchedUsage(
                    row_number=record.row_number,
                    acquisition_start=record.acquisition_start,
                    acquisition_end=record.acquisition_end,
                    days_taken=record.days_taken,
                    reason=reason,
                ))

        # Candidates always have a start; ends may be missing (nulls last)
        candidates.sort(key=lambda r: (r.acquisition_start, r.acquisition_end is None, r.acquisition_end or date.max))

        accumulators = self._merge(candidates)
        periods = [self._to_period(acc) for acc in accumulators]
        overlaps = self._find_overlaps(accumulators)

        total_earned = sum(p.days_earned for p in periods)
        total_used = sum(p.days_used for p in periods)
        total_remaining = max(0, total_earned - total_used)

        reported = periods[-1].reported_remaining if periods else None
        has_discrepancy = reported is not None and reported != total_remaining

        if unmatched:
            logger.warning(
                f"{len(unmatched)} usage row(s) could not be matched to an acquisition period: "
                f"rows {[u.row_number for u in unmatched]}"
            )
        if overlaps:
            logger.warning(f"Overlapping acquisition periods detected: {overlaps}")

        return LeaveBalance(
            total_earned=total_earned,
            total_used=total_used,
            total_remaining=total_remaining,
            periods=periods,
            unmatched=unmatched,
            overlapping_periods=overlaps,
            reported_remaining=reported,
            has_discrepancy=has_discrepancy,
            earliest_acquisition_start=periods[0].start if periods else None,
        )

    def _rejection_reason(self, record: RawLeaveRecord) -> Optional[str]:
        if record.acquisition_start is None:
            return "missing_acquisition_start"
        if record.has_inverted_window:
            return "inverted_window"
        return None

    def _merge(self, candidates: Sequence[RawLeaveRecord]) -> List[_PeriodAccumulator]:
        accumulators: List[_PeriodAccumulator] = []
        by_window = {}
        by_start = {}

        for record in candidates:
            window = (record.acquisition_start, record.acquisition_end)

            target = by_window.get(window)
            if target is None and record.acquisition_end is None:
                # A row without an end cannot name a different window
                target = by_start.get(record.acquisition_start)

            if target is None:
                target = _PeriodAccumulator(start=record.acquisition_start, end=record.acquisition_end)
                accumulators.append(target)
                by_window[window] = target
                by_start.setdefault(record.acquisition_start, target)

            target.absorb(record)

        return accumulators

    def _to_period(self, acc: _PeriodAccumulator) -> AcquisitionPeriod:
        earned = acc.days_earned_override if acc.days_earned_override is not None else self.days_per_period
        return AcquisitionPeriod(
            start=acc.start,
            end=acc.end,
            days_earned=earned,
            days_used=acc.days_used,
            days_remaining=max(0, earned - acc.days_used),
            source_rows=len(acc.row_numbers),
            reported_remaining=acc.reported_remaining,
        )

    def _find_overlaps(self, accumulators: Sequence[_PeriodAccumulator]) -> List[Tuple[int, int]]:
        overlaps = []
        for i, first in enumerate(accumulators):
            for j in range(i + 1, len(accumulators)):
                if first.overlaps(accumulators[j]):
                    overlaps.append((i, j))
        return overlaps
