"""Urgency classification of leave entitlements.

Canonical scale (days):

    CRITICAL  <= 7
    HIGH      <= 30
    MODERATE  <= 90
    LOW        > 90
    NONE      no data

The older three-level scale maps as URGENTE -> CRITICAL/HIGH,
MEDIO -> MODERATE, BAIXO -> LOW and SEM_LICENCA -> NONE.
"""

import logging
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from licenca_premio.config.settings import Settings, get_settings
from licenca_premio.schemas.leave_records import (
    EnrichedEmployeeRecord,
    UrgencyAssessment,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)


LEGACY_LEVEL_MAPPING: Dict[str, UrgencyLevel] = {
    "URGENTE": UrgencyLevel.HIGH,
    "CRITICA": UrgencyLevel.CRITICAL,
    "ALTA": UrgencyLevel.HIGH,
    "MEDIO": UrgencyLevel.MODERATE,
    "MEDIA": UrgencyLevel.MODERATE,
    "MODERADA": UrgencyLevel.MODERATE,
    "BAIXO": UrgencyLevel.LOW,
    "BAIXA": UrgencyLevel.LOW,
    "SEM_LICENCA": UrgencyLevel.NONE,
    "NENHUMA": UrgencyLevel.NONE,
}


class UrgencyClassifier:
    """Derives an ``UrgencyLevel`` from days remaining or the next leave date."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def classify(
        self,
        days_remaining: Optional[int],
        next_leave_date: Optional[date] = None,
        reference_date: Optional[date] = None,
    ) -> UrgencyLevel:
        return self.assess(days_remaining, next_leave_date, reference_date).level

    def assess(
        self,
        days_remaining: Optional[int],
        next_leave_date: Optional[date] = None,
        reference_date: Optional[date] = None,
    ) -> UrgencyAssessment:
        """
        Classify with a message for display.

        A known next leave date takes precedence: the days until it drive
        the level, and a date already in the past is CRITICAL.
        """
        if next_leave_date is not None:
            today = reference_date or date.today()
            days = (next_leave_date - today).days
            if days < 0:
                return UrgencyAssessment(
                    level=UrgencyLevel.CRITICAL,
                    message=f"Prazo vencido há {-days} dias",
                    days=days,
                )
            return self._from_days(days, f"Próxima licença em {days} dias")

        if days_remaining is None:
            return UrgencyAssessment(level=UrgencyLevel.NONE, message="Sem dados de licença")

        return self._from_days(days_remaining, f"{days_remaining} dias restantes")

    def _from_days(self, days: int, message: str) -> UrgencyAssessment:
        thresholds = self.settings.urgency

        if days <= thresholds.critical_days:
            level = UrgencyLevel.CRITICAL
        elif days <= thresholds.high_days:
            level = UrgencyLevel.HIGH
        elif days <= thresholds.moderate_days:
            level = UrgencyLevel.MODERATE
        else:
            level = UrgencyLevel.LOW

        return UrgencyAssessment(level=level, message=message, days=days)

    @staticmethod
    def from_legacy(label: Optional[str]) -> UrgencyLevel:
        """Map a label from the older scales onto the canonical one."""
        if not label:
            return UrgencyLevel.NONE
        key = label.strip().upper().replace("-", "_").replace(" ", "_")
        if key in UrgencyLevel.__members__:
            return UrgencyLevel[key]
        if key not in LEGACY_LEVEL_MAPPING:
            logger.debug(f"Unknown urgency label {label!r}, treating as NONE")
        return LEGACY_LEVEL_MAPPING.get(key, UrgencyLevel.NONE)

    @staticmethod
    def count_by_level(items: Iterable[Union[UrgencyLevel, UrgencyAssessment]]) -> Dict[str, int]:
        """Count per level; every level appears, plus a ``total`` key."""
        counts = Counter(
            item.level if isinstance(item, UrgencyAssessment) else UrgencyLevel(item)
            for item in items
        )
        result = {level.value: counts.get(level, 0) for level in UrgencyLevel}
        result["total"] = sum(counts.values())
        return result

    @staticmethod
    def sort_by_urgency(records: Sequence[EnrichedEmployeeRecord]) -> List[EnrichedEmployeeRecord]:
        """Most urgent first; within a level, fewest days first and unknown days last."""
        return sorted(
            records,
            key=lambda r: (
                r.urgency.level.priority,
                r.urgency.days is None,
                r.urgency.days if r.urgency.days is not None else 0,
                r.employee_id,
            ),
        )
