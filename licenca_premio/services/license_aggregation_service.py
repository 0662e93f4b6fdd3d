"""
License Aggregation Service

Read-side facade over the normalization, reconciliation, urgency and
retirement components. Raw rows come from an injected loader; the derived
per-employee records are cached with a TTL and rebuilt on demand.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from licenca_premio.config.settings import Settings, get_settings
from licenca_premio.infrastructure.redis_client import RedisConfig, create_redis_client
from licenca_premio.infrastructure.result_cache import CachePrefix, ResultCache
from licenca_premio.infrastructure.rule_store import InMemoryRuleStore, RedisRuleStore, RuleStore
from licenca_premio.schemas.leave_records import (
    EnrichedEmployeeRecord,
    GroupField,
    LicenseFilterCriteria,
    LicenseStats,
    LicenseSummary,
    NormalizationStats,
    RawLeaveRecord,
)
from licenca_premio.services.lotacao_normalizer import LotacaoNormalizer
from licenca_premio.services.period_reconciler import PeriodReconciler
from licenca_premio.services.record_normalizer import RecordNormalizer
from licenca_premio.services.retirement_engine import RetirementEligibilityEngine
from licenca_premio.services.urgency_classifier import UrgencyClassifier
from licenca_premio.utils.errors import (
    ValidationError,
    create_field_error,
    create_validation_error,
)
from licenca_premio.utils.spreadsheet_parser import load_spreadsheet_file, strip_accents

logger = logging.getLogger(__name__)

RowLoader = Callable[[], Iterable[Mapping[str, Any]]]

# Group label for records missing the grouped value
UNDEFINED_GROUP = "indefinido"


@dataclass
class _Snapshot:
    """Everything derived from one pass over the loader's rows."""

    records: List[EnrichedEmployeeRecord] = field(default_factory=list)
    raw_records: List[RawLeaveRecord] = field(default_factory=list)
    unassigned_rows: List[RawLeaveRecord] = field(default_factory=list)


def _first(rows: Iterable[RawLeaveRecord], attr: str) -> Any:
    return next((getattr(r, attr) for r in rows if getattr(r, attr) is not None), None)


def _last(rows: List[RawLeaveRecord], attr: str) -> Any:
    return _first(reversed(rows), attr)


def _fold(text: Optional[str]) -> str:
    return strip_accents(text or "").strip().casefold()


def _ids_by_name(records: Iterable[RawLeaveRecord]) -> Dict[str, str]:
    """Matrícula for each name that appears with exactly one matrícula."""
    ids: Dict[str, set] = {}
    for record in records:
        name = _fold(record.employee_name)
        if name and record.employee_id:
            ids.setdefault(name, set()).add(record.employee_id)

    resolved = {}
    for name, found in ids.items():
        if len(found) == 1:
            resolved[name] = next(iter(found))
        else:
            logger.debug(f"Name {name!r} appears under {len(found)} matrículas; rows without one stay apart")
    return resolved


class LicenseAggregationFacade:
    """
    Query surface over the enriched employee records.

    Every query works on the same cached snapshot; ``reload()`` (or
    ``load_all(force_refresh=True)``) discards it so the next call rereads
    the rows and the override rules.
    """

    def __init__(
        self,
        row_loader: RowLoader,
        lotacao_normalizer: Optional[LotacaoNormalizer] = None,
        record_normalizer: Optional[RecordNormalizer] = None,
        reconciler: Optional[PeriodReconciler] = None,
        urgency_classifier: Optional[UrgencyClassifier] = None,
        retirement_engine: Optional[RetirementEligibilityEngine] = None,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings or get_settings()
        self.row_loader = row_loader
        self.lotacao_normalizer = lotacao_normalizer or LotacaoNormalizer()
        self.record_normalizer = record_normalizer or RecordNormalizer()
        self.reconciler = reconciler or PeriodReconciler(self.settings)
        self.urgency_classifier = urgency_classifier or UrgencyClassifier(self.settings)
        self.retirement_engine = retirement_engine or RetirementEligibilityEngine(self.settings)
        self.cache = cache or ResultCache(
            ttl_seconds=self.settings.cache.ttl_seconds,
            enabled=self.settings.cache.enabled,
        )
        self._today = today

    # =========================================================================
    # Loading
    # =========================================================================

    def load_all(self, force_refresh: bool = False) -> List[EnrichedEmployeeRecord]:
        """Return every enriched record, rebuilding when the cache is stale."""
        if force_refresh:
            self.cache.invalidate()
        return list(self._snapshot().records)

    def reload(self) -> List[EnrichedEmployeeRecord]:
        """Drop cached results, re-read override rules and rebuild."""
        self.cache.invalidate()
        self.lotacao_normalizer.reload_rules()
        return self.load_all()

    def clear_cache(self) -> None:
        self.cache.invalidate()

    @property
    def unassigned_rows(self) -> List[RawLeaveRecord]:
        """Rows with neither employee id nor name."""
        return list(self._snapshot().unassigned_rows)

    def _snapshot(self) -> _Snapshot:
        return self.cache.get_or_set(CachePrefix.RECORDS, "all", self._build_snapshot)

    def _build_snapshot(self) -> _Snapshot:
        rows = list(self.row_loader())
        raw_records = self.record_normalizer.normalize_many(rows)
        raw_records = self.lotacao_normalizer.normalize_records(raw_records)

        groups: "OrderedDict[str, List[RawLeaveRecord]]" = OrderedDict()
        unassigned: List[RawLeaveRecord] = []

        ids_by_name = _ids_by_name(raw_records)

        for record in raw_records:
            key = record.employee_id or ids_by_name.get(_fold(record.employee_name)) or record.employee_name
            if not key:
                unassigned.append(record)
                continue
            groups.setdefault(key, []).append(record)

        today = self._today()
        records = [self._enrich(key, group, today) for key, group in groups.items()]

        if unassigned:
            logger.warning(f"{len(unassigned)} row(s) have neither matrícula nor name and were set aside")
        logger.info(f"Built {len(records)} employee records from {len(rows)} rows")

        return _Snapshot(records=records, raw_records=raw_records, unassigned_rows=unassigned)

    def _enrich(self, key: str, rows: List[RawLeaveRecord], today: date) -> EnrichedEmployeeRecord:
        balance = self.reconciler.reconcile(rows)

        upcoming = [r.leave_start for r in rows if r.leave_start is not None and r.leave_start >= today]
        next_leave_date = min(upcoming) if upcoming else None

        urgency = self.urgency_classifier.assess(
            balance.total_remaining if balance.has_data else None,
            next_leave_date,
            today,
        )

        record = EnrichedEmployeeRecord(
            employee_id=key,
            employee_name=_first(rows, "employee_name"),
            job_title=_first(rows, "job_title"),
            department=_first(rows, "department"),
            department_raw=_first(rows, "department_name_raw"),
            sex=_first(rows, "sex"),
            birth_date=_first(rows, "birth_date"),
            admission_date=_first(rows, "admission_date"),
            # The sheet appends newer entries below older ones
            leave_type=_last(rows, "leave_type"),
            status=_last(rows, "status"),
            next_leave_date=next_leave_date,
            row_count=len(rows),
            calculated=balance,
            urgency=urgency,
        )

        retirement = self.retirement_engine.evaluate_record(
            record,
            reference_date=today,
            fallback_start=balance.earliest_acquisition_start,
        )
        return record.model_copy(update={"retirement": retirement})

    # =========================================================================
    # Queries
    # =========================================================================

    def filter(
        self,
        criteria: Optional[Union[LicenseFilterCriteria, Mapping[str, Any]]] = None,
    ) -> List[EnrichedEmployeeRecord]:
        """Records matching every given criterion."""
        criteria = self._coerce_criteria(criteria)
        department = self.lotacao_normalizer.normalize(criteria.department) if criteria.department else None

        results = []
        for record in self._snapshot().records:
            if department is not None and record.department != department:
                continue
            if criteria.leave_type is not None and _fold(record.leave_type) != _fold(criteria.leave_type):
                continue
            if criteria.status is not None and _fold(record.status) != _fold(criteria.status):
                continue
            if criteria.urgency is not None and record.urgency.level != criteria.urgency:
                continue
            day_bounds = criteria.min_days_remaining is not None or criteria.max_days_remaining is not None
            # Without acquisition periods there is no computed balance to compare
            if day_bounds and not record.calculated.has_data:
                continue
            if criteria.min_days_remaining is not None and record.days_remaining < criteria.min_days_remaining:
                continue
            if criteria.max_days_remaining is not None and record.days_remaining > criteria.max_days_remaining:
                continue
            results.append(record)

        return results

    def group_by(
        self,
        field_name: str,
        criteria: Optional[Union[LicenseFilterCriteria, Mapping[str, Any]]] = None,
    ) -> Dict[str, List[EnrichedEmployeeRecord]]:
        """Group (filtered) records by one of the ``GroupField`` values."""
        try:
            group_field = GroupField(field_name)
        except ValueError:
            valid = ", ".join(f.value for f in GroupField)
            raise create_validation_error(
                [create_field_error("field", f"Must be one of: {valid}", "invalid_choice")],
                message=f"Cannot group by {field_name!r}",
            )

        groups: Dict[str, List[EnrichedEmployeeRecord]] = {}
        for record in self.filter(criteria):
            if group_field == GroupField.URGENCY:
                value = record.urgency.level.value
            else:
                value = getattr(record, group_field.value)
            groups.setdefault(value or UNDEFINED_GROUP, []).append(record)

        return groups

    def search(self, text: Any) -> List[EnrichedEmployeeRecord]:
        """Case- and accent-insensitive substring search on name and matrícula."""
        if not isinstance(text, str) or not text.strip():
            raise create_validation_error(
                [create_field_error("q", "Search text must be a non-empty string", "required")],
                message="Invalid search text",
            )

        needle = _fold(text)
        return [
            record
            for record in self._snapshot().records
            if needle in _fold(record.employee_name) or needle in _fold(record.employee_id)
        ]

    def get_stats(
        self,
        criteria: Optional[Union[LicenseFilterCriteria, Mapping[str, Any]]] = None,
    ) -> LicenseStats:
        """Aggregate statistics; unfiltered results are cached with the records."""
        if criteria is None:
            return self.cache.get_or_set(CachePrefix.STATS, "all", lambda: self._compute_stats(self.load_all()))
        return self._compute_stats(self.filter(criteria))

    def _compute_stats(self, records: List[EnrichedEmployeeRecord]) -> LicenseStats:
        thresholds = self.settings.urgency
        with_data = [r for r in records if r.calculated.has_data]

        by_urgency = self.urgency_classifier.count_by_level(r.urgency for r in records)
        by_urgency.pop("total")

        return LicenseStats(
            total=len(records),
            by_type=dict(Counter(r.leave_type or UNDEFINED_GROUP for r in records)),
            by_status=dict(Counter(r.status or UNDEFINED_GROUP for r in records)),
            by_urgency=by_urgency,
            by_department=dict(Counter(r.department or UNDEFINED_GROUP for r in records)),
            urgent=sum(1 for r in with_data if r.days_remaining <= thresholds.high_days),
            critical=sum(1 for r in with_data if r.days_remaining <= thresholds.critical_days),
            total_earned=sum(r.calculated.total_earned for r in records),
            total_used=sum(r.calculated.total_used for r in records),
            total_remaining=sum(r.calculated.total_remaining for r in records),
            retirement_eligible=sum(1 for r in records if r.retirement is not None and r.retirement.eligible),
            unmatched_usage=sum(len(r.calculated.unmatched) for r in records),
        )

    def get_summary(self, employee_id: Any) -> Optional[LicenseSummary]:
        """Short summary of one employee, or None when unknown."""
        key = str(employee_id).strip() if employee_id is not None else ""
        record = next((r for r in self._snapshot().records if r.employee_id == key), None)

        if record is None:
            logger.info(f"No licença-prêmio record found for {key!r}")
            return None

        return LicenseSummary(
            employee_id=record.employee_id,
            employee_name=record.employee_name,
            leave_type=record.leave_type,
            status=record.status,
            department=record.department,
            days_remaining=record.days_remaining,
            urgency=record.urgency.level,
            message=record.urgency.message,
            retirement_eligible=record.retirement.eligible if record.retirement else None,
        )

    def sorted_by_urgency(self) -> List[EnrichedEmployeeRecord]:
        return self.urgency_classifier.sort_by_urgency(self._snapshot().records)

    # =========================================================================
    # Lotação
    # =========================================================================

    def analyze_lotacao_duplicates(self) -> Dict[str, List[str]]:
        return self.lotacao_normalizer.analyze_duplicates(self._snapshot().raw_records)

    def get_lotacao_stats(self) -> NormalizationStats:
        return self.lotacao_normalizer.get_stats(self._snapshot().raw_records)

    def add_lotacao_rule(self, original: str, replacement: str) -> None:
        """Add an override rule; cached records are rebuilt on next access."""
        self.lotacao_normalizer.add_custom_rule(original, replacement)
        self.cache.invalidate()

    def remove_lotacao_rule(self, original: str) -> bool:
        removed = self.lotacao_normalizer.remove_custom_rule(original)
        if removed:
            self.cache.invalidate()
        return removed

    # =========================================================================
    # Helpers
    # =========================================================================

    def _coerce_criteria(
        self,
        criteria: Optional[Union[LicenseFilterCriteria, Mapping[str, Any]]],
    ) -> LicenseFilterCriteria:
        if criteria is None:
            return LicenseFilterCriteria()
        if isinstance(criteria, LicenseFilterCriteria):
            return criteria
        if not isinstance(criteria, Mapping):
            raise ValidationError(
                message="Filter criteria must be a mapping",
                details={"type": type(criteria).__name__},
            )

        try:
            return LicenseFilterCriteria.model_validate(dict(criteria))
        except PydanticValidationError as e:
            raise create_validation_error(
                [
                    create_field_error(
                        ".".join(str(part) for part in err["loc"]) or "criteria",
                        err["msg"],
                        err["type"],
                    )
                    for err in e.errors()
                ],
                message="Invalid filter criteria",
            ) from e


# =============================================================================
# Service Instance
# =============================================================================

def build_rule_store(settings: Settings) -> RuleStore:
    """Redis-backed store when ``REDIS_URL`` is set, in-memory otherwise."""
    if settings.storage.redis_url:
        client = create_redis_client(RedisConfig.from_url(settings.storage.redis_url))
        return RedisRuleStore(client, key=settings.storage.rules_key)

    logger.info("REDIS_URL not set; lotação rules are kept in memory")
    return InMemoryRuleStore()


def build_row_loader(settings: Settings) -> RowLoader:
    if settings.storage.data_file:
        return partial(load_spreadsheet_file, settings.storage.data_file)

    logger.warning("LICENCA_DATA_FILE not set; serving an empty dataset")
    return list


def build_facade(settings: Optional[Settings] = None) -> LicenseAggregationFacade:
    """Wire the facade and its collaborators from settings."""
    settings = settings or get_settings()
    return LicenseAggregationFacade(
        row_loader=build_row_loader(settings),
        lotacao_normalizer=LotacaoNormalizer(build_rule_store(settings)),
        settings=settings,
    )

