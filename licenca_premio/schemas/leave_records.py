"""Data models for the licença-prêmio balance and eligibility engine.

Raw spreadsheet rows are parsed into ``RawLeaveRecord``; everything else in
this module is derived from those records on every load and is treated as a
read-only value object by the presentation layer.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class Sex(str, Enum):
    """Sex as recorded in the personnel sheet."""

    MALE = "M"
    FEMALE = "F"


class UrgencyLevel(str, Enum):
    """Canonical 5-level urgency scale."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"
    NONE = "NONE"

    @property
    def priority(self) -> int:
        """Sort priority, most urgent first."""
        return _URGENCY_PRIORITY[self]


_URGENCY_PRIORITY = {
    UrgencyLevel.CRITICAL: 1,
    UrgencyLevel.HIGH: 2,
    UrgencyLevel.MODERATE: 3,
    UrgencyLevel.LOW: 4,
    UrgencyLevel.NONE: 5,
}


class RetirementRule(str, Enum):
    """Retirement rules evaluated for every employee."""

    BY_AGE = "by_age"
    BY_POINTS = "by_points"
    BY_PROGRESSIVE_AGE = "by_progressive_age"


class GroupField(str, Enum):
    """Fields accepted by the aggregation ``group_by`` operation."""

    DEPARTMENT = "department"
    LEAVE_TYPE = "leave_type"
    STATUS = "status"
    URGENCY = "urgency"


# =============================================================================
# Input rows
# =============================================================================

class FieldDiagnostic(BaseModel):
    """A non-fatal problem found while normalizing one field of a row."""

    field: str = Field(..., description="Canonical field name")
    value: Optional[str] = Field(None, description="The raw value")
    message: str = Field(..., description="Description of the problem")
    code: str = Field(default="invalid", description="Diagnostic code")


class RawLeaveRecord(BaseModel):
    """
    One spreadsheet row in canonical shape.

    Every field is optional: malformed rows degrade to partially-null
    records and the caller decides whether to drop them.
    """

    row_number: Optional[int] = Field(None, description="1-based row number in the source")

    # Identity
    employee_id: Optional[str] = Field(None, description="Matrícula")
    employee_name: Optional[str] = Field(None, description="Nome do servidor")
    job_title: Optional[str] = Field(None, description="Cargo")
    department_name_raw: Optional[str] = Field(None, description="Lotação as typed in the sheet")
    department: Optional[str] = Field(None, description="Normalized lotação")

    # Personal data used by the retirement rules
    admission_date: Optional[date] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None

    # Acquisition period and usage
    acquisition_start: Optional[date] = None
    acquisition_end: Optional[date] = None
    days_taken: int = Field(default=0, ge=0, description="Leave days used against the period")
    days_remaining_reported: Optional[int] = Field(
        None,
        description="Remaining days as stated in the sheet (may be stale)",
    )
    days_earned_override: Optional[int] = Field(
        None,
        ge=0,
        description="Explicit earned days for the period, when the sheet states one",
    )

    # Scheduled enjoyment
    leave_type: Optional[str] = None
    status: Optional[str] = None
    leave_start: Optional[date] = None
    leave_end: Optional[date] = None

    diagnostics: List[FieldDiagnostic] = Field(default_factory=list)

    @property
    def has_inverted_window(self) -> bool:
        """True when the acquisition window ends before it starts."""
        return (
            self.acquisition_start is not None
            and self.acquisition_end is not None
            and self.acquisition_start > self.acquisition_end
        )


# =============================================================================
# Ledger
# =============================================================================

class AcquisitionPeriod(BaseModel):
    """One earned-leave window of an employee."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: Optional[date] = None
    days_earned: int = Field(..., ge=0)
    days_used: int = Field(..., ge=0)
    days_remaining: int = Field(..., ge=0)
    source_rows: int = Field(default=1, ge=1, description="Rows merged into this period")
    reported_remaining: Optional[int] = Field(
        None,
        description="Last remaining value reported by the sheet for this period",
    )


class UnmatchedUsage(BaseModel):
    """A usage row that could not be attached to any acquisition period."""

    model_config = ConfigDict(frozen=True)

    row_number: Optional[int] = None
    acquisition_start: Optional[date] = None
    acquisition_end: Optional[date] = None
    days_taken: int = 0
    reason: str


class LeaveBalance(BaseModel):
    """Reconciled ledger of one employee."""

    model_config = ConfigDict(frozen=True)

    total_earned: int = 0
    total_used: int = 0
    total_remaining: int = Field(default=0, ge=0)
    periods: List[AcquisitionPeriod] = Field(default_factory=list)
    unmatched: List[UnmatchedUsage] = Field(default_factory=list)
    overlapping_periods: List[Tuple[int, int]] = Field(
        default_factory=list,
        description="Index pairs of periods whose windows overlap",
    )
    reported_remaining: Optional[int] = None
    has_discrepancy: bool = False
    earliest_acquisition_start: Optional[date] = None

    @property
    def has_data(self) -> bool:
        return bool(self.periods)


# =============================================================================
# Urgency
# =============================================================================

class UrgencyAssessment(BaseModel):
    """Urgency level plus a human-readable message."""

    model_config = ConfigDict(frozen=True)

    level: UrgencyLevel
    message: str
    days: Optional[int] = Field(None, description="Days value that drove the level")


# =============================================================================
# Retirement
# =============================================================================

class RetirementOption(BaseModel):
    """Evaluation of a single retirement rule."""

    model_config = ConfigDict(frozen=True)

    rule: RetirementRule
    eligible: bool
    required_date: date
    years_remaining: int = Field(..., ge=0)
    rule_description: str
    required_age: Optional[float] = None
    required_service: Optional[float] = None
    required_points: Optional[float] = None
    current_points: Optional[float] = None


class RetirementAnalysis(BaseModel):
    """All three rule evaluations and the recommended path."""

    model_config = ConfigDict(frozen=True)

    by_age: RetirementOption
    by_points: RetirementOption
    by_progressive_age: RetirementOption
    eligible: bool
    best_option: Optional[RetirementOption] = Field(
        None,
        description="Earliest option already satisfied",
    )
    next_option: RetirementOption = Field(
        ...,
        description="Option with the earliest projected date",
    )

    @property
    def options(self) -> List[RetirementOption]:
        return [self.by_age, self.by_points, self.by_progressive_age]


# =============================================================================
# Enriched output
# =============================================================================

class EnrichedEmployeeRecord(BaseModel):
    """Per-employee record consumed by the presentation layer."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    employee_name: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    department_raw: Optional[str] = None
    sex: Optional[Sex] = None
    birth_date: Optional[date] = None
    admission_date: Optional[date] = None
    leave_type: Optional[str] = None
    status: Optional[str] = None
    next_leave_date: Optional[date] = None
    row_count: int = 0

    calculated: LeaveBalance
    urgency: UrgencyAssessment
    retirement: Optional[RetirementAnalysis] = None

    @property
    def days_remaining(self) -> int:
        return self.calculated.total_remaining


# =============================================================================
# Query models
# =============================================================================

class LicenseFilterCriteria(BaseModel):
    """AND-combined filter; an absent criterion imposes no constraint."""

    model_config = ConfigDict(extra="forbid")

    department: Optional[str] = None
    leave_type: Optional[str] = None
    status: Optional[str] = None
    urgency: Optional[UrgencyLevel] = None
    min_days_remaining: Optional[int] = None
    max_days_remaining: Optional[int] = None


class LicenseStats(BaseModel):
    """Aggregate statistics over a (filtered) collection."""

    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_urgency: Dict[str, int] = Field(default_factory=dict)
    by_department: Dict[str, int] = Field(default_factory=dict)
    urgent: int = Field(default=0, description="Employees with at most 30 days remaining")
    critical: int = Field(default=0, description="Employees with at most 7 days remaining")
    total_earned: int = 0
    total_used: int = 0
    total_remaining: int = 0
    retirement_eligible: int = 0
    unmatched_usage: int = 0


class LicenseSummary(BaseModel):
    """Short summary of one employee."""

    employee_id: str
    employee_name: Optional[str] = None
    leave_type: Optional[str] = None
    status: Optional[str] = None
    department: Optional[str] = None
    days_remaining: int
    urgency: UrgencyLevel
    message: str
    retirement_eligible: Optional[bool] = None


class NormalizationStats(BaseModel):
    """How much a set of lotação names collapses under normalization."""

    total: int = 0
    unique: int = 0
    duplicates: int = 0
    savings_percent: int = 0
