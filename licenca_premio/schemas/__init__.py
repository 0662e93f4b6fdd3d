"""Pydantic models for leave records and the views derived from them."""

from licenca_premio.schemas.leave_records import (
    AcquisitionPeriod,
    EnrichedEmployeeRecord,
    FieldDiagnostic,
    GroupField,
    LeaveBalance,
    LicenseFilterCriteria,
    LicenseStats,
    LicenseSummary,
    NormalizationStats,
    RawLeaveRecord,
    RetirementAnalysis,
    RetirementOption,
    RetirementRule,
    Sex,
    UnmatchedUsage,
    UrgencyAssessment,
    UrgencyLevel,
)

__all__ = [
    # Enums
    "GroupField",
    "RetirementRule",
    "Sex",
    "UrgencyLevel",
    # Input rows
    "FieldDiagnostic",
    "RawLeaveRecord",
    # Ledger
    "AcquisitionPeriod",
    "LeaveBalance",
    "UnmatchedUsage",
    # Derived
    "EnrichedEmployeeRecord",
    "RetirementAnalysis",
    "RetirementOption",
    "UrgencyAssessment",
    # Queries
    "LicenseFilterCriteria",
    "LicenseStats",
    "LicenseSummary",
    "NormalizationStats",
]
