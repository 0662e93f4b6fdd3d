"""API endpoints for licença-prêmio balances, urgency and lotação rules."""

from typing import Annotated, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from licenca_premio.schemas.leave_records import (
    EnrichedEmployeeRecord,
    LicenseFilterCriteria,
    LicenseStats,
    LicenseSummary,
    NormalizationStats,
    UrgencyLevel,
)
from licenca_premio.services.license_aggregation_service import LicenseAggregationFacade, build_facade
from licenca_premio.utils.errors import create_not_found_error


# =============================================================================
# Request/Response Models
# =============================================================================

class RecordListResponse(BaseModel):
    """Response wrapper for a list of employee records."""

    data: List[EnrichedEmployeeRecord]
    total: int


class GroupedRecordsResponse(BaseModel):
    """Response wrapper for grouped records."""

    data: Dict[str, List[EnrichedEmployeeRecord]]


class StatsResponse(BaseModel):
    data: LicenseStats


class SummaryResponse(BaseModel):
    data: LicenseSummary


class ReloadResponse(BaseModel):
    data: Dict[str, int]
    message: str = "Data reloaded successfully"


class DuplicatesResponse(BaseModel):
    """Raw lotação spellings grouped under their normalized name."""

    data: Dict[str, List[str]]
    stats: NormalizationStats


class RulesResponse(BaseModel):
    data: Dict[str, str]


class RuleRequest(BaseModel):
    """Override rule for a lotação spelling."""

    original: str = Field(..., min_length=1, description="Spelling to override")
    replacement: str = Field(..., min_length=1, description="Canonical name to use")


# =============================================================================
# Dependency Injection
# =============================================================================

def get_facade(request: Request) -> LicenseAggregationFacade:
    """Get the facade attached to the app, building it on first use."""
    facade = getattr(request.app.state, "facade", None)
    if facade is None:
        facade = request.app.state.facade = build_facade()
    return facade


def get_filter_criteria(
    department: Annotated[Optional[str], Query(description="Lotação (any spelling)")] = None,
    leave_type: Annotated[Optional[str], Query(description="Leave type")] = None,
    status: Annotated[Optional[str], Query(description="Leave status")] = None,
    urgency: Annotated[Optional[UrgencyLevel], Query(description="Urgency level")] = None,
    min_days_remaining: Annotated[Optional[int], Query(description="Minimum days remaining")] = None,
    max_days_remaining: Annotated[Optional[int], Query(description="Maximum days remaining")] = None,
) -> LicenseFilterCriteria:
    """Build filter criteria from query parameters."""
    return LicenseFilterCriteria(
        department=department,
        leave_type=leave_type,
        status=status,
        urgency=urgency,
        min_days_remaining=min_days_remaining,
        max_days_remaining=max_days_remaining,
    )


FacadeDep = Annotated[LicenseAggregationFacade, Depends(get_facade)]
CriteriaDep = Annotated[LicenseFilterCriteria, Depends(get_filter_criteria)]


# =============================================================================
# Router Setup
# =============================================================================

licenses_router = APIRouter(
    prefix="/api/licencas",
    tags=["Licença-Prêmio"],
)


# =============================================================================
# Query Endpoints
# =============================================================================

@licenses_router.get(
    "",
    response_model=RecordListResponse,
    summary="List Employee Records",
    description="List enriched employee records, optionally filtered.",
)
async def list_records(facade: FacadeDep, criteria: CriteriaDep) -> RecordListResponse:
    records = facade.filter(criteria)
    return RecordListResponse(data=records, total=len(records))


@licenses_router.get(
    "/search",
    response_model=RecordListResponse,
    summary="Search Employees",
    description="Case- and accent-insensitive search on name and matrícula.",
)
async def search_records(
    facade: FacadeDep,
    q: Annotated[str, Query(description="Text to search for")] = "",
) -> RecordListResponse:
    records = facade.search(q)
    return RecordListResponse(data=records, total=len(records))


@licenses_router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Aggregate Statistics",
)
async def get_stats(facade: FacadeDep, criteria: CriteriaDep) -> StatsResponse:
    """
    Aggregate statistics over the (filtered) records.

    - Counts by leave type, status, urgency and lotação
    - Urgent (30 days or less) and critical (7 days or less) counts
    - Summed earned, used and remaining days
    """
    if criteria == LicenseFilterCriteria():
        return StatsResponse(data=facade.get_stats())
    return StatsResponse(data=facade.get_stats(criteria))


@licenses_router.get(
    "/group/{field}",
    response_model=GroupedRecordsResponse,
    summary="Group Records",
    description="Group records by department, leave_type, status or urgency.",
)
async def group_records(field: str, facade: FacadeDep, criteria: CriteriaDep) -> GroupedRecordsResponse:
    return GroupedRecordsResponse(data=facade.group_by(field, criteria))


@licenses_router.post(
    "/reload",
    response_model=ReloadResponse,
    summary="Reload Data",
    description="Discard cached results and rebuild from the data source.",
)
async def reload_records(facade: FacadeDep) -> ReloadResponse:
    records = facade.reload()
    return ReloadResponse(data={"total": len(records), "unassigned_rows": len(facade.unassigned_rows)})


# =============================================================================
# Lotação Endpoints
# =============================================================================

@licenses_router.get(
    "/lotacoes/duplicates",
    response_model=DuplicatesResponse,
    summary="Lotação Duplicates",
    description="Lotação names reached by more than one spelling.",
)
async def get_lotacao_duplicates(facade: FacadeDep) -> DuplicatesResponse:
    return DuplicatesResponse(
        data=facade.analyze_lotacao_duplicates(),
        stats=facade.get_lotacao_stats(),
    )


@licenses_router.get(
    "/lotacoes/rules",
    response_model=RulesResponse,
    summary="List Lotação Rules",
)
async def list_lotacao_rules(facade: FacadeDep) -> RulesResponse:
    return RulesResponse(data=facade.lotacao_normalizer.get_custom_rules())


@licenses_router.put(
    "/lotacoes/rules",
    response_model=RulesResponse,
    summary="Add Lotação Rule",
)
async def put_lotacao_rule(body: RuleRequest, facade: FacadeDep) -> RulesResponse:
    facade.add_lotacao_rule(body.original, body.replacement)
    return RulesResponse(data=facade.lotacao_normalizer.get_custom_rules())


@licenses_router.delete(
    "/lotacoes/rules",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove Lotação Rule",
)
async def delete_lotacao_rule(
    facade: FacadeDep,
    original: Annotated[str, Query(min_length=1, description="Spelling whose rule is removed")],
) -> None:
    if not facade.remove_lotacao_rule(original):
        raise create_not_found_error("Lotação rule", original)


# =============================================================================
# Employee Endpoints
# =============================================================================

@licenses_router.get(
    "/{employee_id}/summary",
    response_model=SummaryResponse,
    summary="Employee Summary",
)
async def get_employee_summary(employee_id: str, facade: FacadeDep) -> SummaryResponse:
    summary = facade.get_summary(employee_id)
    if summary is None:
        raise create_not_found_error("Employee", employee_id)
    return SummaryResponse(data=summary)
