"""Conversion of raw spreadsheet rows into canonical leave records."""

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from licenca_premio.schemas.leave_records import FieldDiagnostic, RawLeaveRecord, Sex
from licenca_premio.utils.spreadsheet_parser import (
    match_column,
    parse_date,
    parse_integer,
    strip_accents,
)

logger = logging.getLogger(__name__)


# Canonical fields and their expected types
RECORD_FIELDS: Dict[str, str] = {
    "employee_id": "identifier",
    "employee_name": "string",
    "job_title": "string",
    "department_name_raw": "string",
    "admission_date": "date",
    "birth_date": "date",
    "sex": "sex",
    "acquisition_start": "date",
    "acquisition_end": "date",
    "days_taken": "days",
    "days_remaining_reported": "optional_days",
    "days_earned_override": "optional_days",
    "leave_type": "string",
    "status": "string",
    "leave_start": "date",
    "leave_end": "date",
}

SEX_VALUES = {
    "M": Sex.MALE,
    "MASC": Sex.MALE,
    "MASCULINO": Sex.MALE,
    "F": Sex.FEMALE,
    "FEM": Sex.FEMALE,
    "FEMININO": Sex.FEMALE,
}


def _clean_string(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = " ".join(str(value).split())
    return text or None


def _clean_identifier(value: Any) -> Optional[str]:
    # Spreadsheet readers hand numeric ids back as floats ("12345.0")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _clean_string(value)


class RecordNormalizer:
    """
    Maps loosely-shaped spreadsheet rows onto ``RawLeaveRecord``.

    The synonym table in ``spreadsheet_parser`` is the only contract with
    the sheet layout. A single bad cell never fails the row: it degrades to
    null (or 0 for day counts) and is reported in ``diagnostics``.
    """

    def normalize(self, raw_row: Mapping[str, Any], row_number: Optional[int] = None) -> RawLeaveRecord:
        data: Dict[str, Any] = {}
        diagnostics: List[FieldDiagnostic] = []

        for column, value in raw_row.items():
            field_name = match_column(column)
            if field_name is None or field_name in data:
                continue

            converted, diagnostic = self._convert(field_name, value)
            data[field_name] = converted
            if diagnostic is not None:
                diagnostics.append(diagnostic)

        data.setdefault("days_taken", 0)

        start, end = data.get("acquisition_start"), data.get("acquisition_end")
        if start is not None and end is not None and start > end:
            diagnostics.append(FieldDiagnostic(
                field="acquisition_end",
                value=end.isoformat(),
                message=f"Acquisition window ends ({end}) before it starts ({start})",
                code="inverted_window",
            ))

        if diagnostics:
            logger.debug(
                f"Row {row_number}: {len(diagnostics)} field(s) degraded: "
                f"{', '.join(d.field for d in diagnostics)}"
            )

        return RawLeaveRecord(row_number=row_number, diagnostics=diagnostics, **data)

    def normalize_many(self, rows: Iterable[Mapping[str, Any]]) -> List[RawLeaveRecord]:
        """Normalize rows, numbering them from 1."""
        records = [self.normalize(row, row_number=idx) for idx, row in enumerate(rows, start=1)]

        degraded = sum(1 for record in records if record.diagnostics)
        if degraded:
            logger.warning(f"{degraded} of {len(records)} rows have degraded fields")

        return records

    def _convert(self, field_name: str, value: Any):
        field_type = RECORD_FIELDS[field_name]

        if field_type == "string":
            return _clean_string(value), None

        if field_type == "identifier":
            return _clean_identifier(value), None

        if field_type == "date":
            parsed, error_msg = parse_date(value)
            if error_msg:
                return None, FieldDiagnostic(
                    field=field_name,
                    value=str(value),
                    message=error_msg,
                    code="invalid_date",
                )
            return parsed, None

        if field_type in ("days", "optional_days"):
            parsed, error_msg = parse_integer(value)
            default = 0 if field_type == "days" else None
            if error_msg:
                return default, FieldDiagnostic(
                    field=field_name,
                    value=str(value),
                    message=error_msg,
                    code="invalid_number",
                )
            if parsed is None:
                return default, None
            # Reported balances are kept as stated, even when negative
            if parsed < 0 and field_name != "days_remaining_reported":
                return default, FieldDiagnostic(
                    field=field_name,
                    value=str(value),
                    message=f"Negative day count: {value}",
                    code="invalid_number",
                )
            return parsed, None

        if field_type == "sex":
            text = _clean_string(value)
            if text is None:
                return None, None
            sex = SEX_VALUES.get(strip_accents(text).upper())
            if sex is None:
                return None, FieldDiagnostic(
                    field=field_name,
                    value=text,
                    message=f"Unknown sex value: {text}",
                    code="unknown_sex",
                )
            return sex, None

        return value, None
