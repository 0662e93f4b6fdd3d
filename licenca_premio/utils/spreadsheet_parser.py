"""Parsing utilities for licença-prêmio spreadsheet exports."""

import csv
import io
import logging
import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import openpyxl

logger = logging.getLogger(__name__)


# Day zero of the 1900 spreadsheet date system (serial 0)
SPREADSHEET_EPOCH = date(1899, 12, 30)

# Largest serial a spreadsheet can represent (9999-12-31)
MAX_SPREADSHEET_SERIAL = 2958465

EMPTY_DATE_MARKERS = {"", "--", "-", "00/00/0000", "1899-12-30", "1899/12/30", "30/12/1899"}

# Canonical record fields and the column name variations seen in the sheets.
# Variations are compared after normalize_column_name().
COLUMN_NAME_MAPPINGS: Dict[str, List[str]] = {
    "employee_id": ["matricula", "mat", "matricula siape", "siape", "id servidor", "employee_id"],
    "employee_name": ["nome", "servidor", "nome servidor", "nome do servidor", "funcionario", "colaborador", "nome completo"],
    "job_title": ["cargo", "cargo efetivo", "funcao", "titulo do cargo"],
    "department_name_raw": ["lotacao", "unidade", "setor", "orgao", "lotacao atual"],
    "admission_date": ["admissao", "data admissao", "data de admissao", "dt admissao"],
    "birth_date": ["nascimento", "data nascimento", "data de nascimento", "dt nascimento", "data nasc"],
    "sex": ["sexo", "genero"],
    "acquisition_start": ["aquisitivo inicio", "inicio aquisitivo", "aquisitivo de", "periodo aquisitivo inicio", "inicio do aquisitivo"],
    "acquisition_end": ["aquisitivo fim", "fim aquisitivo", "aquisitivo ate", "periodo aquisitivo fim", "fim do aquisitivo"],
    "days_taken": ["gozo", "dias gozados", "gozados", "dias usufruidos", "dias"],
    "days_remaining_reported": ["restando", "saldo", "dias restantes", "dias restando", "saldo dias"],
    "days_earned_override": ["direito", "dias direito", "dias adquiridos"],
    "leave_type": ["tipo", "tipo licenca", "tipo de licenca"],
    "status": ["status", "situacao"],
    "leave_start": ["a partir", "a parte", "inicio gozo", "inicio", "data inicio"],
    "leave_end": ["termino", "fim gozo", "fim", "data fim", "data termino"],
}


def strip_accents(text: str) -> str:
    """Remove diacritics from a string."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_column_name(name: Any) -> str:
    """Normalize a column name for matching (case, accents, separators)."""
    text = strip_accents(str(name or "")).lower().strip()
    text = re.sub(r"[^a-z0-9]+", " ", text)
    return re.sub(r"\s+", " ", text).strip()


_NORMALIZED_SYNONYMS: Dict[str, str] = {
    normalize_column_name(variation): field_name
    for field_name, variations in COLUMN_NAME_MAPPINGS.items()
    for variation in variations + [field_name]
}


def match_column(name: Any) -> Optional[str]:
    """Return the canonical field for a column name, or None."""
    return _NORMALIZED_SYNONYMS.get(normalize_column_name(name))


def suggest_field_mapping(columns: List[str]) -> Dict[str, str]:
    """
    Suggest mappings from sheet columns to canonical record fields.

    The first column matching a field wins; later duplicates are ignored.
    """
    mappings: Dict[str, str] = {}
    taken = set()

    for column in columns:
        field_name = match_column(column)
        if field_name and field_name not in taken:
            mappings[column] = field_name
            taken.add(field_name)

    return mappings


def _from_serial(serial: float) -> Tuple[Optional[date], Optional[str]]:
    if math.isnan(serial):
        return None, None
    if serial == 0:
        return None, None
    if serial < 0 or serial > MAX_SPREADSHEET_SERIAL:
        return None, f"Spreadsheet serial out of range: {serial}"
    return SPREADSHEET_EPOCH + timedelta(days=int(serial)), None


def parse_date(value: Any) -> Tuple[Optional[date], Optional[str]]:
    """
    Parse a spreadsheet date value.

    Supports native dates, spreadsheet serial numbers, DD/MM/YYYY,
    DD-MM-YYYY and ISO (YYYY-MM-DD, optionally followed by a time).
    Empty markers yield (None, None); unparsable values yield
    (None, error message).
    """
    if value is None:
        return None, None

    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return (None, None) if value == SPREADSHEET_EPOCH else (value, None)

    if isinstance(value, bool):
        return None, f"Could not parse date: {value}"
    if isinstance(value, (int, float)):
        return _from_serial(value)

    text = str(value).strip()
    if text in EMPTY_DATE_MARKERS:
        return None, None

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_serial(float(text))

    # Drop a trailing time part ("2022-01-01T00:00:00", "01/01/2022 00:00")
    text = re.split(r"[T ]", text, maxsplit=1)[0]

    formats = [
        "%d/%m/%Y",
        "%Y-%m-%d",
        "%d-%m-%Y",
        "%Y/%m/%d",
        "%d.%m.%Y",
        "%d/%m/%y",
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if parsed == SPREADSHEET_EPOCH:
            return None, None
        return parsed, None

    return None, f"Could not parse date: {value}. Expected format: DD/MM/YYYY"


def parse_integer(value: Any) -> Tuple[Optional[int], Optional[str]]:
    """
    Parse a day count.

    Blank values yield (None, None). Text such as "30 dias" yields the
    first integer found; text without digits yields (None, error message).
    """
    if value is None or isinstance(value, bool):
        return None, None

    if isinstance(value, int):
        return value, None
    if isinstance(value, float):
        if math.isnan(value):  # empty numeric cell from spreadsheet readers
            return None, None
        if not math.isfinite(value):
            return None, f"Invalid integer value: {value}"
        return int(value), None

    text = str(value).strip()
    if not text:
        return None, None

    try:
        return int(text), None
    except ValueError:
        pass

    match = re.search(r"-?\d+", text)
    if match:
        return int(match.group(0)), None

    return None, f"Invalid integer value: {value}"


def detect_delimiter(sample: str) -> str:
    """
    Detect the delimiter used in a CSV file.

    Checks for comma, semicolon, tab, and pipe delimiters.
    """
    delimiters = [",", ";", "\t", "|"]
    counts = {d: sample.count(d) for d in delimiters}

    # Return delimiter with highest count, default to comma
    max_delimiter = max(counts, key=counts.get)
    if counts[max_delimiter] > 0:
        return max_delimiter
    return ","


def parse_csv_content(
    content: Union[bytes, str],
    delimiter: Optional[str] = None,
) -> List[Dict[str, str]]:
    """
    Decode CSV content into raw row mappings keyed by the original headers.

    Fully empty lines are skipped. Values are returned untouched; the
    record normalizer owns their interpretation.
    """
    if isinstance(content, bytes):
        try:
            text_content = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            # Sheets exported on Windows are usually latin-1
            text_content = content.decode("latin-1")
    else:
        text_content = content

    first_line = text_content.splitlines()[0] if text_content.strip() else ""
    if not delimiter or delimiter not in [",", ";", "\t", "|"]:
        delimiter = detect_delimiter(first_line)

    reader = csv.DictReader(io.StringIO(text_content), delimiter=delimiter)

    rows: List[Dict[str, str]] = []
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        rows.append({key: value for key, value in row.items() if key is not None})

    logger.info(f"Parsed {len(rows)} rows with delimiter {delimiter!r}")
    return rows


def load_csv_file(path: Union[str, Path]) -> List[Dict[str, str]]:
    """Read and decode a CSV export from disk."""
    return parse_csv_content(Path(path).read_bytes())


def parse_xlsx_content(content: bytes, sheet_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Read the first (or named) worksheet of an XLSX workbook.

    The first row holds the headers. Cells keep their native types, so
    dates arrive as ``datetime`` and day counts as numbers.
    """
    workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook[sheet_name] if sheet_name else workbook.worksheets[0]
        row_iter = sheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            return []

        headers = [str(h).strip() if h is not None else None for h in header_row]

        rows: List[Dict[str, Any]] = []
        for values in row_iter:
            if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            rows.append({
                header: value
                for header, value in zip(headers, values)
                if header
            })
    finally:
        workbook.close()

    logger.info(f"Parsed {len(rows)} rows from worksheet {sheet.title!r}")
    return rows


def load_spreadsheet_file(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a CSV or XLSX export from disk, choosing the reader by suffix."""
    path = Path(path)
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        return parse_xlsx_content(path.read_bytes())
    return load_csv_file(path)
