"""Tests for spreadsheet parsing utilities."""

from datetime import date, datetime

import openpyxl
import pytest

from licenca_premio.utils.spreadsheet_parser import (
    detect_delimiter,
    load_csv_file,
    load_spreadsheet_file,
    match_column,
    normalize_column_name,
    parse_csv_content,
    parse_date,
    parse_integer,
    parse_xlsx_content,
    suggest_field_mapping,
)


# =============================================================================
# Column Mapping Tests
# =============================================================================

class TestColumnMapping:
    """Test cases for column name matching."""

    def test_normalize_column_name_strips_accents_and_separators(self):
        """Test that case, accents and punctuation are ignored."""
        assert normalize_column_name("  LOTAÇÃO ") == "lotacao"
        assert normalize_column_name("Início do Aquisitivo") == "inicio do aquisitivo"
        assert normalize_column_name("DATA_NASC.") == "data nasc"

    @pytest.mark.parametrize("column,expected", [
        ("MATRÍCULA", "employee_id"),
        ("Nome do Servidor", "employee_name"),
        ("LOTAÇÃO", "department_name_raw"),
        ("GOZO", "days_taken"),
        ("RESTANDO", "days_remaining_reported"),
        ("A PARTIR", "leave_start"),
        ("TÉRMINO", "leave_end"),
        ("employee_id", "employee_id"),
    ])
    def test_match_column(self, column, expected):
        """Test that Portuguese header variants resolve to canonical fields."""
        assert match_column(column) == expected

    def test_match_column_unknown(self):
        """Test that unknown headers are not mapped."""
        assert match_column("observações") is None
        assert match_column(None) is None

    def test_suggest_field_mapping_first_column_wins(self):
        """Test that only the first column mapped to a field is kept."""
        mappings = suggest_field_mapping(["Matrícula", "SIAPE", "Nome", "Observação"])

        assert mappings == {"Matrícula": "employee_id", "Nome": "employee_name"}


# =============================================================================
# Date Parsing Tests
# =============================================================================

class TestParseDate:
    """Test cases for date parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("15/03/2022", date(2022, 3, 15)),
        ("2022-03-15", date(2022, 3, 15)),
        ("2022-03-15T00:00:00", date(2022, 3, 15)),
        ("15-03-2022", date(2022, 3, 15)),
        ("15/03/2022 10:30", date(2022, 3, 15)),
        (datetime(2022, 3, 15, 8, 0), date(2022, 3, 15)),
        (date(2022, 3, 15), date(2022, 3, 15)),
        (44635, date(2022, 3, 15)),
        ("44635", date(2022, 3, 15)),
    ])
    def test_parse_supported_formats(self, value, expected):
        """Test that every supported representation parses."""
        parsed, error = parse_date(value)

        assert error is None
        assert parsed == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "1899-12-30", "30/12/1899", 0, date(1899, 12, 30), float("nan")])
    def test_empty_markers_are_null(self, value):
        """Test that empty markers, including the epoch date, yield None without error."""
        assert parse_date(value) == (None, None)

    def test_unparsable_date_reports_error(self):
        """Test that garbage yields an error message."""
        parsed, error = parse_date("não informado")

        assert parsed is None
        assert "Could not parse date" in error

    def test_serial_out_of_range(self):
        """Test that negative serials are rejected."""
        parsed, error = parse_date(-5)

        assert parsed is None
        assert error is not None

    def test_infinite_serial_out_of_range(self):
        parsed, error = parse_date(float("inf"))

        assert parsed is None
        assert "out of range" in error


# =============================================================================
# Integer Parsing Tests
# =============================================================================

class TestParseInteger:
    """Test cases for day count parsing."""

    @pytest.mark.parametrize("value,expected", [
        (30, 30),
        (30.0, 30),
        ("45", 45),
        (" 45 ", 45),
        ("30 dias", 30),
        ("-10", -10),
    ])
    def test_parse_values(self, value, expected):
        assert parse_integer(value) == (expected, None)

    @pytest.mark.parametrize("value", [None, "", "   ", float("nan")])
    def test_blank_values(self, value):
        """Test that blanks are null without error."""
        assert parse_integer(value) == (None, None)

    def test_non_numeric_text(self):
        """Test that text without digits reports an error."""
        parsed, error = parse_integer("trinta")

        assert parsed is None
        assert "Invalid integer value" in error

    @pytest.mark.parametrize("value", [float("inf"), float("-inf")])
    def test_infinite_values_report_error(self, value):
        """Test that infinite floats are rejected instead of raising."""
        parsed, error = parse_integer(value)

        assert parsed is None
        assert "Invalid integer value" in error


# =============================================================================
# CSV Tests
# =============================================================================

class TestCSVContent:
    """Test cases for CSV decoding."""

    def test_detect_delimiter(self):
        assert detect_delimiter("MATRICULA;NOME;LOTACAO") == ";"
        assert detect_delimiter("MATRICULA,NOME,LOTACAO") == ","
        assert detect_delimiter("MATRICULA") == ","

    def test_parse_semicolon_csv(self):
        """Test that semicolon exports decode into row mappings."""
        content = "MATRÍCULA;NOME;GOZO\n123;Maria;10\n456;João;0\n".encode("utf-8")

        rows = parse_csv_content(content)

        assert rows == [
            {"MATRÍCULA": "123", "NOME": "Maria", "GOZO": "10"},
            {"MATRÍCULA": "456", "NOME": "João", "GOZO": "0"},
        ]

    def test_parse_latin1_csv(self):
        """Test that latin-1 exports are decoded."""
        content = "NOME;LOTAÇÃO\nJosé;CEAC ARACAJU\n".encode("latin-1")

        rows = parse_csv_content(content)

        assert rows == [{"NOME": "José", "LOTAÇÃO": "CEAC ARACAJU"}]

    def test_skips_blank_rows(self):
        """Test that fully empty rows are skipped."""
        content = "NOME,GOZO\nMaria,10\n,\n\nJoão,5\n"

        rows = parse_csv_content(content)

        assert [r["NOME"] for r in rows] == ["Maria", "João"]

    def test_empty_content(self):
        assert parse_csv_content(b"") == []

    def test_load_csv_file(self, tmp_path):
        """Test reading an export from disk."""
        path = tmp_path / "licencas.csv"
        path.write_bytes("NOME;GOZO\nMaria;10\n".encode("utf-8-sig"))

        assert load_csv_file(path) == [{"NOME": "Maria", "GOZO": "10"}]


# =============================================================================
# XLSX Tests
# =============================================================================

def _write_workbook(rows, tmp_path):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    path = tmp_path / "licencas.xlsx"
    workbook.save(path)
    return path


class TestXLSXContent:
    """Test cases for workbook decoding."""

    def test_parse_xlsx_keeps_native_values(self, tmp_path):
        """Test that dates and numbers keep their cell types."""
        path = _write_workbook(
            [
                ["MATRÍCULA", "NOME", "AQUISITIVO INÍCIO", "GOZO"],
                ["123", "Maria", datetime(2020, 1, 1), 30],
            ],
            tmp_path,
        )

        rows = parse_xlsx_content(path.read_bytes())

        assert len(rows) == 1
        assert rows[0]["NOME"] == "Maria"
        assert rows[0]["GOZO"] == 30
        assert parse_date(rows[0]["AQUISITIVO INÍCIO"]) == (date(2020, 1, 1), None)

    def test_parse_xlsx_skips_blank_rows(self, tmp_path):
        path = _write_workbook(
            [["NOME", "GOZO"], ["Maria", 10], [None, None], ["João", 5]],
            tmp_path,
        )

        rows = parse_xlsx_content(path.read_bytes())

        assert [r["NOME"] for r in rows] == ["Maria", "João"]

    def test_load_spreadsheet_file_dispatches_on_suffix(self, tmp_path):
        """Test that .xlsx files use the workbook reader and others the CSV reader."""
        xlsx_path = _write_workbook([["NOME", "GOZO"], ["Maria", 10]], tmp_path)
        csv_path = tmp_path / "licencas.csv"
        csv_path.write_text("NOME;GOZO\nMaria;10\n", encoding="utf-8")

        assert load_spreadsheet_file(xlsx_path) == [{"NOME": "Maria", "GOZO": 10}]
        assert load_spreadsheet_file(csv_path) == [{"NOME": "Maria", "GOZO": "10"}]
