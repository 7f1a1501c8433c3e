"""Tests for combining per-document tables."""

import pytest

from app.backend.models import CombinedTable, ExtractionOutcome, FailureReason
from app.backend.services.ai import (
    COMBINE_SYSTEM_PROMPT,
    BackendError,
    CombinationError,
    TableCombiner,
    merge_tables,
    parse_combined_csv,
)

from fakes import ScriptedAdapter


def _ok(filename: str, table: str) -> ExtractionOutcome:
    return ExtractionOutcome.success(filename, table)


def _failed(filename: str) -> ExtractionOutcome:
    return ExtractionOutcome.failed(filename, FailureReason.UNREADABLE_DOCUMENT, "Could not read PDF")


class TestParseCombinedCsv:
    """Tests for parse_combined_csv."""

    def test_parses_rows_into_records(self):
        table = parse_combined_csv("filename,Name,Date\na.pdf,Alice,2024-01-15\nb.pdf,Bob,")
        assert table.header == ["filename", "Name", "Date"]
        assert table.rows == [
            {"filename": "a.pdf", "Name": "Alice", "Date": "2024-01-15"},
            {"filename": "b.pdf", "Name": "Bob", "Date": ""},
        ]

    def test_filename_column_is_normalized(self):
        table = parse_combined_csv("Filename,Name\na.pdf,Alice")
        assert table.header[0] == "filename"

    def test_repeated_header_rows_are_dropped(self):
        text = "filename,Name\na.pdf,Alice\nfilename,Name\nb.pdf,Bob"
        table = parse_combined_csv(text)
        assert [r["Name"] for r in table.rows] == ["Alice", "Bob"]

    def test_narrower_repeated_header_rekeys_following_rows(self):
        """Test that a source table's own header re-keys the rows after it."""
        text = "filename,Name,Date,Amount\na.pdf,Alice,2024,\nfilename,Name,Amount\nb.pdf,Bob,5"
        table = parse_combined_csv(text)
        assert table.rows == [
            {"filename": "a.pdf", "Name": "Alice", "Date": "2024", "Amount": ""},
            {"filename": "b.pdf", "Name": "Bob", "Date": "", "Amount": "5"},
        ]

    def test_short_rows_are_padded(self):
        table = parse_combined_csv("filename,Name,Amount\na.pdf,Alice")
        assert table.rows == [{"filename": "a.pdf", "Name": "Alice", "Amount": ""}]

    def test_trailing_empty_cells_are_trimmed(self):
        table = parse_combined_csv("filename,Name\na.pdf,Alice,,")
        assert table.rows == [{"filename": "a.pdf", "Name": "Alice"}]

    def test_quoted_values(self):
        table = parse_combined_csv('filename,Vendor\na.pdf,"Acme, Inc."')
        assert table.rows[0]["Vendor"] == "Acme, Inc."

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "\n\n",
            "Name,Date\nAlice,2024-01-15",
            "filename,Name,Name\na.pdf,x,y",
            "filename,,Date\na.pdf,x,y",
            "filename,Name\na.pdf,Alice,unexpected",
            "filename,Name,Filename\na.pdf,x,y",
            "filename,Name\na.pdf,Alice\nfilename,Vendor\nb.pdf,Acme",
        ],
    )
    def test_malformed_tables_rejected(self, text):
        with pytest.raises(CombinationError):
            parse_combined_csv(text)


class TestMergeTables:
    """Tests for the local column-union merge."""

    def test_union_of_columns_in_first_appearance_order(self):
        """Test that missing cells are blank in the merged table."""
        merged = merge_tables([
            _ok("a.pdf", "Name,Date\nAlice,2024-01-15"),
            _ok("b.pdf", "Name,Amount\nBob,$120.00"),
        ])

        assert merged.header == ["filename", "Name", "Date", "Amount"]
        assert merged.rows == [
            {"filename": "a.pdf", "Name": "Alice", "Date": "2024-01-15", "Amount": ""},
            {"filename": "b.pdf", "Name": "Bob", "Date": "", "Amount": "$120.00"},
        ]

    def test_failed_outcomes_contribute_nothing(self):
        merged = merge_tables([_failed("a.pdf"), _ok("b.pdf", "Name\nBob")])
        assert merged.header == ["filename", "Name"]
        assert [r["filename"] for r in merged.rows] == ["b.pdf"]

    def test_nothing_to_merge_gives_empty_table(self):
        assert merge_tables([_failed("a.pdf")]).is_empty
        assert merge_tables([]).is_empty

    def test_source_filename_column_is_replaced(self):
        merged = merge_tables([_ok("a.pdf", "filename,Name\nother.pdf,Alice")])
        assert merged.header == ["filename", "Name"]
        assert merged.rows == [{"filename": "a.pdf", "Name": "Alice"}]

    def test_fenced_results_are_sanitized(self):
        merged = merge_tables([_ok("a.pdf", "```csv\nName\nAlice\n```")])
        assert merged.rows == [{"filename": "a.pdf", "Name": "Alice"}]

    def test_header_only_table_keeps_its_columns(self):
        merged = merge_tables([_ok("a.pdf", "Name,Date")])
        assert merged.header == ["filename", "Name", "Date"]
        assert merged.rows == []

    def test_multiple_rows_per_document(self):
        merged = merge_tables([_ok("a.pdf", "Item\nPen\nInk")])
        assert merged.rows == [
            {"filename": "a.pdf", "Item": "Pen"},
            {"filename": "a.pdf", "Item": "Ink"},
        ]


class TestTableCombiner:
    """Tests for backend-driven table combination."""

    @pytest.mark.asyncio
    async def test_single_call_with_tagged_tables(self):
        """Test that every successful table is sent once, tagged by filename."""
        adapter = ScriptedAdapter(
            combined="```csv\nfilename,Name\na.pdf,Alice\nc.pdf,Carol\n```"
        )
        outcomes = [_ok("a.pdf", "Name\nAlice"), _failed("b.pdf"), _ok("c.pdf", "Name\nCarol")]

        result = await TableCombiner().combine(outcomes, adapter)

        assert result.error is None
        assert result.table.header == ["filename", "Name"]
        assert len(adapter.calls) == 1
        instruction, content = adapter.calls[0]
        assert instruction == COMBINE_SYSTEM_PROMPT
        assert content == "Filename: a.pdf\nName\nAlice\n\nFilename: c.pdf\nName\nCarol"

    @pytest.mark.asyncio
    async def test_no_successful_outcomes_skips_call(self):
        adapter = ScriptedAdapter()

        result = await TableCombiner().combine([_failed("a.pdf")], adapter)

        assert result.table.is_empty
        assert result.error is None
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_backend_failure_degrades(self):
        adapter = ScriptedAdapter(combined=BackendError("quota exceeded", backend="openai"))

        result = await TableCombiner().combine([_ok("a.pdf", "Name\nAlice")], adapter)

        assert result.table.is_empty
        assert result.error == "Failed to combine tables: quota exceeded"

    @pytest.mark.asyncio
    async def test_malformed_combined_table_degrades(self):
        adapter = ScriptedAdapter(combined="Name\nAlice")

        result = await TableCombiner().combine([_ok("a.pdf", "Name\nAlice")], adapter)

        assert result.table.is_empty
        assert "filename" in result.error

    @pytest.mark.asyncio
    async def test_dropped_source_columns_degrade(self):
        """Test that a reply missing a source column is not accepted."""
        adapter = ScriptedAdapter(combined="filename,Name\na.pdf,Alice\nb.pdf,Bob")
        outcomes = [
            _ok("a.pdf", "Name,Date\nAlice,2024-01-15"),
            _ok("b.pdf", "Name,Amount\nBob,$120.00"),
        ]

        result = await TableCombiner().combine(outcomes, adapter)

        assert result.table.is_empty
        assert result.error == "Failed to combine tables: Combined table is missing source columns: Date, Amount"

    @pytest.mark.asyncio
    async def test_column_case_differences_are_accepted(self):
        adapter = ScriptedAdapter(combined="filename,name\na.pdf,Alice")

        result = await TableCombiner().combine([_ok("a.pdf", "Name\nAlice")], adapter)

        assert result.error is None
        assert result.table.header == ["filename", "name"]


class TestCombinedTableCsv:
    """Tests for rendering the combined table."""

    def test_single_header_row(self):
        table = CombinedTable(
            header=["filename", "Name"],
            rows=[{"filename": "a.pdf", "Name": "Alice"}, {"filename": "b.pdf", "Name": "Bob"}],
        )
        assert table.to_csv() == "filename,Name\na.pdf,Alice\nb.pdf,Bob"

    def test_values_are_quoted_when_needed(self):
        table = CombinedTable(
            header=["filename", "Vendor"],
            rows=[{"filename": "a.pdf", "Vendor": 'Acme, "The" Co.'}],
        )
        assert table.to_csv() == 'filename,Vendor\na.pdf,"Acme, ""The"" Co."'

    def test_empty_table_renders_empty_string(self):
        assert CombinedTable().to_csv() == ""
