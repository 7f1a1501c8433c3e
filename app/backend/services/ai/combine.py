"""
Reconciliation of per-document CSV tables into one combined table.

Two strategies live here:
- TableCombiner: one extra backend call that merges every table (batch path).
- merge_tables: a local, deterministic column-union merge (retry path).
"""

import csv
import io
import logging

from pydantic import BaseModel, Field

# Handle both package imports and standalone imports
try:
    from ...models import FILENAME_COLUMN, CombinedTable, ExtractionOutcome
except ImportError:
    from models import FILENAME_COLUMN, CombinedTable, ExtractionOutcome

from .exceptions import AIServiceError, CombinationError
from .providers import ProviderAdapter
from .sanitize import sanitize_csv

logger = logging.getLogger(__name__)


# =============================================================================
# Combination System Prompt
# =============================================================================

COMBINE_SYSTEM_PROMPT = """You are a CSV data assistant. You will be given multiple CSVs, each extracted from a different PDF file. Each CSV is preceded by a line of the form "Filename: <name>".

Combine all the CSVs into a single CSV table:
1. Add a new column called 'filename' as the first column, and for each row fill it with the file the row came from.
2. Use the union of all column names from every CSV as the header.
3. The header row must appear exactly once, at the top.
4. If a CSV lacks one of the columns, leave that cell blank for its rows.
5. Output only the final combined CSV, nothing else: no explanations, no markdown."""


class CombinationResult(BaseModel):
    """Combined table plus the reason it is empty, if combination failed."""

    table: CombinedTable = Field(default_factory=CombinedTable)
    error: str | None = None


# =============================================================================
# CSV Helpers
# =============================================================================


def _read_rows(text: str) -> list[list[str]]:
    """Parse CSV text into stripped rows, dropping blank lines."""
    rows = []
    for row in csv.reader(io.StringIO(text)):
        cells = [cell.strip() for cell in row]
        if any(cells):
            rows.append(cells)
    return rows


def _is_header_row(cells: list[str], header: list[str]) -> bool:
    return [c.lower() for c in cells] == [h.lower() for h in header]


def _check_header(header: list[str]) -> list[str]:
    """Normalize a combined-table header, raising CombinationError if unusable."""
    if header[0].lower() != FILENAME_COLUMN:
        raise CombinationError(
            f"Combined table must start with a '{FILENAME_COLUMN}' column, got '{header[0]}'"
        )
    header = [FILENAME_COLUMN] + header[1:]
    if not all(header):
        raise CombinationError("Combined table has a blank column name")
    if len(set(header)) != len(header) or any(
        h.lower() == FILENAME_COLUMN for h in header[1:]
    ):
        raise CombinationError("Combined table has duplicate column names")
    return header


def source_columns(tables: list[str]) -> list[str]:
    """Union of the header columns of sanitized tables, in order of first appearance."""
    columns: list[str] = []
    for table in tables:
        rows = _read_rows(table)
        if not rows:
            continue
        for column in rows[0]:
            if column and column.lower() != FILENAME_COLUMN and column not in columns:
                columns.append(column)
    return columns


def build_combine_content(tables: list[tuple[str, str]]) -> str:
    """Tag each sanitized table with its originating filename."""
    return "\n\n".join(f"Filename: {filename}\n{table}" for filename, table in tables)


def parse_combined_csv(text: str) -> CombinedTable:
    """
    Parse a backend-produced combined CSV into a CombinedTable.

    Args:
        text: Sanitized CSV text whose first column should be ``filename``.

    Returns:
        The parsed table.

    Raises:
        CombinationError: If the CSV is empty or malformed.
    """
    rows = _read_rows(text)
    if not rows:
        raise CombinationError("Combined table is empty")

    header = _check_header(rows[0])
    columns = header

    records: list[dict[str, str]] = []
    for cells in rows[1:]:
        # Some models repeat a header between source tables, possibly that
        # table's own narrower header; following rows are keyed by it
        if cells[0].lower() == FILENAME_COLUMN:
            columns = _check_header(cells)
            unknown = [c for c in columns if c not in header]
            if unknown:
                raise CombinationError(
                    f"Repeated header has columns missing from the first header: "
                    f"{', '.join(unknown)}"
                )
            continue
        if len(cells) > len(columns):
            if any(cells[len(columns):]):
                raise CombinationError(
                    f"Row has {len(cells)} cells but header has {len(columns)} columns"
                )
            cells = cells[: len(columns)]
        values = dict(zip(columns, cells))
        records.append({column: values.get(column, "") for column in header})

    return CombinedTable(header=header, rows=records)


def merge_tables(outcomes: list[ExtractionOutcome]) -> CombinedTable:
    """
    Merge successful outcomes locally into one table.

    Columns are unioned in order of first appearance after a leading
    ``filename`` column; cells a source table lacks are left blank. Failed
    outcomes contribute nothing.

    Args:
        outcomes: Per-document outcomes, in submission order.

    Returns:
        The combined table, empty if no outcome contributed any columns.
    """
    header = [FILENAME_COLUMN]
    records: list[dict[str, str]] = []

    for outcome in outcomes:
        if not outcome.succeeded:
            continue
        rows = _read_rows(sanitize_csv(outcome.result))
        if not rows:
            continue

        columns = rows[0]
        for column in columns:
            if column and column.lower() != FILENAME_COLUMN and column not in header:
                header.append(column)

        for cells in rows[1:]:
            if _is_header_row(cells, columns):
                continue
            record = {FILENAME_COLUMN: outcome.filename}
            for column, value in zip(columns, cells):
                if column and column.lower() != FILENAME_COLUMN and column not in record:
                    record[column] = value
            records.append(record)

    if len(header) == 1 and not records:
        return CombinedTable()

    return CombinedTable(
        header=header,
        rows=[{column: record.get(column, "") for column in header} for record in records],
    )


# =============================================================================
# Backend Combination
# =============================================================================


class TableCombiner:
    """
    Reconciles sanitized per-document tables with one extra backend call.

    Combination is best-effort: any failure degrades to an empty table and an
    error message, never an exception.
    """

    def __init__(self, system_prompt: str = COMBINE_SYSTEM_PROMPT):
        self.system_prompt = system_prompt

    async def combine(
        self,
        outcomes: list[ExtractionOutcome],
        adapter: ProviderAdapter,
    ) -> CombinationResult:
        """
        Combine every successful outcome into one table.

        Args:
            outcomes: Per-document outcomes; failed ones are excluded.
            adapter: The adapter already used for extraction.

        Returns:
            CombinationResult with the table, or an empty table and an error.
        """
        tables = [(o.filename, o.result) for o in outcomes if o.succeeded]
        if not tables:
            logger.info("No successful extractions to combine")
            return CombinationResult()

        logger.info("Combining %d table(s) with %s", len(tables), adapter.backend.value)
        try:
            raw = await adapter.complete(self.system_prompt, build_combine_content(tables))
            table = parse_combined_csv(sanitize_csv(raw))
            returned = {column.lower() for column in table.header}
            missing = [
                c for c in source_columns([t for _, t in tables]) if c.lower() not in returned
            ]
            if missing:
                raise CombinationError(
                    f"Combined table is missing source columns: {', '.join(missing)}"
                )
        except AIServiceError as e:
            logger.warning("Combining tables failed: %s", e)
            return CombinationResult(error=f"Failed to combine tables: {e}")
        except Exception as e:
            logger.exception("Unexpected error while combining tables")
            return CombinationResult(error=f"Failed to combine tables: {e}")

        logger.info(
            "Combined table: %d column(s), %d row(s)", len(table.header), len(table.rows)
        )
        return CombinationResult(table=table)
