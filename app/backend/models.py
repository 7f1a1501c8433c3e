"""
Pydantic models for the PDF extraction pipeline.

Defines strict types for extraction jobs, per-document outcomes,
the combined table, and the HTTP payloads built from them.
"""

import csv
import io
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FILENAME_COLUMN = "filename"


class BackendName(str, Enum):
    """Supported text-completion backends."""

    GEMINI = "gemini"
    OPENAI = "openai"
    GROK = "grok"
    DEEPSEEK = "deepseek"
    CLAUDE = "claude"
    KIMI = "kimi"


class FailureKind(str, Enum):
    """Coarse error kinds carried by failed outcomes."""

    PER_DOCUMENT_EXTRACTION_FAILURE = "per_document_extraction_failure"


class FailureReason(str, Enum):
    """Specific reason a single document could not be extracted."""

    UNREADABLE_DOCUMENT = "unreadable_document"
    BACKEND_ERROR = "backend_error"
    EMPTY_RESULT = "empty_result"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# Pipeline Models
# =============================================================================


class DocumentInput(BaseModel):
    """A single uploaded document as received from the caller."""

    filename: str = Field(..., min_length=1, description="Original filename")
    content: bytes = Field(..., description="Raw PDF bytes")


class ExtractionJob(BaseModel):
    """
    One unit of extraction work.

    Attributes:
        filename: Identifier of the document, unique within a batch only.
        content: Raw document bytes; text is produced from these per job.
        fields: Ordered column names the backend should extract.
        sections: Optional document sections to restrict extraction to.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., min_length=1)
    content: bytes
    fields: list[str] = Field(..., min_length=1)
    sections: list[str] = Field(default_factory=list)


class ExtractionFailure(BaseModel):
    """Failure marker for a single document."""

    kind: FailureKind = FailureKind.PER_DOCUMENT_EXTRACTION_FAILURE
    reason: FailureReason
    message: str = Field(..., description="Human-readable summary")


class ExtractionOutcome(BaseModel):
    """
    Result of one extraction attempt.

    Exactly one of ``result`` (the sanitized CSV body) and ``failure`` is set.
    """

    filename: str
    result: str | None = None
    failure: ExtractionFailure | None = None

    @model_validator(mode="after")
    def check_exactly_one(self) -> "ExtractionOutcome":
        """Ensure an outcome is either a success or a failure, never both."""
        if (self.result is None) == (self.failure is None):
            raise ValueError("Exactly one of result or failure must be set")
        if self.result is not None and not self.result.strip():
            raise ValueError("A successful outcome must carry a non-empty table")
        return self

    @property
    def succeeded(self) -> bool:
        return self.result is not None

    @classmethod
    def success(cls, filename: str, table: str) -> "ExtractionOutcome":
        return cls(filename=filename, result=table)

    @classmethod
    def failed(
        cls, filename: str, reason: FailureReason, message: str
    ) -> "ExtractionOutcome":
        return cls(
            filename=filename,
            failure=ExtractionFailure(reason=reason, message=message),
        )


class CombinedTable(BaseModel):
    """
    Best-effort union of every successful per-document table.

    The header always starts with ``filename`` and has no duplicate names.
    Cells for columns a source table lacked are blank.
    """

    header: list[str] = Field(default_factory=list)
    rows: list[dict[str, str]] = Field(default_factory=list)

    @field_validator("header")
    @classmethod
    def validate_header(cls, v: list[str]) -> list[str]:
        """Ensure the header is unique and led by the filename column."""
        if not v:
            return v
        if v[0] != FILENAME_COLUMN:
            raise ValueError(f"First column must be '{FILENAME_COLUMN}'")
        if len(v) != len(set(v)) or any(h.lower() == FILENAME_COLUMN for h in v[1:]):
            raise ValueError("Column names must be unique")
        return v

    @property
    def is_empty(self) -> bool:
        return not self.header

    def to_csv(self) -> str:
        """Render the table as CSV text with a single header row."""
        if self.is_empty:
            return ""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.header)
        for row in self.rows:
            writer.writerow([row.get(column, "") for column in self.header])
        return buffer.getvalue().rstrip("\n")


class BatchResult(BaseModel):
    """
    Outcome of a whole batch.

    ``outcomes`` is index-aligned with the submitted documents. A non-null
    ``combination_error`` means reconciliation was attempted and failed,
    as opposed to there being nothing to combine.
    """

    outcomes: list[ExtractionOutcome]
    combined: CombinedTable = Field(default_factory=CombinedTable)
    combination_error: str | None = None


# =============================================================================
# API Models
# =============================================================================


class DocumentResult(BaseModel):
    """Per-document entry in an extraction response."""

    filename: str = Field(..., description="Original filename")
    result: str | None = Field(default=None, description="Extracted CSV text")
    error: str | None = Field(default=None, description="Failure summary")
    reason: FailureReason | None = Field(
        default=None,
        description="Machine-readable failure reason",
    )

    @classmethod
    def from_outcome(cls, outcome: ExtractionOutcome) -> "DocumentResult":
        if outcome.failure is not None:
            return cls(
                filename=outcome.filename,
                error=outcome.failure.message,
                reason=outcome.failure.reason,
            )
        return cls(filename=outcome.filename, result=outcome.result)

    def to_outcome(self) -> ExtractionOutcome:
        """Rebuild the pipeline outcome a client sent back for a retry."""
        if self.result and self.result.strip():
            return ExtractionOutcome.success(self.filename, self.result)
        return ExtractionOutcome.failed(
            self.filename,
            self.reason or FailureReason.INTERNAL_ERROR,
            self.error or "No extraction result",
        )


class BatchExtractionResponse(BaseModel):
    """Response model for batch and retry extraction endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    results: list[DocumentResult] = Field(
        ...,
        description="One entry per submitted document, in submission order",
    )
    combined_csv: str = Field(
        default="",
        alias="combinedCsv",
        description="All successful tables merged into one CSV",
    )
    combination_error: str | None = Field(
        default=None,
        alias="combinationError",
        description="Set when the combined table could not be produced",
    )

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "BatchExtractionResponse":
        return cls(
            results=[DocumentResult.from_outcome(o) for o in batch.outcomes],
            combined_csv=batch.combined.to_csv(),
            combination_error=batch.combination_error,
        )


class ErrorResponse(BaseModel):
    """Error payload for rejected requests."""

    detail: str
    code: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
