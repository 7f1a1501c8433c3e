"""
Batch extraction of CSV tables from PDF documents.

Fans every document of a batch out to one text-completion backend,
isolates per-document failures, and hands the sanitized tables to the
TableCombiner once every document has resolved.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

# Handle both package imports and standalone imports
try:
    from ...config import Settings, get_settings
    from ...models import (
        BackendName,
        BatchResult,
        DocumentInput,
        ExtractionJob,
        ExtractionOutcome,
        FailureReason,
    )
    from ..pdf_service import PDFTextService, UnreadableDocumentError, get_pdf_service
except ImportError:
    from config import Settings, get_settings
    from models import (
        BackendName,
        BatchResult,
        DocumentInput,
        ExtractionJob,
        ExtractionOutcome,
        FailureReason,
    )
    from services.pdf_service import PDFTextService, UnreadableDocumentError, get_pdf_service

from .combine import TableCombiner
from .exceptions import BackendError, InvalidBatchInputError, PayloadTooLargeError
from .providers import ProviderAdapter, create_adapter
from .sanitize import sanitize_csv

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str | BackendName, str | None, Settings | None], ProviderAdapter]

FULL_DOCUMENT_SECTION = "Full Paper"


# =============================================================================
# Extraction Prompt
# =============================================================================

EXTRACTION_PROMPT_TEMPLATE = """Role: You are a meticulous and highly accurate data extraction assistant, built to reliably pull specific, structured information out of the text of user-provided PDF documents.

Core Objective: Extract the user-requested information from the document text, format it as CSV, and verify the output against the source text so that every value is factually grounded.

## Columns to Extract:
{fields}

## Extraction Rules:
1. **Strict Adherence**: Use exactly the requested columns, in the requested order, as the CSV header. Do not add extra columns.
2. **One Row per Record**: If the document contains several records (e.g. several studies, line items or people), emit one row per record.
3. **Accuracy Over Guessing**: Only use values stated in the document. DO NOT HALLUCINATE.
4. **Preserve Original Format**: Keep dates, currencies and numbers as they appear in the document.
5. **Quoting**: Quote any value that contains a comma, a quote or a line break, following standard CSV rules.

## Verification:
Before answering, re-check every cell against the document text. If a value is missing, or the verification reveals a discrepancy or low confidence, write NA in that cell instead of guessing.

## Output:
Return only the CSV table (header row followed by data rows). No explanations, no commentary."""


def build_system_instruction(template: str, fields: list[str]) -> str:
    """Fill the requested columns into the extraction instruction template."""
    columns = ", ".join(fields)
    if "{fields}" in template:
        return template.replace("{fields}", columns)
    return f"{template}\n\nColumns to extract: {columns}"


def build_user_content(text: str, fields: list[str], sections: list[str] | None = None) -> str:
    """Build the per-document user message carrying the PDF text."""
    content = (
        f"Here is the extracted PDF text:\n\n{text}\n\n"
        f"Please extract according to these specific data columns: {', '.join(fields)}"
    )
    if sections and FULL_DOCUMENT_SECTION not in sections:
        content += (
            "\nOnly use information from these sections of the document: "
            f"{', '.join(sections)}"
        )
    return content


def normalize_fields(fields: Iterable[str] | None) -> list[str]:
    """Trim field names, drop blanks and duplicates, and keep the caller's order."""
    normalized: list[str] = []
    for field in fields or []:
        name = field.strip()
        if name and name not in normalized:
            normalized.append(name)
    return normalized


# =============================================================================
# Orchestrator
# =============================================================================


class ExtractionOrchestrator:
    """
    Runs one batch of documents through a text-completion backend.

    Every document is an isolated unit of work: its failure becomes a failed
    outcome and never aborts its siblings. Outcomes are index-aligned with
    the submitted documents.
    """

    def __init__(
        self,
        prompt_template: str = EXTRACTION_PROMPT_TEMPLATE,
        text_source: PDFTextService | None = None,
        adapter_factory: AdapterFactory = create_adapter,
        combiner: TableCombiner | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            prompt_template: Extraction instruction; "{fields}" is replaced
                with the requested columns.
            text_source: Reads document text; defaults to the PDF text service.
            adapter_factory: Builds the backend adapter for a batch.
            combiner: Reconciles per-document tables after extraction.
            settings: Application settings; loaded from the environment if None.
        """
        self.prompt_template = prompt_template
        self.text_source = text_source or get_pdf_service()
        self.adapter_factory = adapter_factory
        self.combiner = combiner or TableCombiner()
        self.settings = settings or get_settings()

    def build_jobs(
        self,
        documents: list[DocumentInput],
        fields: Iterable[str] | None,
        sections: list[str] | None = None,
    ) -> list[ExtractionJob]:
        """
        Validate caller input and create one job per document.

        Raises:
            InvalidBatchInputError: If there are no documents or no fields.
            PayloadTooLargeError: If the documents exceed the upload limit.
        """
        if not documents:
            raise InvalidBatchInputError("No files uploaded")

        columns = normalize_fields(fields)
        if not columns:
            raise InvalidBatchInputError("At least one field is required")

        total_bytes = sum(len(d.content) for d in documents)
        if total_bytes > self.settings.max_upload_bytes:
            raise PayloadTooLargeError(
                f"Uploaded files total {total_bytes} bytes, "
                f"limit is {self.settings.max_upload_bytes} bytes"
            )

        return [
            ExtractionJob(
                filename=d.filename,
                content=d.content,
                fields=columns,
                sections=sections or [],
            )
            for d in documents
        ]

    def open_adapter(self, backend: str | BackendName, api_key: str | None) -> ProviderAdapter:
        """Build the single adapter used for a batch."""
        return self.adapter_factory(backend, api_key, self.settings)

    async def extract_batch(
        self,
        documents: list[DocumentInput],
        fields: Iterable[str] | None,
        backend: str | BackendName,
        api_key: str | None,
        sections: list[str] | None = None,
    ) -> BatchResult:
        """
        Extract every document of a batch and combine the results.

        Args:
            documents: Uploaded PDFs, in submission order.
            fields: Requested column names.
            backend: Backend selector.
            api_key: Credential for the backend.
            sections: Optional document sections to restrict extraction to.

        Returns:
            BatchResult with one outcome per document and the combined table.

        Raises:
            InvalidBatchInputError: On caller-input errors (before any backend call).
            UnsupportedBackendError: If the backend selector is unknown.
        """
        jobs = self.build_jobs(documents, fields, sections)
        adapter = self.open_adapter(backend, api_key)
        try:
            outcomes = await self.extract_outcomes(jobs, adapter)
            # Runs only once every per-document call has resolved
            combination = await self.combiner.combine(outcomes, adapter)
        finally:
            await adapter.aclose()

        return BatchResult(
            outcomes=outcomes,
            combined=combination.table,
            combination_error=combination.error,
        )

    async def extract_outcomes(
        self,
        jobs: list[ExtractionJob],
        adapter: ProviderAdapter,
    ) -> list[ExtractionOutcome]:
        """
        Run all jobs concurrently and join them at a single barrier.

        Each task returns an outcome instead of raising, so the result always
        holds exactly one outcome per job, in job order.
        """
        logger.info(
            "Extracting %d document(s) concurrently with %s",
            len(jobs),
            adapter.backend.value,
        )
        outcomes = list(
            await asyncio.gather(*(self._extract_one(job, adapter) for job in jobs))
        )

        succeeded = sum(1 for o in outcomes if o.succeeded)
        logger.info(
            "Extraction finished: %d succeeded, %d failed",
            succeeded,
            len(outcomes) - succeeded,
        )
        return outcomes

    async def _extract_one(
        self,
        job: ExtractionJob,
        adapter: ProviderAdapter,
    ) -> ExtractionOutcome:
        """Extract a single document, converting every failure into an outcome."""
        backend = adapter.backend.value
        try:
            text = await asyncio.to_thread(self.text_source.extract_text, job.content)
            raw = await adapter.complete(
                build_system_instruction(self.prompt_template, job.fields),
                build_user_content(text, job.fields, job.sections),
            )
            table = sanitize_csv(raw)
            if not table:
                logger.warning("No tabular data returned for %s", job.filename)
                return ExtractionOutcome.failed(
                    job.filename,
                    FailureReason.EMPTY_RESULT,
                    f"{backend} returned no tabular data",
                )

            logger.info("Extracted %s (%d chars of CSV)", job.filename, len(table))
            return ExtractionOutcome.success(job.filename, table)

        except UnreadableDocumentError as e:
            logger.warning("Could not read %s: %s", job.filename, e)
            return ExtractionOutcome.failed(
                job.filename,
                FailureReason.UNREADABLE_DOCUMENT,
                f"Could not read PDF: {e}",
            )
        except BackendError as e:
            logger.warning("Extraction failed for %s: %s", job.filename, e)
            return ExtractionOutcome.failed(
                job.filename,
                FailureReason.BACKEND_ERROR,
                f"Failed to extract PDF with {backend}: {e}",
            )
        except Exception:
            logger.exception("Unexpected error extracting %s", job.filename)
            return ExtractionOutcome.failed(
                job.filename,
                FailureReason.INTERNAL_ERROR,
                f"Failed to extract PDF with {backend}",
            )
