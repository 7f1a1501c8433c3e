"""
Re-extraction of a single document within an existing batch result.
"""

import logging
from collections.abc import Iterable

# Handle both package imports and standalone imports
try:
    from ...models import BackendName, BatchResult, DocumentInput, ExtractionOutcome
except ImportError:
    from models import BackendName, BatchResult, DocumentInput, ExtractionOutcome

from .combine import merge_tables
from .exceptions import InvalidBatchInputError
from .extraction import ExtractionOrchestrator

logger = logging.getLogger(__name__)


class RetryController:
    """
    Refreshes one outcome of a batch and recombines the table locally.

    Sibling outcomes are reused as-is; no backend reconciliation call is
    made, the combined table comes from merge_tables.
    """

    def __init__(self, orchestrator: ExtractionOrchestrator):
        self.orchestrator = orchestrator

    async def retry(
        self,
        outcomes: list[ExtractionOutcome],
        index: int,
        document: DocumentInput,
        fields: Iterable[str] | None,
        backend: str | BackendName,
        api_key: str | None,
        sections: list[str] | None = None,
    ) -> BatchResult:
        """
        Re-run extraction for the document at ``index``.

        Args:
            outcomes: Current outcomes of the batch, in submission order.
            index: Position of the document to refresh.
            document: The document to re-extract.
            fields: Requested column names.
            backend: Backend selector.
            api_key: Credential for the backend.
            sections: Optional document sections to restrict extraction to.

        Returns:
            BatchResult where only ``outcomes[index]`` differs from the input.

        Raises:
            InvalidBatchInputError: If the index is out of range or input is invalid.
            UnsupportedBackendError: If the backend selector is unknown.
        """
        if not 0 <= index < len(outcomes):
            raise InvalidBatchInputError(
                f"Document index {index} is out of range for {len(outcomes)} result(s)"
            )

        jobs = self.orchestrator.build_jobs([document], fields, sections)
        adapter = self.orchestrator.open_adapter(backend, api_key)
        try:
            refreshed = (await self.orchestrator.extract_outcomes(jobs, adapter))[0]
        finally:
            await adapter.aclose()

        updated = list(outcomes)
        updated[index] = refreshed
        logger.info(
            "Retried document %d (%s): %s",
            index,
            refreshed.filename,
            "succeeded" if refreshed.succeeded else "failed",
        )
        return BatchResult(outcomes=updated, combined=merge_tables(updated))
