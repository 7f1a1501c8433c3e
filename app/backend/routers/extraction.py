"""
Router for CSV extraction endpoints.

Handles:
- Batch extraction of multiple PDFs with a combined table
- Retrying a single document of a previous batch
"""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import TypeAdapter, ValidationError

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..models import (
        BackendName,
        BatchExtractionResponse,
        DocumentInput,
        DocumentResult,
        ErrorResponse,
    )
    from ..services.ai import (
        EXTRACTION_PROMPT_TEMPLATE,
        ExtractionOrchestrator,
        InvalidBatchInputError,
        RetryController,
        UnsupportedBackendError,
    )
except ImportError:
    from config import get_settings
    from models import (
        BackendName,
        BatchExtractionResponse,
        DocumentInput,
        DocumentResult,
        ErrorResponse,
    )
    from services.ai import (
        EXTRACTION_PROMPT_TEMPLATE,
        ExtractionOrchestrator,
        InvalidBatchInputError,
        RetryController,
        UnsupportedBackendError,
    )

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extraction"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input or unsupported backend"},
    413: {"model": ErrorResponse, "description": "Uploaded files are too large"},
}

_outcomes_adapter = TypeAdapter(list[DocumentResult])


# =============================================================================
# Dependencies
# =============================================================================


def get_orchestrator() -> ExtractionOrchestrator:
    """Build a fresh orchestrator for each request."""
    settings = get_settings()
    return ExtractionOrchestrator(
        prompt_template=settings.extraction_prompt_template or EXTRACTION_PROMPT_TEMPLATE,
        settings=settings,
    )


def get_retry_controller(
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> RetryController:
    return RetryController(orchestrator)


# =============================================================================
# Form Parsing Helpers
# =============================================================================


def _parse_fields(fields: str | None) -> list[str]:
    """Split the comma-separated field list sent by the frontend."""
    return fields.split(",") if fields else []


def _parse_sections(sections: str | None) -> list[str]:
    """Accept sections as a JSON array or a comma-separated string."""
    if not sections:
        return []
    try:
        value = json.loads(sections)
    except json.JSONDecodeError:
        return [s.strip() for s in sections.split(",") if s.strip()]

    if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
        raise InvalidBatchInputError("sections must be a JSON array of strings")
    return [s.strip() for s in value if s.strip()]


def _parse_outcomes(outcomes: str | None) -> list[DocumentResult]:
    """Parse the results of a previous batch sent back by the client."""
    if not outcomes:
        raise InvalidBatchInputError("Current results are required for a retry")
    try:
        return _outcomes_adapter.validate_json(outcomes)
    except ValidationError as e:
        raise InvalidBatchInputError(f"Invalid results payload: {e}") from e


async def _read_documents(files: list[UploadFile]) -> list[DocumentInput]:
    documents: list[DocumentInput] = []
    for position, file in enumerate(files, start=1):
        try:
            content = await file.read()
        finally:
            await file.close()
        documents.append(
            DocumentInput(
                filename=file.filename or f"document-{position}.pdf",
                content=content,
            )
        )
    return documents


# =============================================================================
# Extraction Endpoints
# =============================================================================


@router.post(
    "/extract-multi-file-data",
    response_model=BatchExtractionResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def extract_multi_file_data(
    files: Annotated[
        list[UploadFile] | None, File(description="PDF files to extract")
    ] = None,
    fields: Annotated[
        str | None, Form(description="Comma-separated column names to extract")
    ] = None,
    llm_model: Annotated[
        str, Form(alias="llmModel", description="Backend to use")
    ] = BackendName.GEMINI.value,
    api_key: Annotated[
        str | None, Form(alias="apiKey", description="Credential for the backend")
    ] = None,
    sections: Annotated[
        str | None, Form(description="Document sections to extract from")
    ] = None,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> BatchExtractionResponse:
    """
    Extract CSV tables from multiple PDFs and combine them.

    Every document is extracted independently; a failed document is reported
    in its own result entry and never fails the request. The combined CSV is
    empty when nothing could be combined.
    """
    documents = await _read_documents(files or [])
    logger.info(
        "Batch extraction request: %d file(s), backend=%s",
        len(documents),
        llm_model,
    )

    try:
        batch = await orchestrator.extract_batch(
            documents,
            _parse_fields(fields),
            llm_model,
            api_key,
            _parse_sections(sections),
        )
    except (InvalidBatchInputError, UnsupportedBackendError):
        raise
    except Exception as e:
        logger.exception("Error extracting multiple PDFs")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to extract multiple PDFs",
        ) from e

    return BatchExtractionResponse.from_batch(batch)


@router.post(
    "/extract-multi-file-data/retry",
    response_model=BatchExtractionResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def retry_file_data(
    file: Annotated[UploadFile | None, File(description="PDF file to re-extract")] = None,
    index: Annotated[
        int | None, Form(description="Position of the file in the previous batch")
    ] = None,
    outcomes: Annotated[
        str | None, Form(description="JSON array of the previous batch results")
    ] = None,
    fields: Annotated[
        str | None, Form(description="Comma-separated column names to extract")
    ] = None,
    llm_model: Annotated[
        str, Form(alias="llmModel", description="Backend to use")
    ] = BackendName.GEMINI.value,
    api_key: Annotated[
        str | None, Form(alias="apiKey", description="Credential for the backend")
    ] = None,
    sections: Annotated[
        str | None, Form(description="Document sections to extract from")
    ] = None,
    retry_controller: RetryController = Depends(get_retry_controller),
) -> BatchExtractionResponse:
    """
    Re-extract one document of a previous batch.

    Only the result at ``index`` is replaced; the combined CSV is rebuilt
    locally from the updated results without another backend call.
    """
    if file is None:
        raise InvalidBatchInputError("No file uploaded")
    if index is None:
        raise InvalidBatchInputError("index is required")

    current = [result.to_outcome() for result in _parse_outcomes(outcomes)]
    document = (await _read_documents([file]))[0]
    logger.info(
        "Retry request: document %d (%s), backend=%s",
        index,
        document.filename,
        llm_model,
    )

    try:
        batch = await retry_controller.retry(
            current,
            index,
            document,
            _parse_fields(fields),
            llm_model,
            api_key,
            _parse_sections(sections),
        )
    except (InvalidBatchInputError, UnsupportedBackendError):
        raise
    except Exception as e:
        logger.exception("Error retrying PDF extraction")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to extract PDF",
        ) from e

    return BatchExtractionResponse.from_batch(batch)
