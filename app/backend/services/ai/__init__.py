"""
AI service package for CSV extraction from document text.

This package provides modular AI functionality split into:
- providers: Interchangeable text-completion backends
- sanitize: Normalization of model output into CSV text
- extraction: Concurrent, failure-isolated batch extraction
- combine: Reconciliation of per-document tables into one table
- retry: Single-document re-extraction with local recombination
"""

from .combine import (
    COMBINE_SYSTEM_PROMPT,
    CombinationResult,
    TableCombiner,
    merge_tables,
    parse_combined_csv,
)
from .exceptions import (
    AIServiceError,
    BackendError,
    CombinationError,
    InvalidBatchInputError,
    PayloadTooLargeError,
    UnsupportedBackendError,
)
from .extraction import (
    EXTRACTION_PROMPT_TEMPLATE,
    ExtractionOrchestrator,
    build_system_instruction,
    build_user_content,
    normalize_fields,
)
from .providers import ADAPTER_REGISTRY, ProviderAdapter, create_adapter, resolve_backend
from .retry import RetryController
from .sanitize import sanitize_csv

__all__ = [
    "ADAPTER_REGISTRY",
    "AIServiceError",
    "BackendError",
    "COMBINE_SYSTEM_PROMPT",
    "CombinationError",
    "CombinationResult",
    "EXTRACTION_PROMPT_TEMPLATE",
    "ExtractionOrchestrator",
    "InvalidBatchInputError",
    "PayloadTooLargeError",
    "ProviderAdapter",
    "RetryController",
    "TableCombiner",
    "UnsupportedBackendError",
    "build_system_instruction",
    "build_user_content",
    "create_adapter",
    "merge_tables",
    "normalize_fields",
    "parse_combined_csv",
    "resolve_backend",
    "sanitize_csv",
]
