"""
Services package for PDF extraction application.

Contains:
- pdf_service: PDF to text conversion
- ai: LLM backends, batch extraction and table combination
"""

from .ai import ExtractionOrchestrator, RetryController
from .pdf_service import PDFTextService

__all__ = ["PDFTextService", "ExtractionOrchestrator", "RetryController"]
