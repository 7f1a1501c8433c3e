"""Pytest configuration and fixtures."""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from app.backend.config import Settings
from app.backend.main import app
from app.backend.routers.extraction import get_orchestrator
from app.backend.services.ai import ExtractionOrchestrator

from fakes import FakeTextSource, RecordingFactory, ScriptedAdapter

TABLE_A = "```csv\nName,Date\nAlice,2024-01-15\n```"
TABLE_B = "Name,Amount\nBob,$120.00"


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, independent of any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def scripted_adapter() -> ScriptedAdapter:
    """Adapter with two extractable documents and a combined table."""
    return ScriptedAdapter(
        tables={"doc-a": TABLE_A, "doc-b": TABLE_B},
        combined=(
            "```csv\n"
            "filename,Name,Date,Amount\n"
            "a.pdf,Alice,2024-01-15,\n"
            "b.pdf,Bob,,$120.00\n"
            "```"
        ),
    )


@pytest.fixture
def adapter_factory(scripted_adapter: ScriptedAdapter) -> RecordingFactory:
    return RecordingFactory(scripted_adapter)


@pytest.fixture
def orchestrator(adapter_factory: RecordingFactory, settings: Settings) -> ExtractionOrchestrator:
    """Orchestrator wired to fakes instead of pdfplumber and a real backend."""
    return ExtractionOrchestrator(
        text_source=FakeTextSource(),
        adapter_factory=adapter_factory,
        settings=settings,
    )


@pytest.fixture
def api_client(
    client: TestClient, orchestrator: ExtractionOrchestrator
) -> TestClient:
    """Test client whose endpoints use the fake-wired orchestrator."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return client


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    # Minimal valid PDF structure
    pdf_content = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT
/F1 12 Tf
100 700 Td
(Test) Tj
ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000214 00000 n
trailer
<< /Size 5 /Root 1 0 R >>
startxref
306
%%EOF"""
    return pdf_content


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"
