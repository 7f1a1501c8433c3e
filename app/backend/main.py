"""
FastAPI application for PDF-to-CSV extraction service.

Provides endpoints for:
- Extracting CSV tables from multiple PDFs with a selectable LLM backend
- Retrying a single document of a batch
- Health checks
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Handle both package imports (when running as module) and standalone imports (uvicorn main:app)
try:
    from .config import get_settings
    from .models import BackendName, HealthResponse
    from .routers import extraction
    from .services.ai import InvalidBatchInputError, UnsupportedBackendError
    from .services.pdf_service import get_pdf_service
except ImportError:
    import sys
    from pathlib import Path
    # Add parent directory to path for standalone imports
    backend_dir = Path(__file__).parent
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))
    from config import get_settings
    from models import BackendName, HealthResponse
    from routers import extraction
    from services.ai import InvalidBatchInputError, UnsupportedBackendError
    from services.pdf_service import get_pdf_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting PDF Extraction Service...")
    # Initialize services on startup
    get_pdf_service()
    logger.info(
        "Services initialized successfully (backends: %s)",
        ", ".join(b.value for b in BackendName),
    )
    yield
    logger.info("Shutting down PDF Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="PDF Extraction API",
    description="Extract CSV tables from PDF documents using a choice of LLM backends",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # React production (Docker)
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(status="healthy")


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(extraction.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(InvalidBatchInputError)
async def invalid_batch_input_handler(request, exc: InvalidBatchInputError):
    """Handle rejected batch input."""
    logger.info("Rejected request: %s", exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code},
    )


@app.exception_handler(UnsupportedBackendError)
async def unsupported_backend_handler(request, exc: UnsupportedBackendError):
    """Handle unknown backend selectors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": exc.code},
    )

