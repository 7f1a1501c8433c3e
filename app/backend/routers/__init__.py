"""
Routers package for FastAPI endpoints.

Organized by domain:
- extraction: Batch extraction and single-document retry endpoints
"""

from . import extraction

__all__ = ["extraction"]
