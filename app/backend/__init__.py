"""
PDF Extraction Backend Application.

A FastAPI service for extracting CSV tables from PDF documents using a
selectable LLM backend (Gemini, OpenAI, Grok, DeepSeek, Claude or Kimi).
"""

__version__ = "1.0.0"
