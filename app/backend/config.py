"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backend models (credentials are supplied per request, never stored here)
    gemini_model: str = "gemini-2.5-flash"
    openai_model: str = "gpt-4o-mini"
    grok_model: str = "grok-3-mini"
    deepseek_model: str = "deepseek-chat"
    claude_model: str = "claude-sonnet-4-5"
    kimi_model: str = "moonshot-v1-8k"

    # OpenAI-compatible endpoints
    grok_base_url: str = "https://api.x.ai/v1"
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    kimi_base_url: str = "https://api.moonshot.cn/v1"

    claude_max_tokens: int = 4096
    request_timeout_seconds: float = 120.0

    # Total size of all files in one request (4.5 MB)
    max_upload_bytes: int = 4_718_592

    # Overrides the built-in extraction instruction; must contain "{fields}"
    extraction_prompt_template: str | None = None

    log_level: str = "INFO"
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the backend directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
