"""
Text-completion backends behind a single ``complete`` capability.

Each adapter is bound to one backend and one credential for the lifetime of
a batch. Selection goes through ``ADAPTER_REGISTRY``, keyed by backend name.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI

# Handle both package imports and standalone imports
try:
    from ...config import Settings, get_settings
    from ...models import BackendName
except ImportError:
    from config import Settings, get_settings
    from models import BackendName

from .exceptions import BackendError, InvalidBatchInputError, UnsupportedBackendError

logger = logging.getLogger(__name__)


# =============================================================================
# Adapter Interface
# =============================================================================


class ProviderAdapter(ABC):
    """
    Uniform interface over interchangeable text-completion backends.

    Subclasses implement ``_create_client`` and ``_generate``; ``complete``
    wraps every failure into ``BackendError``. No retries and no caching:
    one outbound call per ``complete``.
    """

    backend: BackendName

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        """
        Initialize the adapter.

        Args:
            api_key: Credential for the backend.
            model: Model identifier to request.
            timeout: Per-request timeout in seconds.
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: Any = None

    @classmethod
    def from_settings(cls, api_key: str, settings: Settings) -> "ProviderAdapter":
        return cls(
            api_key=api_key,
            model=getattr(settings, f"{cls.backend.value}_model"),
            timeout=settings.request_timeout_seconds,
        )

    @property
    def client(self) -> Any:
        """Lazy-load the SDK client."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    @abstractmethod
    def _create_client(self) -> Any:
        """Build the backend SDK client."""

    @abstractmethod
    async def _generate(self, system_instruction: str, user_content: str) -> str | None:
        """Issue one completion request and return the generated text."""

    async def complete(self, system_instruction: str, user_content: str) -> str:
        """
        Generate text for an instruction and a piece of user content.

        Args:
            system_instruction: Instruction the model should follow.
            user_content: Content the instruction applies to.

        Returns:
            The generated text.

        Raises:
            ValueError: If either argument is empty.
            BackendError: On network, authentication, or response failures.
        """
        if not system_instruction or not system_instruction.strip():
            raise ValueError("system_instruction must not be empty")
        if not user_content or not user_content.strip():
            raise ValueError("user_content must not be empty")

        logger.info(
            "Calling %s (model=%s, %d chars of content)",
            self.backend.value,
            self.model,
            len(user_content),
        )
        try:
            text = await self._generate(system_instruction, user_content)
        except BackendError:
            raise
        except Exception as e:
            logger.warning("%s request failed: %s", self.backend.value, e)
            raise BackendError(
                f"{self.backend.value} request failed: {e}",
                backend=self.backend.value,
            ) from e

        if not text or not text.strip():
            raise BackendError(
                f"Empty response from {self.backend.value}",
                backend=self.backend.value,
            )
        return text

    async def aclose(self) -> None:
        """Release the SDK client, if one was created."""
        if self._client is not None:
            client, self._client = self._client, None
            await self._close_client(client)

    async def _close_client(self, client: Any) -> None:
        pass


# =============================================================================
# Backend Variants
# =============================================================================


class GeminiAdapter(ProviderAdapter):
    """Google Gemini through the google-genai async client."""

    backend = BackendName.GEMINI

    def _create_client(self) -> genai.Client:
        return genai.Client(
            api_key=self.api_key,
            http_options=genai_types.HttpOptions(timeout=int(self.timeout * 1000)),
        )

    async def _generate(self, system_instruction: str, user_content: str) -> str | None:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_content,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_instruction,
            ),
        )
        return response.text

    async def _close_client(self, client: genai.Client) -> None:
        await client.aio.aclose()


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions; also the base for OpenAI-compatible vendors."""

    backend = BackendName.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        base_url: str | None = None,
    ):
        super().__init__(api_key, model, timeout)
        self.base_url = base_url

    @classmethod
    def from_settings(cls, api_key: str, settings: Settings) -> "OpenAIAdapter":
        return cls(
            api_key=api_key,
            model=getattr(settings, f"{cls.backend.value}_model"),
            timeout=settings.request_timeout_seconds,
            base_url=getattr(settings, f"{cls.backend.value}_base_url", None),
        )

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        )

    async def _generate(self, system_instruction: str, user_content: str) -> str | None:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_content},
            ],
        )
        return response.choices[0].message.content

    async def _close_client(self, client: AsyncOpenAI) -> None:
        await client.close()


class GrokAdapter(OpenAIAdapter):
    """xAI Grok (OpenAI-compatible API)."""

    backend = BackendName.GROK


class DeepSeekAdapter(OpenAIAdapter):
    """DeepSeek (OpenAI-compatible API)."""

    backend = BackendName.DEEPSEEK


class KimiAdapter(OpenAIAdapter):
    """Moonshot Kimi (OpenAI-compatible API)."""

    backend = BackendName.KIMI


class ClaudeAdapter(ProviderAdapter):
    """Anthropic Claude through the messages API."""

    backend = BackendName.CLAUDE

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        max_tokens: int = 4096,
    ):
        super().__init__(api_key, model, timeout)
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, api_key: str, settings: Settings) -> "ClaudeAdapter":
        return cls(
            api_key=api_key,
            model=settings.claude_model,
            timeout=settings.request_timeout_seconds,
            max_tokens=settings.claude_max_tokens,
        )

    def _create_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    async def _generate(self, system_instruction: str, user_content: str) -> str | None:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_instruction,
            messages=[{"role": "user", "content": user_content}],
        )
        return "".join(
            block.text for block in response.content if block.type == "text"
        )

    async def _close_client(self, client: AsyncAnthropic) -> None:
        await client.close()


# =============================================================================
# Registry
# =============================================================================

ADAPTER_REGISTRY: dict[BackendName, type[ProviderAdapter]] = {
    BackendName.GEMINI: GeminiAdapter,
    BackendName.OPENAI: OpenAIAdapter,
    BackendName.GROK: GrokAdapter,
    BackendName.DEEPSEEK: DeepSeekAdapter,
    BackendName.CLAUDE: ClaudeAdapter,
    BackendName.KIMI: KimiAdapter,
}


def resolve_backend(backend: str | BackendName) -> BackendName:
    """
    Map a backend selector onto the closed set of known backends.

    Raises:
        UnsupportedBackendError: If the selector is unknown.
    """
    if isinstance(backend, BackendName):
        return backend
    try:
        return BackendName((backend or "").strip().lower())
    except ValueError as e:
        raise UnsupportedBackendError(f"Unsupported LLM backend: {backend}") from e


def create_adapter(
    backend: str | BackendName,
    api_key: str | None,
    settings: Settings | None = None,
) -> ProviderAdapter:
    """
    Build the adapter for one batch.

    Args:
        backend: Backend selector (e.g. "gemini", "claude").
        api_key: Credential for that backend.
        settings: Application settings; loaded from the environment if None.

    Returns:
        A fresh adapter bound to the backend and credential.

    Raises:
        UnsupportedBackendError: If the backend is unknown.
        InvalidBatchInputError: If no credential is supplied.
    """
    if not api_key or not api_key.strip():
        raise InvalidBatchInputError("API key is required")
    name = resolve_backend(backend)

    settings = settings or get_settings()
    adapter = ADAPTER_REGISTRY[name].from_settings(api_key.strip(), settings)
    logger.info("Created %s adapter (model=%s)", name.value, adapter.model)
    return adapter
