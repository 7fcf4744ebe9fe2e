"""
LLM Client - text-generation service adapter

Wraps the async OpenAI and Anthropic SDKs behind ``generate(prompt) -> str``
and maps SDK failures onto the service error taxonomy so the central retry
policy can tell transient from permanent failures.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from ideation_system.config.settings import Settings
from ideation_system.exceptions import (
    ConfigurationError,
    ServiceDataError,
    ServicePermanentError,
    ServiceTransientError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
}

SYSTEM_PROMPT = (
    "You are a strategy analyst. Use only the research provided in the prompt. "
    "When asked for structured output, answer with valid JSON only."
)


@runtime_checkable
class TextGenerationService(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


class LLMClient:
    """Unified LLM client for multiple providers"""

    def __init__(self, settings: Optional[Settings] = None, temperature: float = 0.7, max_tokens: int = 4000):
        self.settings = settings or Settings()
        self.provider = self.settings.LLM_PROVIDER
        self.model_name = self.settings.LLM_MODEL or DEFAULT_MODELS.get(self.provider, "unknown")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sdk = None
        self._client = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize the appropriate async SDK client"""
        if self.provider == "openai":
            if not self.settings.OPENAI_API_KEY:
                raise ConfigurationError("OPENAI_API_KEY is required for LLM_PROVIDER=openai")
            try:
                import openai
            except ImportError as e:
                raise ConfigurationError(f"openai SDK not installed: {e}") from e
            self._sdk = openai
            self._client = openai.AsyncOpenAI(
                api_key=self.settings.OPENAI_API_KEY,
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                max_retries=0,
            )
        elif self.provider == "anthropic":
            if not self.settings.ANTHROPIC_API_KEY:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for LLM_PROVIDER=anthropic")
            try:
                import anthropic
            except ImportError as e:
                raise ConfigurationError(f"anthropic SDK not installed: {e}") from e
            self._sdk = anthropic
            self._client = anthropic.AsyncAnthropic(
                api_key=self.settings.ANTHROPIC_API_KEY,
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                max_retries=0,
            )
        else:
            raise ConfigurationError(f"Unsupported LLM provider: {self.provider}")

    async def generate(self, prompt: str) -> str:
        """Generate a completion for ``prompt``."""
        try:
            if self.provider == "openai":
                text = await self._openai_generate(prompt)
            else:
                text = await self._anthropic_generate(prompt)
        except Exception as e:
            raise self._translate(e) from e
        if not text:
            raise ServiceDataError("empty completion", service=self.provider)
        return text

    async def _openai_generate(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def _anthropic_generate(self, prompt: str) -> str:
        message = await self._client.messages.create(
            model=self.model_name,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(getattr(block, "text", "") for block in message.content)

    def _translate(self, e: Exception) -> Exception:
        """Map an SDK exception onto the service error taxonomy."""
        if isinstance(e, (ServiceTransientError, ServicePermanentError, ServiceDataError)):
            return e
        sdk = self._sdk
        if isinstance(e, (sdk.APIConnectionError, sdk.RateLimitError, sdk.InternalServerError)):
            logger.warning(f"{self.provider} transient failure: {e}")
            return ServiceTransientError(str(e), service=self.provider)
        if isinstance(e, sdk.APIStatusError):
            status = getattr(e, "status_code", None)
            if status is not None and (status == 429 or status >= 500):
                return ServiceTransientError(str(e), service=self.provider, status_code=status)
            return ServicePermanentError(str(e), service=self.provider, status_code=status)
        logger.error(f"{self.provider} generation failed: {e}")
        return ServicePermanentError(str(e), service=self.provider)
