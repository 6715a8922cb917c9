"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint, reusing
the ``openai`` client pointed at the Ollama base URL.  Lets the answer
pipeline run fully offline with no API costs.

Setup: install Ollama, ``ollama pull llama3.1`` and
``ollama pull nomic-embed-text``, then set OLLAMA_BASE_URL.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from initiative_rag.config.settings import Settings
from initiative_rag.interfaces.llm_provider import ILLMProvider
from initiative_rag.utils.errors import LLMError, ProviderTimeoutError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=openai.Timeout(settings.request_timeout_seconds, connect=5.0),
        )
        self._model = settings.ollama_chat_model or "llama3.1"

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        """Generate a text completion via Ollama's OpenAI-compatible API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message="Ollama completion timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("ollama_empty_completion", model=self._model)
            return ""
        logger.info("ollama_completion", model=self._model)
        return content

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_connection(self) -> bool:
        """Check that the Ollama server is running by listing installed models."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
