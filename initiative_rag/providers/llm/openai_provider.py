"""OpenAI LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider` for
grounded answer generation.  Defaults to ``gpt-4o-mini``; a custom
``openai_base_url`` targets any OpenAI-compatible chat endpoint.
"""

from __future__ import annotations

import openai
import structlog

from initiative_rag.config.settings import Settings
from initiative_rag.interfaces.llm_provider import ILLMProvider
from initiative_rag.utils.errors import LLMError, ProviderTimeoutError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by the OpenAI chat completions API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key or "unset",
            # Connect fails fast; the read budget covers a full completion.
            "timeout": openai.Timeout(settings.request_timeout_seconds, connect=5.0),
            "max_retries": 1,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_chat_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        """Generate a chat completion; returns ``""`` when the model sends no content."""
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
                message=f"{self._provider_label} completion timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("openai_empty_completion", model=self._model)
            return ""

        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._provider_label
