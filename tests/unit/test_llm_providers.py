"""Unit tests for LLM provider adapters -- OpenAI, Ollama."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from initiative_rag.config.settings import Settings
from initiative_rag.providers.llm.ollama_provider import OllamaLLMProvider
from initiative_rag.providers.llm.openai_provider import OpenAILLMProvider
from initiative_rag.utils.errors import LLMError, ProviderTimeoutError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_chat_model": "",
        "ollama_base_url": "http://localhost:11434",
        "ollama_chat_model": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=42)
    return response


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        assert OpenAILLMProvider(settings).get_provider_name() == "openai"
        custom = OpenAILLMProvider(_settings(openai_base_url="http://llm.local/v1"))
        assert custom.get_provider_name() == "openai-compatible"

    def test_is_available(self, settings: Settings) -> None:
        assert OpenAILLMProvider(settings).is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_chat_response("A park is planned [#1].")
        )

        with patch("initiative_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            result = await provider.complete("system", "user", temperature=0.2, max_tokens=800)

        assert result == "A park is planned [#1]."
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 800

    @pytest.mark.asyncio
    async def test_empty_completion_returns_empty_string(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response(None))
        with patch("initiative_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            assert await OpenAILLMProvider(settings).complete("s", "u") == ""

    @pytest.mark.asyncio
    async def test_complete_error(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError(
                message="Rate limit exceeded",
                request=MagicMock(),
                body=None,
            )
        )

        with patch("initiative_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            with pytest.raises(LLMError, match="Rate limit exceeded"):
                await provider.complete("system", "user")

    @pytest.mark.asyncio
    async def test_complete_timeout(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APITimeoutError(request=httpx.Request("POST", "http://test"))
        )
        with patch("initiative_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(ProviderTimeoutError):
                await OpenAILLMProvider(settings).complete("system", "user")


# ======================================================================
# Ollama LLM Provider
# ======================================================================


class TestOllamaLLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        assert OllamaLLMProvider(settings).get_provider_name() == "ollama"

    def test_is_available(self, settings: Settings) -> None:
        assert OllamaLLMProvider(settings).is_available() is True
        with patch("initiative_rag.providers.llm.ollama_provider.openai.AsyncOpenAI"):
            unset = OllamaLLMProvider(_settings(ollama_base_url=""))
        assert unset.is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response("Local answer"))

        with patch("initiative_rag.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OllamaLLMProvider(settings)
            result = await provider.complete("system", "user")

        assert result == "Local answer"
        assert mock_client.chat.completions.create.call_args.kwargs["model"] == "llama3.1"

    @pytest.mark.asyncio
    async def test_complete_error(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError(message="model missing", request=MagicMock(), body=None)
        )
        with patch("initiative_rag.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError):
                await OllamaLLMProvider(settings).complete("system", "user")

    @pytest.mark.asyncio
    async def test_validate_connection_success(self, settings: Settings) -> None:
        mock_http = AsyncMock()
        mock_http.get = AsyncMock(return_value=MagicMock(status_code=200))
        mock_http.__aenter__.return_value = mock_http

        with patch(
            "initiative_rag.providers.llm.ollama_provider.httpx.AsyncClient",
            return_value=mock_http,
        ):
            assert await OllamaLLMProvider(settings).validate_connection() is True
        mock_http.get.assert_awaited_once_with("http://localhost:11434/api/tags")

    @pytest.mark.asyncio
    async def test_validate_connection_failure(self, settings: Settings) -> None:
        mock_http = AsyncMock()
        mock_http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        mock_http.__aenter__.return_value = mock_http

        with patch(
            "initiative_rag.providers.llm.ollama_provider.httpx.AsyncClient",
            return_value=mock_http,
        ):
            assert await OllamaLLMProvider(settings).validate_connection() is False
