"""Abstract base class for LLM completion providers.

The answer pipeline only needs plain chat completion: a system instruction,
a user prompt, and a low sampling temperature.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, OllamaLLMProvider
# Located in: initiative_rag/providers/llm/
class ILLMProvider(ABC):
    """Contract for completion services used by the context assembler."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the question and context.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.  An empty string means the model
            produced no content; callers decide on a fallback.

        Raises
        ------
        initiative_rag.utils.errors.LLMError
            If the API call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
