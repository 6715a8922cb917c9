"""LLM provider adapters.

Two concrete implementations of ILLMProvider:
    - OpenAILLMProvider - gpt-4o-mini (also supports OpenAI-compatible APIs)
    - OllamaLLMProvider - local models via Ollama server (llama3.1)

main.py picks OpenAI when OPENAI_API_KEY is set and falls back to Ollama.
"""

from initiative_rag.providers.llm.ollama_provider import OllamaLLMProvider
from initiative_rag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "OllamaLLMProvider"]
