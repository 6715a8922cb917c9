"""Grounded answer generation from retrieved context.

Selects the strongest candidate passages, renders them as numbered blocks,
and asks the LLM for an answer restricted to those blocks with ``[#n]``
citation markers.  When nothing usable remains the fixed
:data:`INSUFFICIENT_INFORMATION` text is returned and the LLM is never
called.

Selection policy
----------------
- At most ``max_candidates`` inputs are considered.
- Identical passages from the same initiative collapse to the best scored.
- With a similarity threshold (strict mode): keep rows at or above it, at
  most ``max_contexts``.
- Without one (loose mode): keep the top ``loose_max_contexts``.
"""

from __future__ import annotations

import structlog

from initiative_rag.interfaces.llm_provider import ILLMProvider
from initiative_rag.models.rag import ContextCandidate
from initiative_rag.utils.concurrency import with_timeout
from initiative_rag.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)

INSUFFICIENT_INFORMATION = (
    "I don't have enough information in the submitted initiatives to answer that question."
)

_SYSTEM_PROMPT = (
    "You answer questions about civic initiatives submitted by residents.\n\n"
    "Rules:\n"
    "- Use ONLY the numbered context fragments supplied by the user. Do not add "
    "facts from general knowledge.\n"
    "- If the fragments do not cover the question, say plainly that there is "
    "insufficient information to answer.\n"
    "- Cite every statement with the marker of the fragment it comes from, "
    "e.g. [#1] or [#2][#3].\n"
    "- Answer in the language of the question, in at most three short paragraphs.\n"
    "- End with a line 'Sources:' followed by one line per cited fragment in the "
    "form '[#n] /initiatives/<initiative id>'."
)


class ContextAssembler:
    """Turns a question plus candidate passages into a grounded answer.

    Parameters
    ----------
    llm:
        Completion provider.
    max_candidates:
        Upper bound on inputs considered.
    max_contexts:
        Passages kept in strict mode.
    loose_max_contexts:
        Passages kept when no threshold is given.
    max_context_chars:
        Characters of each passage included in the prompt.
    temperature, max_tokens:
        Completion settings.
    timeout_seconds:
        Deadline for the completion call.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        max_candidates: int = 50,
        max_contexts: int = 6,
        loose_max_contexts: int = 10,
        max_context_chars: int = 1200,
        temperature: float = 0.2,
        max_tokens: int = 800,
        timeout_seconds: float | None = 25.0,
    ) -> None:
        self._llm = llm
        self._max_candidates = max_candidates
        self._max_contexts = max_contexts
        self._loose_max_contexts = loose_max_contexts
        self._max_context_chars = max_context_chars
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout_seconds

    def select(
        self,
        candidates: list[ContextCandidate],
        min_similarity: float | None = None,
    ) -> list[ContextCandidate]:
        """Apply the selection policy and return the kept passages, best first."""
        best: dict[tuple[str, str], ContextCandidate] = {}
        for candidate in candidates[: self._max_candidates]:
            if not candidate.content.strip():
                continue
            key = (candidate.initiative_id, candidate.content)
            current = best.get(key)
            if current is None or candidate.similarity > current.similarity:
                best[key] = candidate

        ranked = sorted(best.values(), key=lambda c: c.similarity, reverse=True)
        if min_similarity is None:
            return ranked[: self._loose_max_contexts]
        return [c for c in ranked if c.similarity >= min_similarity][: self._max_contexts]

    def render_context(self, contexts: list[ContextCandidate]) -> str:
        """Render passages as ``[#n] (initiative <id>)`` blocks."""
        blocks = []
        for number, ctx in enumerate(contexts, start=1):
            content = ctx.content.strip()[: self._max_context_chars]
            blocks.append(f"[#{number}] (initiative {ctx.initiative_id})\n{content}")
        return "\n\n".join(blocks)

    async def answer(
        self,
        question: str,
        candidates: list[ContextCandidate],
        min_similarity: float | None = None,
    ) -> str:
        """Answer *question* from *candidates* only.

        Raises
        ------
        InputValidationError
            If *question* is blank.
        LLMError, ProviderTimeoutError
            If the completion call fails.
        """
        question = (question or "").strip()
        if not question:
            raise InputValidationError(message="question required")

        contexts = self.select(candidates, min_similarity)
        if not contexts:
            logger.info("answer_insufficient_context", candidates=len(candidates))
            return INSUFFICIENT_INFORMATION

        user_prompt = (
            f"Question: {question}\n\n"
            f"Context fragments:\n{self.render_context(contexts)}"
        )
        completion = await with_timeout(
            self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
            self._timeout,
            provider_name=self._llm.get_provider_name(),
            operation="answer completion",
        )

        answer = (completion or "").strip()
        logger.info(
            "answer_generated",
            contexts=len(contexts),
            provider=self._llm.get_provider_name(),
            empty=not answer,
        )
        return answer or INSUFFICIENT_INFORMATION
