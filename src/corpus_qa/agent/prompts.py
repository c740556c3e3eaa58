"""Prompt templates for conversational retrieval.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from corpus_qa.agent.state import Turn
    from corpus_qa.retrieval.models import ScoredChunk

SYSTEM_PROMPT = """\
You are a helpful assistant answering questions about a collection of
scraped web pages and uploaded documents.

Rules:
1. Use the numbered context passages in the user's message and the earlier
   conversation to answer.
2. If the context does not contain the answer, say that you don't know;
   do NOT make up an answer.
3. When it helps, refer to passages by their number, e.g. [1].
4. Be concise.
"""


def build_conversation_prompt(
    question: str,
    history: list[Turn],
    retrieved: list[ScoredChunk],
) -> list[BaseMessage]:
    """Assemble the messages for one conversational turn.

    Layout: system rules, then every prior turn in chronological order as
    human/AI message pairs, then one human message carrying the retrieved
    passages (rank order) followed by the new question.

    Parameters
    ----------
    question:
        The user's new question.
    history:
        Earlier turns of the same session, oldest first.
    retrieved:
        Retrieved chunks, most relevant first.
    """
    messages: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    for turn in history:
        messages.append(HumanMessage(content=turn.question))
        messages.append(AIMessage(content=turn.answer))

    context = _format_context(retrieved)
    messages.append(
        HumanMessage(
            content=(
                f"Context:\n{context}\n\n"
                f"Question: {question}\n\n"
                "Answer based on the context above and our conversation so far."
            )
        )
    )
    return messages


# ── Helpers ────────────────────────────────────────────────────────────


def _format_context(retrieved: list[ScoredChunk]) -> str:
    """Numbered listing of retrieved passages with their sources."""
    if not retrieved:
        return "(no relevant passages found)"
    parts: list[str] = []
    for i, hit in enumerate(retrieved, 1):
        parts.append(f"[{i}] source={hit.chunk.source} §{hit.chunk.ordinal}\n{hit.chunk.text}")
    return "\n\n".join(parts)
