"""Conversation state — sessions, turns, answers and the graph state.

``ConversationState`` is what flows through the LangGraph workflow for a
single question.  Session history lives outside the graph, in the
orchestrator, and is only appended to after a successful answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypedDict

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field

from corpus_qa.retrieval.index import VectorIndex
from corpus_qa.retrieval.models import Citation, ScoredChunk


@dataclass(frozen=True)
class Turn:
    """One answered question."""

    question: str
    answer: str


@dataclass
class ConversationSession:
    """Dialogue history of one session.

    A session is EMPTY until its first answered question and ACTIVE
    afterwards; there is no terminal state.
    """

    session_id: str
    turns: list[Turn] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return bool(self.turns)


class AnswerResult(BaseModel):
    """What :meth:`ConversationOrchestrator.ask` returns to the caller."""

    answer: str
    retrieved_chunk_ids: list[str] = Field(default_factory=list)
    session_id: str
    citations: list[Citation] = Field(default_factory=list)


class ConversationState(TypedDict):
    """Typed state for one pass through the conversation graph.

    Attributes
    ----------
    question:
        The user's new question.
    history:
        Prior turns of the session, oldest first (read-only here).
    index:
        The vector index to retrieve from.
    retrieved:
        Top-k chunks, filled by the ``retrieve`` node.
    prompt:
        Messages sent to the chat model, filled by the ``generate`` node.
    answer:
        The model's reply.
    """

    question: str
    history: list[Turn]
    index: VectorIndex
    retrieved: list[ScoredChunk]
    prompt: list[BaseMessage]
    answer: str
