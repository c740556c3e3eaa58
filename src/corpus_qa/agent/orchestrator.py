"""Conversation orchestrator — answer questions against the current corpus.

For each :meth:`ConversationOrchestrator.ask` call:

1. validate the input (before any retrieval work),
2. serialise on the session's lock,
3. obtain an index for the document store's current content,
4. run the retrieve → generate graph with the session's history,
5. append the turn to the history once generation has succeeded.
"""

from __future__ import annotations

import logging
import threading

from corpus_qa.agent.graph import build_graph, create_initial_state
from corpus_qa.agent.llm import GenerationClient
from corpus_qa.agent.state import AnswerResult, ConversationSession, Turn
from corpus_qa.errors import InvalidArgument
from corpus_qa.retrieval.indexer import DEFAULT_K, EmbeddingIndexer, IndexProvider

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    """Owns every session's history and drives conversational retrieval.

    Parameters
    ----------
    index_provider:
        Source of the :class:`VectorIndex` for each question.
    indexer:
        Used to search the index with the same embeddings it was built with.
    generator:
        Chat model client.
    k:
        Number of chunks retrieved per question.
    """

    def __init__(
        self,
        index_provider: IndexProvider,
        indexer: EmbeddingIndexer,
        generator: GenerationClient,
        *,
        k: int = DEFAULT_K,
    ) -> None:
        if k <= 0:
            raise InvalidArgument(f"k must be positive, got {k}")
        self._index_provider = index_provider
        self._graph = build_graph(indexer, generator, k=k)
        self.k = k
        self._sessions: dict[str, ConversationSession] = {}
        self._session_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -- public API -----------------------------------------------------------

    def ask(self, session_id: str, question: str) -> AnswerResult:
        """Answer *question* in the context of *session_id*'s conversation.

        Raises
        ------
        InvalidArgument
            If the question or session id is empty or whitespace.
        IndexUnavailable
            If there is nothing in the document store to retrieve from.
        EmbeddingServiceError, GenerationServiceError
            If a provider call fails; the session history is left unchanged.
        """
        if not isinstance(question, str) or not question.strip():
            raise InvalidArgument("Question is required")
        if not isinstance(session_id, str) or not session_id.strip():
            raise InvalidArgument("Session id is required")

        with self._lock_for(session_id):
            session = self._ensure_session(session_id)
            index = self._index_provider.get()

            state = create_initial_state(question, index, history=session.turns)
            result = self._graph.invoke(state)

            answer = result["answer"]
            retrieved = result["retrieved"]
            session.turns.append(Turn(question=question, answer=answer))
            logger.info(
                "Session %s: answered turn %d using %d chunk(s)",
                session_id,
                len(session.turns),
                len(retrieved),
            )

        return AnswerResult(
            answer=answer,
            retrieved_chunk_ids=[hit.chunk.id for hit in retrieved],
            session_id=session_id,
            citations=[hit.citation() for hit in retrieved],
        )

    def history(self, session_id: str) -> list[Turn]:
        """Return a copy of the session's turns (empty for unknown sessions)."""
        lock = self._existing_lock(session_id)
        if lock is None:
            return []
        with lock:
            session = self._sessions.get(session_id)
            return list(session.turns) if session else []

    def reset_session(self, session_id: str) -> bool:
        """Forget a session's history.  Returns ``False`` if it did not exist."""
        lock = self._existing_lock(session_id)
        if lock is None:
            return False
        with lock:
            with self._registry_lock:
                existed = self._sessions.pop(session_id, None) is not None
                self._session_locks.pop(session_id, None)
        if existed:
            logger.info("Session %s reset", session_id)
        return existed

    @property
    def session_ids(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._sessions)

    # -- internals ------------------------------------------------------------

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = self._session_locks[session_id] = threading.Lock()
            return lock

    def _existing_lock(self, session_id: str) -> threading.Lock | None:
        with self._registry_lock:
            return self._session_locks.get(session_id)

    def _ensure_session(self, session_id: str) -> ConversationSession:
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._sessions[session_id] = ConversationSession(session_id)
                logger.debug("Created session %s", session_id)
            return session
