"""Unit tests for conversational retrieval.

All tests run without any provider by injecting the keyword-embedding and
recording chat-model fakes from ``conftest.py``.  The suite validates:

- Prompt construction (history order, context order, question placement)
- Individual nodes and graph invocation
- The orchestrator: sessions, failure paths, serialisation per session
- The end-to-end scrape/upload → ask scenario
"""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from corpus_qa.agent.graph import build_graph, create_initial_state
from corpus_qa.agent.llm import GenerationClient
from corpus_qa.agent.nodes import make_generate_node, make_retrieve_node
from corpus_qa.agent.orchestrator import ConversationOrchestrator
from corpus_qa.agent.prompts import SYSTEM_PROMPT, build_conversation_prompt
from corpus_qa.agent.state import AnswerResult, ConversationSession, Turn
from corpus_qa.errors import (
    EmbeddingServiceError,
    GenerationServiceError,
    IndexUnavailable,
    InvalidArgument,
)
from corpus_qa.ingestion.extractor import ContentExtractor
from corpus_qa.ingestion.loader import DocumentLoader
from corpus_qa.ingestion.models import Chunk
from corpus_qa.ingestion.service import IngestionService, UploadedFile
from corpus_qa.ingestion.store import InMemoryDocumentStore
from corpus_qa.retrieval.embeddings import EmbeddingClient
from corpus_qa.retrieval.indexer import EmbeddingIndexer, IndexProvider
from corpus_qa.retrieval.models import ScoredChunk

# ── Fixtures & helpers ─────────────────────────────────────────────────

CORPUS = {
    "france.txt": b"Paris is the capital of France.",
    "germany.txt": b"Berlin is the capital of Germany.",
    "wine.txt": b"Wine is made near the river.",
}


def _hit(text: str, ordinal: int = 0, source: str = "doc.txt", score: float = 1.0) -> ScoredChunk:
    chunk = Chunk(
        id=f"{source}::{ordinal}",
        document_id=source,
        text=text,
        ordinal=ordinal,
        metadata={"source": source},
    )
    return ScoredChunk(chunk=chunk, score=score)


@pytest.fixture()
def corpus_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(CORPUS)


@pytest.fixture()
def orchestrator(
    corpus_store: InMemoryDocumentStore,
    indexer: EmbeddingIndexer,
    generator: GenerationClient,
) -> ConversationOrchestrator:
    provider = IndexProvider(corpus_store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
    return ConversationOrchestrator(provider, indexer, generator, k=2)


# ═══════════════════════════════════════════════════════════════════════
# State
# ═══════════════════════════════════════════════════════════════════════


class TestState:
    def test_session_starts_empty(self) -> None:
        session = ConversationSession("s1")
        assert session.turns == []
        assert session.is_active is False

    def test_session_becomes_active(self) -> None:
        session = ConversationSession("s1", [Turn("q", "a")])
        assert session.is_active is True

    def test_answer_result_defaults(self) -> None:
        result = AnswerResult(answer="a", session_id="s")
        assert result.retrieved_chunk_ids == []
        assert result.citations == []


# ═══════════════════════════════════════════════════════════════════════
# Prompt construction
# ═══════════════════════════════════════════════════════════════════════


class TestPrompts:
    def test_layout_without_history(self) -> None:
        msgs = build_conversation_prompt("What?", [], [_hit("Some context.")])
        assert isinstance(msgs[0], SystemMessage)
        assert msgs[0].content == SYSTEM_PROMPT
        assert len(msgs) == 2
        assert isinstance(msgs[1], HumanMessage)

    def test_history_in_chronological_order(self) -> None:
        history = [Turn("Q1", "A1"), Turn("Q2", "A2")]
        msgs = build_conversation_prompt("Q3", history, [])
        assert [type(m) for m in msgs[1:5]] == [HumanMessage, AIMessage, HumanMessage, AIMessage]
        assert [m.content for m in msgs[1:5]] == ["Q1", "A1", "Q2", "A2"]
        assert "Question: Q3" in msgs[-1].content

    def test_context_in_rank_order_before_question(self) -> None:
        retrieved = [_hit("best passage", 0), _hit("second passage", 1)]
        human = build_conversation_prompt("Which?", [], retrieved)[-1].content
        assert human.index("[1]") < human.index("best passage") < human.index("[2]")
        assert human.index("second passage") < human.index("Question: Which?")
        assert "source=doc.txt" in human

    def test_no_context_is_stated(self) -> None:
        human = build_conversation_prompt("Anything?", [], [])[-1].content
        assert "no relevant passages" in human


# ═══════════════════════════════════════════════════════════════════════
# Nodes & graph
# ═══════════════════════════════════════════════════════════════════════


class TestNodes:
    def test_retrieve_node_fills_retrieved(self, indexer: EmbeddingIndexer) -> None:
        chunks = [_hit("Paris is in France", 0).chunk, _hit("Berlin river", 1).chunk]
        index = indexer.build(chunks)
        node = make_retrieve_node(indexer, k=1)
        update = node(create_initial_state("paris", index))
        assert list(update) == ["retrieved"]
        assert update["retrieved"][0].chunk.text == "Paris is in France"

    def test_generate_node_returns_prompt_and_answer(
        self, generator: GenerationClient, chat_model: Any, indexer: EmbeddingIndexer
    ) -> None:
        index = indexer.build([_hit("x").chunk])
        state = create_initial_state("q", index, history=[Turn("old q", "old a")])
        state["retrieved"] = [_hit("Paris is lovely")]
        update = make_generate_node(generator)(state)
        assert update["answer"] == "The capital of France is Paris."
        assert update["prompt"] == chat_model.prompts[0]


class TestGraph:
    def test_graph_runs_retrieve_then_generate(
        self, indexer: EmbeddingIndexer, generator: GenerationClient, chat_model: Any
    ) -> None:
        index = indexer.build([_hit("Paris is the capital", 0).chunk, _hit("wine", 1).chunk])
        graph = build_graph(indexer, generator, k=1)
        result = graph.invoke(create_initial_state("capital of france?", index))
        assert [h.chunk.ordinal for h in result["retrieved"]] == [0]
        assert result["answer"] == "The capital of France is Paris."
        assert len(chat_model.prompts) == 1

    def test_node_errors_propagate(self, indexer: EmbeddingIndexer, chat_model: Any) -> None:
        chat_model.error = RuntimeError("provider down")
        graph = build_graph(indexer, GenerationClient(chat_model), k=1)
        index = indexer.build([_hit("text").chunk])
        with pytest.raises(GenerationServiceError):
            graph.invoke(create_initial_state("q", index))

    def test_initial_state_copies_history(self, indexer: EmbeddingIndexer) -> None:
        history = [Turn("q", "a")]
        state = create_initial_state("q2", indexer.build([_hit("x").chunk]), history=history)
        state["history"].append(Turn("x", "y"))
        assert len(history) == 1


# ═══════════════════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════════════════


class TestOrchestrator:
    def test_answer_result_traces_chunks(self, orchestrator: ConversationOrchestrator) -> None:
        result = orchestrator.ask("s1", "What is the capital of France?")
        assert result.session_id == "s1"
        assert result.retrieved_chunk_ids[0] == "france.txt::0"
        assert result.citations[0].source == "france.txt"
        assert len(result.retrieved_chunk_ids) == 2

    def test_sequential_questions_build_history_in_order(
        self, orchestrator: ConversationOrchestrator, chat_model: Any
    ) -> None:
        a1 = orchestrator.ask("s1", "Tell me about wine").answer
        a2 = orchestrator.ask("s1", "And the river?").answer
        orchestrator.ask("s1", "Anything about Germany?")

        third_prompt = chat_model.prompts[2]
        contents = [m.content for m in third_prompt[1:5]]
        assert contents == ["Tell me about wine", a1, "And the river?", a2]
        assert len(orchestrator.history("s1")) == 3

    def test_sessions_are_independent(
        self, orchestrator: ConversationOrchestrator, chat_model: Any
    ) -> None:
        orchestrator.ask("alice", "Tell me about wine")
        orchestrator.ask("bob", "Tell me about Berlin")
        assert len(chat_model.prompts[1]) == 2  # system + question, no history
        assert orchestrator.session_ids == ["alice", "bob"]

    @pytest.mark.parametrize("question", ["", "   ", "\n\t"])
    def test_blank_question_fails_fast(
        self, orchestrator: ConversationOrchestrator, embeddings: Any, chat_model: Any, question: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            orchestrator.ask("s1", question)
        assert embeddings.document_calls == []
        assert chat_model.prompts == []
        assert orchestrator.session_ids == []

    def test_blank_session_id_rejected(self, orchestrator: ConversationOrchestrator) -> None:
        with pytest.raises(InvalidArgument):
            orchestrator.ask(" ", "question")

    def test_empty_corpus_is_unavailable(
        self, index_provider: IndexProvider, indexer: EmbeddingIndexer, generator: GenerationClient, chat_model: Any
    ) -> None:
        orchestrator = ConversationOrchestrator(index_provider, indexer, generator)
        with pytest.raises(IndexUnavailable):
            orchestrator.ask("s1", "Anything there?")
        assert chat_model.prompts == []
        assert orchestrator.history("s1") == []

    def test_generation_failure_leaves_history_untouched(
        self, orchestrator: ConversationOrchestrator, chat_model: Any
    ) -> None:
        first = orchestrator.ask("s1", "Tell me about wine").answer
        chat_model.error = TimeoutError("slow")
        with pytest.raises(GenerationServiceError) as excinfo:
            orchestrator.ask("s1", "And the river?")
        assert excinfo.value.kind == "timeout"
        assert orchestrator.history("s1") == [Turn("Tell me about wine", first)]

    def test_embedding_failure_leaves_history_untouched(
        self, corpus_store: InMemoryDocumentStore, generator: GenerationClient
    ) -> None:
        class BrokenEmbeddings:
            def embed_documents(self, texts: list[str]) -> list[list[float]]:
                raise ConnectionError("reset by peer")

            def embed_query(self, text: str) -> list[float]:
                raise ConnectionError("reset by peer")

        indexer = EmbeddingIndexer(EmbeddingClient(BrokenEmbeddings()))  # type: ignore[arg-type]
        provider = IndexProvider(corpus_store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
        orchestrator = ConversationOrchestrator(provider, indexer, generator)
        with pytest.raises(EmbeddingServiceError) as excinfo:
            orchestrator.ask("s1", "Paris?")
        assert excinfo.value.kind == "network"
        assert orchestrator.history("s1") == []

    def test_blank_completion_is_a_generation_failure(
        self, corpus_store: InMemoryDocumentStore, indexer: EmbeddingIndexer
    ) -> None:
        class SilentModel:
            def invoke(self, messages: list[Any], **kwargs: Any) -> AIMessage:
                return AIMessage(content="  \n")

        provider = IndexProvider(corpus_store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
        orchestrator = ConversationOrchestrator(provider, indexer, GenerationClient(SilentModel()))  # type: ignore[arg-type]
        with pytest.raises(GenerationServiceError, match="empty completion"):
            orchestrator.ask("s1", "What is the capital?")
        assert orchestrator.history("s1") == []

    def test_reset_session(self, orchestrator: ConversationOrchestrator) -> None:
        orchestrator.ask("s1", "Tell me about wine")
        assert orchestrator.reset_session("s1") is True
        assert "s1" not in orchestrator._session_locks
        assert orchestrator.history("s1") == []
        assert orchestrator.reset_session("s1") is False

    def test_unknown_session_lookups_leave_no_state(self, orchestrator: ConversationOrchestrator) -> None:
        assert orchestrator.history("ghost") == []
        assert orchestrator.reset_session("ghost") is False
        assert orchestrator._session_locks == {}
        assert orchestrator.session_ids == []

    def test_history_returns_copy(self, orchestrator: ConversationOrchestrator) -> None:
        orchestrator.ask("s1", "Tell me about wine")
        orchestrator.history("s1").clear()
        assert len(orchestrator.history("s1")) == 1

    def test_invalid_k_rejected(
        self, index_provider: IndexProvider, indexer: EmbeddingIndexer, generator: GenerationClient
    ) -> None:
        with pytest.raises(InvalidArgument):
            ConversationOrchestrator(index_provider, indexer, generator, k=0)

    def test_concurrent_asks_on_one_session_are_serialised(
        self, corpus_store: InMemoryDocumentStore, indexer: EmbeddingIndexer
    ) -> None:
        active = 0
        max_active = 0
        guard = threading.Lock()

        class SlowChatModel:
            def invoke(self, messages: list[Any], **kwargs: Any) -> AIMessage:
                nonlocal active, max_active
                with guard:
                    active += 1
                    max_active = max(max_active, active)
                time.sleep(0.05)
                with guard:
                    active -= 1
                return AIMessage(content=messages[-1].content.rsplit("Question: ", 1)[1][:2])

        provider = IndexProvider(corpus_store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
        orchestrator = ConversationOrchestrator(provider, indexer, GenerationClient(SlowChatModel()))  # type: ignore[arg-type]
        threads = [
            threading.Thread(target=orchestrator.ask, args=("shared", f"Q{i} wine?"))
            for i in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_active == 1
        turns = orchestrator.history("shared")
        assert len(turns) == 4
        assert all(turn.answer == turn.question[:2] for turn in turns)


# ═══════════════════════════════════════════════════════════════════════
# End-to-end
# ═══════════════════════════════════════════════════════════════════════


class TestEndToEnd:
    def test_upload_then_ask(
        self, store: InMemoryDocumentStore, indexer: EmbeddingIndexer, generator: GenerationClient
    ) -> None:
        ingestion = IngestionService(store, ContentExtractor(store))
        stored = ingestion.submit_files([UploadedFile("facts.txt", b"Paris is the capital of France.")])

        provider = IndexProvider(store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
        orchestrator = ConversationOrchestrator(provider, indexer, generator)
        result = orchestrator.ask("e2e", "What is the capital of France?")

        assert f"{stored[0]}::0" in result.retrieved_chunk_ids
        assert "Paris" in result.answer

    def test_scrape_then_ask(
        self, store: InMemoryDocumentStore, indexer: EmbeddingIndexer, generator: GenerationClient
    ) -> None:
        class Page:
            def render(self, url: str, *, timeout: float) -> str:
                return "<article><p>Paris is the capital of France.</p></article>"

        ingestion = IngestionService(store, ContentExtractor(store, Page()))
        ingestion.submit_urls(["https://facts.example.com/france"])

        provider = IndexProvider(store, DocumentLoader(), indexer, chunk_size=1000, chunk_overlap=200)
        orchestrator = ConversationOrchestrator(provider, indexer, generator)
        result = orchestrator.ask("e2e", "What is the capital of France?")

        assert result.retrieved_chunk_ids == ["facts.example.com.txt::0"]
        assert "Paris" in result.answer
