"""LangGraph graph definition — one conversational retrieval turn.

The workflow is linear::

      ┌──────────┐
      │ retrieve │   ← top-k chunks for the question
      └────┬─────┘
           ▼
      ┌──────────┐
      │ generate │   ← history + context + question → chat model
      └────┬─────┘
           ▼
        [ END ]

Exceptions raised inside a node (``ConfigError``, ``EmbeddingServiceError``,
``GenerationServiceError`` …) propagate out of ``graph.invoke()`` unchanged.
"""

from __future__ import annotations

from typing import Any

from langgraph.graph import END, StateGraph

from corpus_qa.agent.llm import GenerationClient
from corpus_qa.agent.nodes import make_generate_node, make_retrieve_node
from corpus_qa.agent.state import ConversationState, Turn
from corpus_qa.retrieval.index import VectorIndex
from corpus_qa.retrieval.indexer import DEFAULT_K, EmbeddingIndexer


def build_graph(
    indexer: EmbeddingIndexer,
    generator: GenerationClient,
    *,
    k: int = DEFAULT_K,
) -> Any:
    """Construct and return the compiled conversation graph.

    Returns
    -------
    CompiledGraph
        A compiled LangGraph workflow ready for ``.invoke()``.
    """
    workflow = StateGraph(ConversationState)

    workflow.add_node("retrieve", make_retrieve_node(indexer, k))
    workflow.add_node("generate", make_generate_node(generator))

    workflow.set_entry_point("retrieve")
    workflow.add_edge("retrieve", "generate")
    workflow.add_edge("generate", END)

    return workflow.compile()


def create_initial_state(
    question: str,
    index: VectorIndex,
    history: list[Turn] | None = None,
) -> dict[str, Any]:
    """Build the initial state dict for ``graph.invoke()``."""
    return {
        "question": question,
        "history": list(history or []),
        "index": index,
        "retrieved": [],
        "prompt": [],
        "answer": "",
    }
