"""Graph nodes — each function is one step of a conversational turn.

Node contract
-------------
* Accepts the full :class:`ConversationState` dict.
* Returns a *partial* dict with **only the keys that changed**.
* Dependencies (indexer, generation client) are bound by the ``make_*``
  factories, so every node is testable with fakes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from corpus_qa.agent.llm import GenerationClient
from corpus_qa.agent.prompts import build_conversation_prompt
from corpus_qa.agent.state import ConversationState
from corpus_qa.retrieval.indexer import EmbeddingIndexer

logger = logging.getLogger(__name__)

Node = Callable[[ConversationState], dict[str, Any]]


# ── 1. RETRIEVE ───────────────────────────────────────────────────────


def make_retrieve_node(indexer: EmbeddingIndexer, k: int) -> Node:
    """Build the node that fetches the top-*k* chunks for the question."""

    def retrieve(state: ConversationState) -> dict[str, Any]:
        retrieved = indexer.search(state["index"], state["question"], k)
        return {"retrieved": retrieved}

    return retrieve


# ── 2. GENERATE ───────────────────────────────────────────────────────


def make_generate_node(generator: GenerationClient) -> Node:
    """Build the node that prompts the chat model with history + context."""

    def generate(state: ConversationState) -> dict[str, Any]:
        prompt = build_conversation_prompt(
            state["question"],
            state.get("history", []),
            state.get("retrieved", []),
        )
        answer = generator.generate(prompt)
        logger.info(
            "Generated answer: %d chars from %d passage(s)",
            len(answer),
            len(state.get("retrieved", [])),
        )
        return {"prompt": prompt, "answer": answer}

    return generate
