"""
Agent — conversational retrieval built with LangGraph.

Public API
----------
- :class:`ConversationOrchestrator` — ``ask(session_id, question)``.
- :func:`build_graph` — compile the retrieve → generate workflow.
- :class:`AnswerResult`, :class:`ConversationSession`, :class:`Turn`.
"""

from corpus_qa.agent.graph import build_graph, create_initial_state
from corpus_qa.agent.orchestrator import ConversationOrchestrator
from corpus_qa.agent.state import AnswerResult, ConversationSession, ConversationState, Turn

__all__ = [
    "AnswerResult",
    "ConversationOrchestrator",
    "ConversationSession",
    "ConversationState",
    "Turn",
    "build_graph",
    "create_initial_state",
]
