"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI** (default) — set ``OPENAI_API_KEY``; set ``LLM_BASE_URL`` to
   use an OpenAI-compatible server such as vLLM instead.
2. **Azure OpenAI** — set ``LLM_PROVIDER=azure`` and the ``AZURE_*``
   settings.
"""

from __future__ import annotations

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from corpus_qa.config import Settings
from corpus_qa.errors import GenerationServiceError
from corpus_qa.retrieval.embeddings import classify_provider_error

logger = logging.getLogger(__name__)


def get_llm(settings: Settings) -> BaseChatModel:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    OpenAI-compatible endpoint.  A dummy API key (``"EMPTY"``) is used
    because local servers do not require authentication.
    """
    if settings.llm_provider == "azure":
        logger.info("Using Azure OpenAI deployment: %s", settings.azure_chat_deployment)
        return AzureChatOpenAI(
            azure_endpoint=settings.azure_endpoint,
            azure_deployment=settings.azure_chat_deployment,
            api_version=settings.azure_api_version,
            api_key=settings.openai_api_key,
            temperature=settings.llm_temperature,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )

    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
        "timeout": settings.request_timeout,
        "max_retries": settings.max_retries,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


class GenerationClient:
    """``generate(messages) -> text`` over a LangChain chat model."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    def generate(self, messages: list[BaseMessage]) -> str:
        """Send *messages* to the model and return the answer text.

        Raises
        ------
        GenerationServiceError
            On provider failure, timeout, or an empty / non-text reply.
        """
        try:
            response = self._llm.invoke(messages)
        except Exception as exc:
            kind = classify_provider_error(exc)
            logger.exception("Chat completion failed (%s)", kind)
            raise GenerationServiceError(f"chat completion failed: {exc}", kind) from exc

        content = response.content
        if not isinstance(content, str):
            raise GenerationServiceError(f"unexpected response content: {type(content).__name__}")
        if not content.strip():
            raise GenerationServiceError("empty completion")
        return content
