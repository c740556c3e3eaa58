"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from corpus_qa.errors import ConfigError


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Build one instance at startup, call :meth:`validate_provider` once and
    pass it to the components that need it.
    """

    # Provider
    llm_provider: Literal["openai", "azure"] = Field(
        default="openai",
        description="Which OpenAI-compatible API serves chat and embeddings.",
    )
    openai_api_key: str = Field(default="", description="OpenAI or Azure OpenAI API key")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud, "
            "e.g. 'http://localhost:8000/v1' for a local vLLM server."
        ),
    )
    llm_temperature: float = 1.0
    embedding_model: str = "text-embedding-3-small"

    # Azure OpenAI
    azure_endpoint: str = ""
    azure_api_version: str = ""
    azure_chat_deployment: str = ""
    azure_embedding_deployment: str = ""

    # Provider call limits
    request_timeout: float = Field(default=60.0, gt=0, description="Seconds per provider call")
    max_retries: int = Field(default=2, ge=0)
    embedding_batch_size: int = Field(default=512, gt=0)

    # Document store
    document_store_dir: Path = Path("documents")
    scrape_timeout: float = Field(default=30.0, gt=0, description="Seconds per page fetch")
    scrape_versioning: bool = Field(
        default=False,
        description="Keep every scrape of a host instead of overwriting <hostname>.txt.",
    )

    # Chunking / retrieval
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_k: int = 4
    similarity_metric: Literal["cosine", "l2"] = "cosine"
    cache_index: bool = Field(
        default=False,
        description="Reuse the built index until the document store changes.",
    )

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_provider(self) -> Settings:
        """Fail fast when the provider section is incomplete.

        Raises
        ------
        ConfigError
            Naming every missing field.
        """
        missing: list[str] = []
        if not self.openai_api_key and not self.llm_base_url:
            missing.append("openai_api_key")
        if self.llm_provider == "azure":
            for name in (
                "azure_endpoint",
                "azure_api_version",
                "azure_chat_deployment",
                "azure_embedding_deployment",
            ):
                if not getattr(self, name):
                    missing.append(name)
        if missing:
            raise ConfigError(f"Missing required provider settings: {', '.join(missing)}")
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        if self.retrieval_k <= 0:
            raise ConfigError(f"retrieval_k must be positive, got {self.retrieval_k}")
        return self
