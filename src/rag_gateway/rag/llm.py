"""Lazily constructed completion client."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from rag_gateway.config import LLMConfig
from rag_gateway.errors import ConfigurationError
from rag_gateway.obs.logging_config import get_logger

logger = get_logger(__name__)


def create_chat_model(config: LLMConfig) -> Any:
    """Build the default chat model. Raises when no API key is configured."""
    if config.api_key is None or not config.api_key.get_secret_value():
        raise ConfigurationError(
            "LLM API key missing. Set RAG_GATEWAY_OPENAI_API_KEY in the environment or .env."
        )

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout_seconds,
        max_retries=0,
        api_key=config.api_key,
    )


class LazyLLM:
    """Two-phase client lifecycle: config at startup, client on first call.

    Construction happens once even when several requests race for it, and a
    missing credential surfaces as a :class:`ConfigurationError` at call time
    instead of at import.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        *,
        factory: Callable[[LLMConfig], Any] = create_chat_model,
    ) -> None:
        self.config = config or LLMConfig()
        self._factory = factory
        self._client: Any | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_client(cls, client: Any) -> "LazyLLM":
        llm = cls()
        llm._client = client
        return llm

    @property
    def initialized(self) -> bool:
        return self._client is not None

    def get(self) -> Any:
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._client = self._factory(self.config)
                logger.info("llm_client_initialized", model=self.config.model)
        return self._client

    async def complete(self, prompt: str) -> str:
        response = await self.get().ainvoke(prompt)
        content = getattr(response, "content", response)
        if isinstance(content, list):
            return " ".join(
                str(part.get("text", "")) if isinstance(part, dict) else str(part)
                for part in content
            ).strip()
        return str(content)
