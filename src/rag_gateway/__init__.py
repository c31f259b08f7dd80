"""Tool execution gateway and RAG pipeline package."""

from .config import GatewayConfig, LLMConfig, RetrievalConfig

__all__ = ["GatewayConfig", "LLMConfig", "RetrievalConfig"]
