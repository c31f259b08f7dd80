import threading

import pytest
from pydantic import SecretStr

from rag_gateway.config import LLMConfig
from rag_gateway.errors import ConfigurationError
from rag_gateway.rag.llm import LazyLLM, create_chat_model


class _Reply:
    def __init__(self, content) -> None:
        self.content = content


class _Client:
    def __init__(self, content) -> None:
        self._content = content

    async def ainvoke(self, prompt: str) -> _Reply:
        return _Reply(self._content)


def test_client_is_not_built_until_first_use() -> None:
    built = []
    llm = LazyLLM(LLMConfig(), factory=lambda config: built.append(config) or _Client("x"))

    assert llm.initialized is False
    assert built == []

    llm.get()
    llm.get()

    assert llm.initialized is True
    assert len(built) == 1


def test_concurrent_first_use_builds_one_client() -> None:
    built = []
    barrier = threading.Barrier(8)

    def _factory(config):
        built.append(config)
        return _Client("x")

    llm = LazyLLM(LLMConfig(), factory=_factory)

    def _worker() -> None:
        barrier.wait()
        llm.get()

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(built) == 1


def test_missing_api_key_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        create_chat_model(LLMConfig(api_key=None))
    with pytest.raises(ConfigurationError):
        create_chat_model(LLMConfig(api_key=SecretStr("")))


def test_failed_construction_is_retried_on_next_call() -> None:
    attempts = []

    def _factory(config):
        attempts.append(config)
        if len(attempts) == 1:
            raise ConfigurationError("no key yet")
        return _Client("x")

    llm = LazyLLM(LLMConfig(), factory=_factory)

    with pytest.raises(ConfigurationError):
        llm.get()
    assert llm.initialized is False
    llm.get()
    assert llm.initialized is True


@pytest.mark.asyncio
async def test_complete_flattens_content_parts() -> None:
    llm = LazyLLM.from_client(_Client([{"type": "text", "text": "Hello"}, "world"]))

    assert await llm.complete("prompt") == "Hello world"
    assert await LazyLLM.from_client(_Client("plain")).complete("prompt") == "plain"
