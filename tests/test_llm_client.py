from __future__ import annotations

import json

import anyio
import httpx
import pytest

from docassist.errors import EmbeddingError
from docassist.errors import GenerationError
from docassist.llm.client import ChatMessage
from docassist.llm.client import OpenAICompatLLMClient


def _client(handler) -> OpenAICompatLLMClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatLLMClient(
        api_key="k",
        base_url="https://llm.example.com/v1/",
        http_client=http_client,
        model="gen-model",
        embedding_model="embed-model",
    )


def test_embed_texts_returns_vectors_in_input_order() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        data = [
            {"object": "embedding", "index": 1, "embedding": [0.0, 1.0]},
            {"object": "embedding", "index": 0, "embedding": [1.0, 0.0]},
        ]
        return httpx.Response(200, json={"object": "list", "data": data, "model": "embed-model", "usage": {"prompt_tokens": 2, "total_tokens": 2}})

    vectors = anyio.run(_client(handler).embed_texts, ["a", "b"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert seen["url"] == "https://llm.example.com/v1/embeddings"
    assert seen["body"]["input"] == ["a", "b"]
    assert seen["body"]["model"] == "embed-model"


def test_embed_texts_wraps_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "bad input", "type": "invalid_request_error"}})

    with pytest.raises(EmbeddingError):
        anyio.run(_client(handler).embed_texts, ["a"])


def test_embed_texts_empty_input_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert anyio.run(_client(handler).embed_texts, []) == []


def test_complete_text_sends_generation_params() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "c1",
                "object": "chat.completion",
                "created": 0,
                "model": "gen-model",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": " the answer "}, "finish_reason": "stop"}],
            },
        )

    answer = anyio.run(_client(handler).complete_text, [ChatMessage(role="user", content="q")])
    assert answer == "the answer"
    body = seen["body"]
    assert body["model"] == "gen-model"
    assert body["temperature"] == 0.3
    assert body["top_p"] == 0.8
    assert body["max_tokens"] == 1024


def test_complete_text_rejects_empty_content() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "c1",
                "object": "chat.completion",
                "created": 0,
                "model": "gen-model",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": "  "}, "finish_reason": "stop"}],
            },
        )

    with pytest.raises(GenerationError):
        anyio.run(_client(handler).complete_text, [ChatMessage(role="user", content="q")])


def test_complete_text_wraps_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "bad request", "type": "invalid_request_error"}})

    with pytest.raises(GenerationError):
        anyio.run(_client(handler).complete_text, [ChatMessage(role="user", content="q")])
