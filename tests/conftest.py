from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from docassist.errors import EmbeddingError
from docassist.llm.client import ChatMessage
from docassist.storage.chunk_store import ChunkStore
from docassist.storage.memory import InMemoryChunkRepository

EMBEDDING_DIM = 4


class StubEmbedder:
    """按文本返回预置向量；`fail_on` 命中时模拟 provider 失败。"""

    def __init__(self, vector_for: Callable[[str], list[float]], fail_on: str | None = None) -> None:
        self._vector_for = vector_for
        self._fail_on = fail_on
        self.calls: list[list[str]] = []

    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self._fail_on is not None and any(self._fail_on in text for text in texts):
            raise EmbeddingError(f"provider failed on {self._fail_on!r}")
        return [self._vector_for(text) for text in texts]


class StubGenerator:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        prompt = messages[-1].content
        self.prompts.append(prompt)
        first_function = next(line for line in prompt.splitlines() if line.startswith("Function: "))
        return f"Use {first_function.removeprefix('Function: ')} from the retrieved context."


def keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    if "add" in lowered:
        return [1.0, 0.0, 0.0, 0.0]
    if "sub" in lowered:
        return [0.0, 1.0, 0.0, 0.0]
    return [0.0, 0.0, 1.0, 0.0]


@pytest.fixture
def embedding_dim() -> int:
    return EMBEDDING_DIM


@pytest.fixture
def repository(embedding_dim: int) -> InMemoryChunkRepository:
    repo = InMemoryChunkRepository(embedding_dim=embedding_dim)
    repo.ensure_schema()
    return repo


@pytest.fixture
def make_embedder() -> Callable[..., StubEmbedder]:
    def factory(vector_for: Callable[[str], list[float]] = keyword_vector, fail_on: str | None = None) -> StubEmbedder:
        return StubEmbedder(vector_for=vector_for, fail_on=fail_on)

    return factory


@pytest.fixture
def embedder(make_embedder: Callable[..., StubEmbedder]) -> StubEmbedder:
    return make_embedder()


@pytest.fixture
def generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture
def store(repository: InMemoryChunkRepository, embedder: StubEmbedder) -> ChunkStore:
    return ChunkStore(repository=repository, embedder=embedder)
