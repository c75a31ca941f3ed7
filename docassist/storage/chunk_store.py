"""
Chunk Store（异步门面）。

职责：
- 调用 embedding provider 生成向量，并校验维度（不符则整批拒绝）
- 通过 `ChunkRepository` 在单事务内写入整批 chunk
- 相似度检索：top_k + 最低相似度阈值

阻塞的数据库调用统一放到 `anyio.to_thread.run_sync`；取消时线程不会被抛弃，
连接总能在 `with` 块里正常关闭。调用方的截止时间（`anyio.fail_after`）
换算成剩余秒数传给 repository，由数据库侧的 statement_timeout 中止并回滚。
"""

from __future__ import annotations

import functools
import logging
import math
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

import anyio
import numpy as np

from docassist.config import AppConfig
from docassist.errors import EmbeddingError
from docassist.errors import FormatError
from docassist.storage.base import ChunkRepository
from docassist.storage.models import CodeChunk
from docassist.storage.models import SearchResult
from docassist.storage.models import chunk_embedding_text
from docassist.storage.pg import PgChunkRepository
from docassist.storage.vector_codec import normalize_embedding

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MIN_SIMILARITY = 0.7
EMBED_BATCH_SIZE = 32

T = TypeVar("T")


class Embedder(Protocol):
    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]: ...


class ChunkStore:
    def __init__(self, repository: ChunkRepository, embedder: Embedder) -> None:
        self._repository = repository
        self._embedder = embedder

    @property
    def embedding_dim(self) -> int:
        return self._repository.embedding_dim

    async def ensure_schema(self) -> None:
        await _run_with_deadline(self._repository.ensure_schema)

    async def reset(self) -> None:
        """显式的破坏性操作：删表并重建。"""
        await _run_with_deadline(self._repository.reset_schema)

    async def store_chunks(self, chunks: Sequence[CodeChunk]) -> int:
        """
        为每个 chunk 生成 embedding 并整批写入。

        - 任一 embedding 失败 / 维度不符：抛 `EmbeddingError`，不写入任何行
        - 写库失败：抛 `StoreError`，事务回滚
        - 截止时间已到：抛 `TimeoutError`，事务回滚
        """
        if not chunks:
            return 0
        texts = [chunk_embedding_text(chunk) for chunk in chunks]
        embeddings = await self._embed(texts)
        count = await _run_with_deadline(self._repository.insert_chunks, list(chunks), embeddings)
        logger.info(f"Stored {count} chunk(s) for {chunks[0].file_path}")
        return count

    async def search_chunks(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> list[SearchResult]:
        if not query.strip():
            raise ValueError("query must not be empty")
        if top_k <= 0:
            raise ValueError("top_k must be > 0")
        [query_embedding] = await self._embed([query])
        results = await _run_with_deadline(
            self._repository.search,
            query_embedding,
            top_k,
            min_similarity,
        )
        logger.info(f"Search returned {len(results)} chunk(s) above {min_similarity}")
        return results

    async def count_chunks(self) -> int:
        return await _run_with_deadline(self._repository.count_chunks)

    async def _embed(self, texts: Sequence[str]) -> list[np.ndarray]:
        embeddings: list[np.ndarray] = []
        for i in range(0, len(texts), EMBED_BATCH_SIZE):
            batch = texts[i : i + EMBED_BATCH_SIZE]
            vectors = await self._embedder.embed_texts(batch)
            if len(vectors) != len(batch):
                raise EmbeddingError(f"expected {len(batch)} embeddings, got {len(vectors)}")
            for text, vector in zip(batch, vectors, strict=True):
                embeddings.append(self._validate(text=text, vector=vector))
        return embeddings

    def _validate(self, text: str, vector: Sequence[float]) -> np.ndarray:
        if len(vector) != self.embedding_dim:
            raise EmbeddingError(
                f"unexpected embedding dimension {len(vector)} (want {self.embedding_dim}) for {_label(text)!r}"
            )
        try:
            return normalize_embedding(vector)
        except FormatError as exc:
            raise EmbeddingError(f"invalid embedding for {_label(text)!r}: {exc}") from exc


def open_chunk_store(config: AppConfig, embedder: Embedder) -> ChunkStore:
    """
    连接数据库、确认可用并初始化 schema，返回可用的 ChunkStore。

    任何失败都抛 `StoreError`：不会返回“看起来可用”的半成品对象。
    """
    repository = PgChunkRepository(
        dsn=config.database.dsn(),
        embedding_dim=config.llm.embedding_dim,
        ivfflat_probes=config.search.ivfflat_probes,
    )
    repository.ping()
    repository.ensure_schema()
    logger.info(f"Chunk store ready at {config.database.host}:{config.database.port}/{config.database.name}")
    return ChunkStore(repository=repository, embedder=embedder)


async def _run_with_deadline(func: Callable[..., T], *args: object) -> T:
    return await anyio.to_thread.run_sync(functools.partial(func, *args, timeout=_remaining_seconds()))


def _remaining_seconds() -> float | None:
    deadline = anyio.current_effective_deadline()
    if deadline == math.inf:
        return None
    remaining = deadline - anyio.current_time()
    if remaining <= 0:
        raise TimeoutError("deadline exceeded before the store call")
    return remaining


def _label(text: str) -> str:
    return text.partition("\n")[0]
