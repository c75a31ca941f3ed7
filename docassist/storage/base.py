from __future__ import annotations

"""
Chunk 持久化接口。

- `ChunkRepository` Protocol：ChunkStore 只依赖这个接口
- 实现：`pg.PgChunkRepository`（生产）、`memory.InMemoryChunkRepository`（本地/测试）

所有方法都是同步阻塞调用；异步层通过 `anyio.to_thread.run_sync` 调用，
并把调用方剩余的截止时间作为 `timeout`（秒）传进来。超时抛 `TimeoutError`，不留下部分写入。
"""

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from docassist.storage.models import CodeChunk
from docassist.storage.models import SearchResult


class ChunkRepository(Protocol):
    @property
    def embedding_dim(self) -> int: ...

    def ping(self, timeout: float | None = None) -> None: ...

    def ensure_schema(self, timeout: float | None = None) -> None: ...

    def reset_schema(self, timeout: float | None = None) -> None: ...

    def insert_chunks(
        self,
        chunks: Sequence[CodeChunk],
        embeddings: Sequence[np.ndarray],
        timeout: float | None = None,
    ) -> int:
        """在单个事务中写入全部行；任何一行失败则整批回滚并抛 `StoreError`。"""
        ...

    def search(
        self,
        query_embedding: np.ndarray,
        limit: int,
        min_similarity: float,
        timeout: float | None = None,
    ) -> list[SearchResult]: ...

    def count_chunks(self, timeout: float | None = None) -> int: ...
