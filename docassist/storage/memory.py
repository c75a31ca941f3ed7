from __future__ import annotations

"""
内存版 ChunkRepository：只用于开发/测试，进程退出即丢失。

相似度与 pgvector 的 `1 - (a <=> b)` 保持一致（余弦相似度）。
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np

from docassist.errors import StoreError
from docassist.storage.models import CodeChunk
from docassist.storage.models import SearchResult


@dataclass(frozen=True)
class _Row:
    id: int
    file_path: str
    document: dict[str, object]
    embedding: np.ndarray
    created_at: datetime


class InMemoryChunkRepository:
    def __init__(self, embedding_dim: int) -> None:
        if embedding_dim <= 0:
            raise ValueError("embedding_dim must be > 0")
        self._embedding_dim = embedding_dim
        self._rows: list[_Row] = []
        self._next_id = 1
        self._lock = threading.Lock()
        self._schema_ready = False

    @property
    def embedding_dim(self) -> int:
        return self._embedding_dim

    def ping(self, timeout: float | None = None) -> None:
        _check_deadline(timeout)

    def ensure_schema(self, timeout: float | None = None) -> None:
        _check_deadline(timeout)
        self._schema_ready = True

    def reset_schema(self, timeout: float | None = None) -> None:
        _check_deadline(timeout)
        with self._lock:
            self._rows = []
            self._next_id = 1
        self._schema_ready = True

    def insert_chunks(
        self,
        chunks: Sequence[CodeChunk],
        embeddings: Sequence[np.ndarray],
        timeout: float | None = None,
    ) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        _check_deadline(timeout)
        self._require_schema()
        with self._lock:
            staged: list[_Row] = []
            next_id = self._next_id
            now = datetime.now(timezone.utc)
            for chunk, embedding in zip(chunks, embeddings, strict=True):
                vector = np.asarray(embedding, dtype=np.float32)
                if vector.shape != (self._embedding_dim,):
                    raise StoreError(
                        f"expected {self._embedding_dim} dimensions, not {vector.shape[0] if vector.ndim else 0}"
                    )
                staged.append(
                    _Row(
                        id=next_id,
                        file_path=chunk.file_path,
                        document=chunk.model_dump(mode="json"),
                        embedding=vector,
                        created_at=now,
                    )
                )
                next_id += 1
            self._rows.extend(staged)
            self._next_id = next_id
        return len(staged)

    def search(
        self,
        query_embedding: np.ndarray,
        limit: int,
        min_similarity: float,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        _check_deadline(timeout)
        self._require_schema()
        query = np.asarray(query_embedding, dtype=np.float32)
        if query.shape != (self._embedding_dim,):
            raise StoreError(f"expected {self._embedding_dim} dimensions for query")
        with self._lock:
            rows = list(self._rows)
        scored: list[tuple[float, int, _Row]] = []
        for row in rows:
            similarity = _cosine_similarity(row.embedding, query)
            if similarity > min_similarity:
                scored.append((similarity, row.id, row))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [
            SearchResult(chunk=CodeChunk.model_validate(row.document), similarity=similarity)
            for similarity, _, row in scored[:limit]
        ]

    def count_chunks(self, timeout: float | None = None) -> int:
        _check_deadline(timeout)
        self._require_schema()
        with self._lock:
            return len(self._rows)

    def _require_schema(self) -> None:
        if not self._schema_ready:
            raise StoreError('relation "code_chunks" does not exist')


def _check_deadline(timeout: float | None) -> None:
    if timeout is not None and timeout <= 0:
        raise TimeoutError("deadline already expired")


def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    # pgvector 对零向量返回 NaN 距离；这里把它视为不相关
    norm = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if norm == 0.0:
        return float("-inf")
    return float(np.dot(a.astype(np.float64), b.astype(np.float64)) / norm)
