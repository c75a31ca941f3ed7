from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np
import psycopg
from pgvector.psycopg import register_vector
from psycopg.types.json import Jsonb

from docassist.errors import StoreError
from docassist.storage.models import CodeChunk
from docassist.storage.models import SearchResult

logger = logging.getLogger(__name__)

IVFFLAT_LISTS = 100
DEFAULT_IVFFLAT_PROBES = 10


class PgChunkRepository:
    """
    Postgres + pgvector 连接器（每次调用独立连接，可被多个请求并发使用）。

    每个方法都接收 `timeout`（秒，`None` 表示不限）：
    - 连接阶段：作为 `connect_timeout`
    - 语句阶段：事务内 `statement_timeout`，超时由服务端取消并回滚，抛 `TimeoutError`
    """

    def __init__(self, dsn: str, embedding_dim: int, ivfflat_probes: int = DEFAULT_IVFFLAT_PROBES) -> None:
        if embedding_dim <= 0:
            raise ValueError("embedding_dim must be > 0")
        if ivfflat_probes <= 0:
            raise ValueError("ivfflat_probes must be > 0")
        self._dsn = dsn
        self._embedding_dim = embedding_dim
        self._ivfflat_probes = ivfflat_probes

    @property
    def embedding_dim(self) -> int:
        return self._embedding_dim

    def connect(self, timeout: float | None = None) -> psycopg.Connection:
        conn = self._connect_plain(timeout=timeout)
        try:
            register_vector(conn)
        except psycopg.Error as exc:
            conn.close()
            raise StoreError(f"pgvector is not available: {exc}") from exc
        return conn

    def ping(self, timeout: float | None = None) -> None:
        with self._connect_plain(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    conn.execute("SELECT 1")
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"database ping timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"database ping failed: {exc}") from exc

    def ensure_schema(self, timeout: float | None = None) -> None:
        # 扩展必须在 register_vector 之前存在，所以这里用不注册类型的连接
        with self._connect_plain(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    _create_schema(conn, self._embedding_dim)
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"schema initialization timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"failed to initialize schema: {exc}") from exc

    def reset_schema(self, timeout: float | None = None) -> None:
        with self._connect_plain(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    conn.execute("DROP TABLE IF EXISTS code_chunks")
                    _create_schema(conn, self._embedding_dim)
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"schema reset timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"failed to reset schema: {exc}") from exc
        logger.warning("code_chunks table dropped and recreated")

    def insert_chunks(
        self,
        chunks: Sequence[CodeChunk],
        embeddings: Sequence[np.ndarray],
        timeout: float | None = None,
    ) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        if not chunks:
            return 0
        rows = [
            (chunk.file_path, Jsonb(chunk.model_dump(mode="json")), np.asarray(embedding, dtype=np.float32))
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]
        with self.connect(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    with conn.cursor() as cur:
                        cur.executemany(
                            """
                            INSERT INTO code_chunks (file_path, chunk_text, embedding)
                            VALUES (%s, %s, %s)
                            """,
                            rows,
                        )
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"insert of {len(rows)} chunk(s) timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"failed to insert {len(rows)} chunk(s): {exc}") from exc
        return len(rows)

    def search(
        self,
        query_embedding: np.ndarray,
        limit: int,
        min_similarity: float,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        query = np.asarray(query_embedding, dtype=np.float32)
        with self.connect(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    # 默认 probes=1 只扫描一个聚类，会漏掉阈值以上的结果
                    conn.execute("SELECT set_config('ivfflat.probes', %s, true)", (str(self._ivfflat_probes),))
                    with conn.cursor() as cur:
                        cur.execute(
                            """
                            SELECT chunk_text, 1 - (embedding <=> %(query)s) AS similarity
                            FROM code_chunks
                            WHERE 1 - (embedding <=> %(query)s) > %(min_similarity)s
                            ORDER BY embedding <=> %(query)s, id
                            LIMIT %(limit)s
                            """,
                            {"query": query, "min_similarity": min_similarity, "limit": limit},
                        )
                        rows = cur.fetchall()
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"chunk search timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"failed to search chunks: {exc}") from exc
        return [SearchResult(chunk=CodeChunk.model_validate(row[0]), similarity=float(row[1])) for row in rows]

    def count_chunks(self, timeout: float | None = None) -> int:
        with self._connect_plain(timeout=timeout) as conn:
            try:
                with conn.transaction():
                    _set_statement_timeout(conn, timeout)
                    row = conn.execute("SELECT count(*) FROM code_chunks").fetchone()
            except psycopg.errors.QueryCanceled as exc:
                raise TimeoutError(f"chunk count timed out: {exc}") from exc
            except psycopg.Error as exc:
                raise StoreError(f"failed to count chunks: {exc}") from exc
        return int(row[0]) if row is not None else 0

    def _connect_plain(self, timeout: float | None = None) -> psycopg.Connection:
        kwargs: dict[str, int] = {}
        if timeout is not None:
            # libpq 的 connect_timeout 以整秒计，且最小为 2
            kwargs["connect_timeout"] = max(2, math.ceil(timeout))
        try:
            return psycopg.connect(self._dsn, **kwargs)
        except psycopg.Error as exc:
            raise StoreError(f"failed to connect to database: {exc}") from exc


def _set_statement_timeout(conn: psycopg.Connection, timeout: float | None) -> None:
    if timeout is None:
        return
    millis = max(1, math.ceil(timeout * 1000))
    conn.execute("SELECT set_config('statement_timeout', %s, true)", (f"{millis}ms",))


def _create_schema(conn: psycopg.Connection, embedding_dim: int) -> None:
    conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS code_chunks (
            id BIGSERIAL PRIMARY KEY,
            file_path TEXT NOT NULL,
            chunk_text JSONB NOT NULL,
            embedding VECTOR({int(embedding_dim)}) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.execute(
        f"""
        CREATE INDEX IF NOT EXISTS code_chunks_embedding_idx
        ON code_chunks USING ivfflat (embedding vector_cosine_ops)
        WITH (lists = {IVFFLAT_LISTS})
        """
    )
