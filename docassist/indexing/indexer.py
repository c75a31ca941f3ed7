from __future__ import annotations

import logging
import tempfile

import anyio
from pydantic import BaseModel

from docassist.errors import ParseError
from docassist.indexing.extractor import ChunkExtractor
from docassist.indexing.file_scanner import walk_source_tree
from docassist.indexing.repo_sync import RepoCloner
from docassist.indexing.repo_sync import is_github_url
from docassist.storage.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


class IngestSummary(BaseModel):
    chunks_stored: int = 0
    files_indexed: int = 0
    files_skipped: int = 0


async def index_directory(store: ChunkStore, extractor: ChunkExtractor, root: str) -> IngestSummary:
    """
    逐文件 parse -> store。

    - 解析失败：记 warning、计入 skipped，继续下一个文件
    - embedding / 存储失败：原样抛出，中止本次 ingest（已提交的文件批次保留）
    """
    summary = IngestSummary()
    for path, result in walk_source_tree(root=root, extractor=extractor):
        if isinstance(result, ParseError):
            logger.warning(f"Skipping {path}: {result}")
            summary.files_skipped += 1
            continue
        summary.chunks_stored += await store.store_chunks(result)
        summary.files_indexed += 1
    logger.info(
        f"Ingested {root}: chunks={summary.chunks_stored}, files={summary.files_indexed}, skipped={summary.files_skipped}"
    )
    return summary


async def ingest_source(
    store: ChunkStore,
    extractor: ChunkExtractor,
    cloner: RepoCloner,
    source: str,
) -> IngestSummary:
    """本地目录直接索引；GitHub URL 先克隆到临时目录，结束后删除。"""
    if not source.strip():
        raise ValueError("source must not be empty")
    if not is_github_url(source):
        return await index_directory(store=store, extractor=extractor, root=source)
    with tempfile.TemporaryDirectory(prefix="docassist-") as base_dir:
        repo_dir = await anyio.to_thread.run_sync(cloner.clone, source, base_dir)
        return await index_directory(store=store, extractor=extractor, root=repo_dir)
