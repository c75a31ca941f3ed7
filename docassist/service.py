"""
服务层：把 ingest / ask 两个入口需要的依赖装配在一起，供 HTTP 与 CLI 共用。
"""

from __future__ import annotations

from dataclasses import dataclass

from docassist.indexing.extractor import ChunkExtractor
from docassist.indexing.indexer import IngestSummary
from docassist.indexing.indexer import ingest_source
from docassist.indexing.repo_sync import RepoCloner
from docassist.qa.answerer import TextGenerator
from docassist.qa.answerer import answer_question
from docassist.storage.chunk_store import DEFAULT_MIN_SIMILARITY
from docassist.storage.chunk_store import DEFAULT_TOP_K
from docassist.storage.chunk_store import ChunkStore


@dataclass(frozen=True)
class AssistantService:
    store: ChunkStore
    generator: TextGenerator
    extractor: ChunkExtractor
    cloner: RepoCloner
    top_k: int = DEFAULT_TOP_K
    min_similarity: float = DEFAULT_MIN_SIMILARITY

    async def ingest(self, source: str) -> IngestSummary:
        return await ingest_source(store=self.store, extractor=self.extractor, cloner=self.cloner, source=source)

    async def ask(self, question: str) -> str:
        return await answer_question(
            store=self.store,
            generator=self.generator,
            question=question,
            top_k=self.top_k,
            min_similarity=self.min_similarity,
        )
