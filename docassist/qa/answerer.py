"""
Answer Composer。

流程：检索（ChunkStore）-> 拼 prompt（纯函数）-> 文本生成（LLM 单次调用）。
没有任何 chunk 超过阈值时绝不“裸答”，而是抛 `RelevanceError`。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from docassist.errors import RelevanceError
from docassist.llm.client import ChatMessage
from docassist.qa.prompt import build_answer_prompt
from docassist.storage.chunk_store import DEFAULT_MIN_SIMILARITY
from docassist.storage.chunk_store import DEFAULT_TOP_K
from docassist.storage.chunk_store import ChunkStore
from docassist.storage.models import SearchResult

logger = logging.getLogger(__name__)

NOT_INGESTED_MESSAGE = "No code has been ingested yet. Please ingest a codebase first using the /ingest endpoint."
NO_RELEVANT_CONTENT_MESSAGE = "No relevant code found in the codebase for the question."


class TextGenerator(Protocol):
    async def complete_text(self, messages: Sequence[ChatMessage]) -> str: ...


async def generate_answer(generator: TextGenerator, question: str, results: Sequence[SearchResult]) -> str:
    if not results:
        raise RelevanceError(NO_RELEVANT_CONTENT_MESSAGE)
    prompt = build_answer_prompt(question=question, results=results)
    logger.debug(f"Answer prompt: {prompt}")
    return await generator.complete_text(messages=[ChatMessage(role="user", content=prompt)])


async def answer_question(
    store: ChunkStore,
    generator: TextGenerator,
    question: str,
    top_k: int = DEFAULT_TOP_K,
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> str:
    if not question.strip():
        raise ValueError("question must not be empty")
    results = await store.search_chunks(query=question, top_k=top_k, min_similarity=min_similarity)
    if not results and await store.count_chunks() == 0:
        raise RelevanceError(NOT_INGESTED_MESSAGE)
    return await generate_answer(generator=generator, question=question, results=results)
