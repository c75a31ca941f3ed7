from __future__ import annotations

import anyio
import pytest

from docassist.errors import RelevanceError
from docassist.qa.answerer import NOT_INGESTED_MESSAGE
from docassist.qa.answerer import NO_RELEVANT_CONTENT_MESSAGE
from docassist.qa.answerer import answer_question
from docassist.qa.answerer import generate_answer
from docassist.storage.chunk_store import ChunkStore
from docassist.storage.models import CodeChunk


def _chunk(name: str, description: str) -> CodeChunk:
    return CodeChunk(name=name, description=description, language="go", file_path="m.go", start_line=1, end_line=2)


def test_generate_answer_refuses_without_results(generator) -> None:
    with pytest.raises(RelevanceError):
        anyio.run(generate_answer, generator, "q", [])
    assert generator.prompts == []


def test_answer_question_on_empty_store_asks_to_ingest_first(store: ChunkStore, generator) -> None:
    with pytest.raises(RelevanceError) as exc_info:
        anyio.run(answer_question, store, generator, "how do I add?")
    assert str(exc_info.value) == NOT_INGESTED_MESSAGE


def test_answer_question_without_relevant_chunks(store: ChunkStore, generator) -> None:
    anyio.run(store.store_chunks, [_chunk("Sub", "subtracts")])
    with pytest.raises(RelevanceError) as exc_info:
        anyio.run(answer_question, store, generator, "how do I add?")
    assert str(exc_info.value) == NO_RELEVANT_CONTENT_MESSAGE


def test_answer_question_uses_retrieved_context(store: ChunkStore, generator) -> None:
    anyio.run(store.store_chunks, [_chunk("Add", "adds two integers"), _chunk("Sub", "subtracts")])
    answer = anyio.run(answer_question, store, generator, "how do I add two numbers?")
    assert answer == "Use Add from the retrieved context."
    [prompt] = generator.prompts
    assert "Function: Add" in prompt
    assert "Function: Sub" not in prompt


def test_answer_question_rejects_blank_question(store: ChunkStore, generator) -> None:
    with pytest.raises(ValueError):
        anyio.run(answer_question, store, generator, "  ")
