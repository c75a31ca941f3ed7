from __future__ import annotations

import anyio

from docassist.indexing.extractor import GoChunkExtractor
from docassist.indexing.repo_sync import RepoCloner
from docassist.service import AssistantService
from docassist.storage.chunk_store import ChunkStore
from docassist.storage.memory import InMemoryChunkRepository

ADD_SOURCE = """package calc

// Add adds two integers.
func Add(a int, b int) int {
	return a + b
}
"""


def test_ingest_directory_then_ask_retrieves_add(
    tmp_path,
    repository: InMemoryChunkRepository,
    embedder,
    generator,
) -> None:
    (tmp_path / "calc").mkdir()
    (tmp_path / "calc" / "add.go").write_text(ADD_SOURCE, encoding="utf-8")
    (tmp_path / "calc" / "add_test.go").write_text("package calc\n\nfunc TestAdd() {}\n", encoding="utf-8")

    service = AssistantService(
        store=ChunkStore(repository=repository, embedder=embedder),
        generator=generator,
        extractor=GoChunkExtractor(),
        cloner=RepoCloner(git_bin="git"),
    )

    summary = anyio.run(service.ingest, str(tmp_path))
    assert summary.chunks_stored == 1
    assert summary.files_indexed == 1
    assert summary.files_skipped == 0

    results = anyio.run(service.store.search_chunks, "how do I add two numbers?")
    [result] = results
    assert result.chunk.name == "Add"
    assert result.chunk.description == "Add adds two integers."
    assert (result.chunk.start_line, result.chunk.end_line) == (4, 6)
    assert result.similarity > 0.7

    answer = anyio.run(service.ask, "how do I add two numbers?")
    assert answer
    assert "Add" in answer
    assert "Description: Add adds two integers." in generator.prompts[0]
