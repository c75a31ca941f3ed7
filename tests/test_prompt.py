from __future__ import annotations

from docassist.qa.prompt import build_answer_prompt
from docassist.storage.models import CodeChunk
from docassist.storage.models import Parameter
from docassist.storage.models import SearchResult


def _result() -> SearchResult:
    chunk = CodeChunk(
        name="Add",
        description="adds two integers",
        language="go",
        parameters=(Parameter(name="a", type="int"), Parameter(name="b", type="int")),
        returns=("int",),
        file_path="calc/add.go",
        start_line=3,
        end_line=5,
    )
    return SearchResult(chunk=chunk, similarity=0.9134)


def test_build_answer_prompt_snapshot() -> None:
    prompt = build_answer_prompt(question="how do I add?", results=[_result()])
    assert prompt == "\n".join(
        [
            "Question: how do I add?",
            "",
            "Relevant code context (sorted by similarity):",
            "",
            "File: calc/add.go (Lines 3-5)",
            "Function: Add",
            "Parameters: a int, b int",
            "Returns: int",
            "Description: adds two integers",
            "Relevance Score: 0.91",
            "",
            "Based on the code context above, with consideration for the relevance scores, "
            "please provide a clear and concise answer to the question.",
        ]
    )


def test_build_answer_prompt_is_deterministic() -> None:
    results = [_result(), _result()]
    assert build_answer_prompt("q", results) == build_answer_prompt("q", results)
