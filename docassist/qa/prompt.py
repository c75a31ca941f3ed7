from __future__ import annotations

from collections.abc import Sequence

from docassist.storage.models import SearchResult


def build_answer_prompt(question: str, results: Sequence[SearchResult]) -> str:
    """
    把问题和检索结果拼成 prompt（纯函数，便于快照测试）。

    结果按传入顺序输出（调用方保证已按相似度降序）。
    """
    parts: list[str] = [f"Question: {question}", "", "Relevant code context (sorted by similarity):"]
    for result in results:
        chunk = result.chunk
        parts.append("")
        parts.append(f"File: {chunk.file_path} (Lines {chunk.start_line}-{chunk.end_line})")
        parts.append(f"Function: {chunk.name}")
        if chunk.parameters:
            params = ", ".join(f"{p.name} {p.type}".strip() for p in chunk.parameters)
            parts.append(f"Parameters: {params}")
        if chunk.returns:
            parts.append(f"Returns: {', '.join(chunk.returns)}")
        parts.append(f"Description: {chunk.description}")
        parts.append(f"Relevance Score: {result.similarity:.2f}")
    parts.append("")
    parts.append(
        "Based on the code context above, with consideration for the relevance scores, "
        "please provide a clear and concise answer to the question."
    )
    return "\n".join(parts)
