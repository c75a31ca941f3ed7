from __future__ import annotations

import os
from collections.abc import Iterator

from docassist.errors import ParseError
from docassist.indexing.extractor import ChunkExtractor
from docassist.storage.models import CodeChunk

SKIPPED_DIRS = {".git", "vendor", "node_modules", "testdata", ".venv", "__pycache__"}

ExtractionResult = list[CodeChunk] | ParseError


def scan_source_files(root: str, extractor: ChunkExtractor) -> Iterator[str]:
    """按确定的顺序（目录名/文件名排序）产出 extractor 接受的文件路径。"""
    if os.path.isfile(root):
        if extractor.accepts(root):
            yield root
        return
    if not os.path.isdir(root):
        raise FileNotFoundError(f"No such file or directory: {root}")
    for current, dirs, filenames in os.walk(root):
        dirs[:] = sorted(d for d in dirs if d not in SKIPPED_DIRS and not d.startswith("."))
        for name in sorted(filenames):
            path = os.path.join(current, name)
            if extractor.accepts(path):
                yield path


def walk_source_tree(root: str, extractor: ChunkExtractor) -> Iterator[tuple[str, ExtractionResult]]:
    """
    惰性、一次性的 `(path, 结果)` 序列。

    单个文件解析失败时，结果是 `ParseError` 实例而不是抛出：
    继续还是中止由调用方决定。
    """
    for path in scan_source_files(root=root, extractor=extractor):
        try:
            yield path, extractor.extract(path)
        except ParseError as exc:
            yield path, exc
