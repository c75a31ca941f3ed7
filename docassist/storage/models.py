from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Parameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str


class CodeChunk(BaseModel):
    """一次抽取得到的函数级 chunk（存储为 JSONB 文档）。"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    language: str
    parameters: tuple[Parameter, ...] = ()
    returns: tuple[str, ...] = ()
    file_path: str
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_line_span(self) -> CodeChunk:
        if self.end_line < self.start_line:
            raise ValueError(f"end_line {self.end_line} < start_line {self.start_line}")
        return self


class SearchResult(BaseModel):
    chunk: CodeChunk
    similarity: float


def chunk_embedding_text(chunk: CodeChunk) -> str:
    """用于生成 embedding 的文本：函数名 + 换行 + 描述。"""
    return f"{chunk.name}\n{chunk.description}"
