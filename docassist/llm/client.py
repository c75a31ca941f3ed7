"""
LLM Client（基于 OpenAI SDK，对接 OpenAI-compatible 网关，默认 Gemini）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **统一接口**：文本生成与 embedding 走同一个 `AsyncOpenAI` 客户端
- **不重试**：任何失败都是调用方操作的终止失败
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from docassist.errors import EmbeddingError
from docassist.errors import GenerationError

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


class GenerationParams(BaseModel):
    temperature: float = 0.3
    top_p: float = 0.8
    max_tokens: int = 1024


def _normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


class OpenAICompatLLMClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient,
        model: str,
        embedding_model: str,
        params: GenerationParams | None = None,
    ) -> None:
        """
        - api_key: provider API key
        - base_url: OpenAI-compatible base URL
        - http_client: 复用 httpx.AsyncClient 连接池
        - model / embedding_model: 生成模型与 embedding 模型
        """
        self._base_url = _normalize_base_url(base_url=base_url)
        self._model = model
        self._embedding_model = embedding_model
        self._params = params or GenerationParams()
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client)

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        """调用 chat completion 并返回纯文本 content；任何失败都抛 `GenerationError`。"""
        try:
            logger.info(f"LLM request: model={self._model}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                temperature=self._params.temperature,
                top_p=self._params.top_p,
                max_tokens=self._params.max_tokens,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            logger.error(f"LLM API error: {exc}")
            raise GenerationError(f"generation request failed: {exc}") from exc

        if not response.choices:
            raise GenerationError("LLM returned no choices")
        content = response.choices[0].message.content
        if content is None or not content.strip():
            logger.error("LLM returned empty content")
            raise GenerationError("LLM returned empty content")

        logger.info(f"LLM response: {len(content)} chars")
        return content.strip()

    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """
        批量生成 embedding，顺序与输入一致。

        失败统一抛 `EmbeddingError`（保留原始异常作为 cause）。
        """
        if not texts:
            return []
        try:
            logger.debug(f"Embedding request: model={self._embedding_model}, texts={len(texts)}")
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=list(texts),
                encoding_format="float",
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            logger.error(f"Embedding API error: {exc}")
            raise EmbeddingError(f"embedding request failed: {exc}") from exc

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(texts):
            raise EmbeddingError(f"expected {len(texts)} embeddings, got {len(items)}")
        return [list(item.embedding) for item in items]
