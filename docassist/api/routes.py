"""
HTTP 接入层。

- `POST /ingest`：`{"repoPath": "..."}`，本地目录或 GitHub URL
- `POST /ask`：`{"question": "..."}`
- 统一响应：`{"success": bool, "data": ..., "error": "..."}`

每个请求都包在 `anyio.fail_after` 里：超时即取消整个调用链。
"""

from __future__ import annotations

import logging
from typing import Any

import anyio
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docassist.errors import CloneError
from docassist.errors import EmbeddingError
from docassist.errors import FormatError
from docassist.errors import GenerationError
from docassist.errors import RelevanceError
from docassist.errors import StoreError
from docassist.service import AssistantService

logger = logging.getLogger(__name__)


class IngestRequest(BaseModel):
    repoPath: str


class AskRequest(BaseModel):
    question: str


class ApiResponse(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


def _respond(status_code: int, payload: ApiResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


def _error(status_code: int, message: str) -> JSONResponse:
    return _respond(status_code, ApiResponse(success=False, error=message))


def _map_exception(exc: Exception) -> JSONResponse:
    if isinstance(exc, RelevanceError):
        return _error(404, str(exc))
    if isinstance(exc, FileNotFoundError):
        return _error(422, str(exc))
    if isinstance(exc, ValueError):
        return _error(400, str(exc))
    if isinstance(exc, TimeoutError):
        return _error(504, "Request timed out")
    if isinstance(exc, EmbeddingError):
        return _error(502, f"Embedding provider failed: {exc}")
    if isinstance(exc, GenerationError):
        return _error(502, f"Failed to generate answer: {exc}")
    if isinstance(exc, CloneError):
        return _error(502, f"Failed to clone repository: {exc}")
    if isinstance(exc, (StoreError, FormatError)):
        return _error(500, f"Storage failed: {exc}")
    return _error(500, f"Internal error: {type(exc).__name__}")


def build_router(service: AssistantService, timeout_seconds: float) -> APIRouter:
    router = APIRouter()

    @router.post("/ingest")
    async def ingest(req: IngestRequest) -> JSONResponse:
        try:
            with anyio.fail_after(timeout_seconds):
                summary = await service.ingest(req.repoPath)
        except Exception as exc:
            logger.exception(f"Ingest failed for {req.repoPath}: {exc}")
            return _map_exception(exc)
        data = {
            "chunksStored": summary.chunks_stored,
            "filesIndexed": summary.files_indexed,
            "filesSkipped": summary.files_skipped,
        }
        return _respond(200, ApiResponse(success=True, data=data))

    @router.post("/ask")
    async def ask(req: AskRequest) -> JSONResponse:
        try:
            with anyio.fail_after(timeout_seconds):
                answer = await service.ask(req.question)
        except Exception as exc:
            logger.exception(f"Ask failed: {exc}")
            return _map_exception(exc)
        return _respond(200, ApiResponse(success=True, data={"answer": answer}))

    return router
