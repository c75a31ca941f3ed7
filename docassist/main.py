"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / LLM Client / Chunk Store）
- 装配路由（health + ingest + ask）

注意：
- 数据库连不上、schema 初始化失败会直接抛错，启动失败（这是期望行为）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）
"""

from __future__ import annotations

import os

import httpx
from fastapi import FastAPI

from docassist.api.routes import build_router
from docassist.config import AppConfig
from docassist.config import load_config_from_env
from docassist.indexing.extractor import GoChunkExtractor
from docassist.indexing.repo_sync import RepoCloner
from docassist.llm.client import OpenAICompatLLMClient
from docassist.service import AssistantService
from docassist.storage.chunk_store import open_chunk_store


def build_service(config: AppConfig, http_client: httpx.AsyncClient) -> AssistantService:
    llm_client = OpenAICompatLLMClient(
        api_key=config.llm.api_key,
        base_url=str(config.llm.base_url),
        http_client=http_client,
        model=config.llm.model,
        embedding_model=config.llm.embedding_model,
    )
    store = open_chunk_store(config=config, embedder=llm_client)
    return AssistantService(
        store=store,
        generator=llm_client,
        extractor=GoChunkExtractor(),
        cloner=RepoCloner(git_bin=config.git_bin),
        top_k=config.search.top_k,
        min_similarity=config.search.min_similarity,
    )


def create_app(service: AssistantService, timeout_seconds: float) -> FastAPI:
    app = FastAPI(title="Intelligent Doc Assistant", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(build_router(service=service, timeout_seconds=timeout_seconds))
    return app


def build_app() -> FastAPI:
    """按环境变量装配完整应用（供 uvicorn 的 factory 模式使用）。"""
    config = load_config_from_env(os.environ)
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))
    service = build_service(config=config, http_client=http_client)
    return create_app(service=service, timeout_seconds=config.request_timeout_seconds)
