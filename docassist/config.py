"""
应用配置加载。

设计目标：
- **显式**：进程启动时构造一次 `AppConfig`，通过参数传给各组件（没有全局单例）
- **严格**：缺少必要环境变量、或数值非法就直接报错
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping

from psycopg.conninfo import make_conninfo
from pydantic import BaseModel, Field, HttpUrl, ValidationError

DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"


class DatabaseConfig(BaseModel):
    host: str
    port: int = Field(gt=0, lt=65536)
    user: str
    password: str
    name: str
    connect_timeout: int = Field(default=10, gt=0)

    def dsn(self) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            dbname=self.name,
            connect_timeout=self.connect_timeout,
        )


class LLMConfig(BaseModel):
    """OpenAI-compatible 网关（默认是 Gemini 的兼容端点）。"""

    base_url: HttpUrl
    api_key: str
    model: str
    embedding_model: str
    embedding_dim: int = Field(gt=0, le=65535)


class SearchConfig(BaseModel):
    top_k: int = Field(gt=0)
    min_similarity: float = Field(ge=-1.0, le=1.0)
    ivfflat_probes: int = Field(gt=0)


class AppConfig(BaseModel):
    database: DatabaseConfig
    llm: LLMConfig
    search: SearchConfig
    server_port: int = Field(gt=0, lt=65536)
    request_timeout_seconds: float = Field(gt=0)
    git_bin: str


def _get(environ: Mapping[str, str], key: str, default: str) -> str:
    value = environ.get(key)
    if value:
        return value
    return default


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：缺少 `GEMINI_API_KEY`，或任一值校验失败，抛 `ValueError`
    """

    api_key = environ.get("GEMINI_API_KEY", "")
    if not api_key:
        raise ValueError("Missing required env vars: GEMINI_API_KEY")

    try:
        return AppConfig(
            database=DatabaseConfig(
                host=_get(environ, "DB_HOST", "localhost"),
                port=_get(environ, "DB_PORT", "5432"),
                user=_get(environ, "DB_USER", "postgres"),
                password=environ.get("DB_PASSWORD", ""),
                name=_get(environ, "DB_NAME", "docassistant"),
            ),
            llm=LLMConfig(
                base_url=_get(environ, "LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
                api_key=api_key,
                model=_get(environ, "LLM_MODEL", "gemini-2.0-flash-001"),
                embedding_model=_get(environ, "EMBEDDING_MODEL", "text-embedding-004"),
                embedding_dim=_get(environ, "EMBEDDING_DIM", "768"),
            ),
            search=SearchConfig(
                top_k=_get(environ, "SEARCH_TOP_K", "5"),
                min_similarity=_get(environ, "SEARCH_MIN_SIMILARITY", "0.7"),
                ivfflat_probes=_get(environ, "SEARCH_IVFFLAT_PROBES", "10"),
            ),
            server_port=_get(environ, "SERVER_PORT", "8080"),
            request_timeout_seconds=_get(environ, "REQUEST_TIMEOUT_SECONDS", "120"),
            git_bin=_get(environ, "GIT_BIN", "git"),
        )
    except ValidationError as exc:
        # pydantic 的 ValidationError 本身就是 ValueError 子类，这里统一成可读信息
        raise ValueError(f"Invalid configuration: {exc}") from exc
