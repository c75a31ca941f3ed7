"""
命令行入口。

  docassist ingest <目录或 GitHub URL>
  docassist ask "<问题>"
  docassist serve
  docassist reset   # 删除全部已索引数据并重建表
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence

import anyio
import httpx
import uvicorn

from docassist.config import AppConfig
from docassist.config import load_config_from_env
from docassist.errors import DocAssistError
from docassist.errors import RelevanceError
from docassist.main import build_service
from docassist.main import create_app

logger = logging.getLogger("docassist.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docassist", description="Ask questions about a Go codebase.")
    sub = parser.add_subparsers(dest="command", required=True)
    ingest = sub.add_parser("ingest", help="index a local directory or a GitHub repository")
    ingest.add_argument("source")
    ask = sub.add_parser("ask", help="answer a question from the indexed code")
    ask.add_argument("question")
    sub.add_parser("serve", help="run the HTTP API")
    sub.add_parser("reset", help="drop and recreate the chunk table")
    return parser


async def _run_ingest(config: AppConfig, source: str) -> int:
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        service = build_service(config=config, http_client=http_client)
        summary = await service.ingest(source)
    print(f"Ingested {summary.chunks_stored} chunk(s) from {summary.files_indexed} file(s); skipped {summary.files_skipped}")
    return 0


async def _run_ask(config: AppConfig, question: str) -> int:
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        service = build_service(config=config, http_client=http_client)
        try:
            answer = await service.ask(question)
        except RelevanceError as exc:
            print(str(exc), file=sys.stderr)
            return 2
    print(answer)
    return 0


async def _run_reset(config: AppConfig) -> int:
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http_client:
        service = build_service(config=config, http_client=http_client)
        await service.store.reset()
    print("Chunk table reset")
    return 0


def _serve(config: AppConfig) -> int:
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))
    service = build_service(config=config, http_client=http_client)
    app = create_app(service=service, timeout_seconds=config.request_timeout_seconds)
    uvicorn.run(app, host="0.0.0.0", port=config.server_port)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = load_config_from_env(os.environ)
    try:
        if args.command == "ingest":
            return anyio.run(_run_ingest, config, args.source)
        if args.command == "ask":
            return anyio.run(_run_ask, config, args.question)
        if args.command == "reset":
            return anyio.run(_run_reset, config)
        return _serve(config)
    except DocAssistError as exc:
        logger.error(f"{args.command} failed: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
