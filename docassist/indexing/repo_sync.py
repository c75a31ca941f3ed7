from __future__ import annotations

import logging
import os
import subprocess

from docassist.errors import CloneError

logger = logging.getLogger(__name__)

GITHUB_URL_PREFIXES = ("https://github.com/", "git@github.com:")


def is_github_url(source: str) -> bool:
    return source.startswith(GITHUB_URL_PREFIXES)


def repo_name_from_url(repo_url: str) -> str:
    name = repo_url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    name = name.removesuffix(".git")
    if not name:
        raise ValueError(f"Cannot derive repository name from {repo_url}")
    return name


class RepoCloner:
    """基于 git CLI 的浅克隆（只拉默认分支最新提交）。"""

    def __init__(self, git_bin: str) -> None:
        self._git_bin = git_bin

    def clone(self, repo_url: str, base_dir: str) -> str:
        if not is_github_url(repo_url):
            raise ValueError(f"Unsupported repository URL: {repo_url}")
        repo_dir = os.path.join(base_dir, repo_name_from_url(repo_url))
        if os.path.exists(repo_dir):
            raise CloneError(f"Clone target already exists: {repo_dir}")
        os.makedirs(base_dir, exist_ok=True)
        _run_git(self._git_bin, ["clone", "--depth", "1", repo_url, repo_dir], None)
        logger.info(f"Cloned {repo_url} into {repo_dir}")
        return repo_dir


def _run_git(git_bin: str, args: list[str], cwd: str | None) -> None:
    cmd = [git_bin] + args
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except OSError as exc:
        raise CloneError(f"git is not available: {exc}") from exc
    if result.returncode != 0:
        logger.error(f"git failed: {' '.join(cmd)}\nstdout={result.stdout}\nstderr={result.stderr}")
        raise CloneError(f"git command failed: {' '.join(cmd)}: {result.stderr.strip()}")
