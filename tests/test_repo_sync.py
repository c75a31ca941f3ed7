from __future__ import annotations

import pytest

from docassist.errors import CloneError
from docassist.indexing.repo_sync import RepoCloner
from docassist.indexing.repo_sync import is_github_url
from docassist.indexing.repo_sync import repo_name_from_url


def test_is_github_url() -> None:
    assert is_github_url("https://github.com/owner/repo")
    assert is_github_url("git@github.com:owner/repo.git")
    assert not is_github_url("/home/me/src/repo")
    assert not is_github_url("https://gitlab.com/owner/repo")


def test_repo_name_from_url() -> None:
    assert repo_name_from_url("https://github.com/owner/repo.git") == "repo"
    assert repo_name_from_url("https://github.com/owner/repo/") == "repo"
    assert repo_name_from_url("git@github.com:repo.git") == "repo"


def test_clone_rejects_non_github_url(tmp_path) -> None:
    with pytest.raises(ValueError):
        RepoCloner(git_bin="git").clone("https://example.com/repo.git", str(tmp_path))


def test_clone_reports_missing_git_binary(tmp_path) -> None:
    cloner = RepoCloner(git_bin=str(tmp_path / "no-such-git"))
    with pytest.raises(CloneError):
        cloner.clone("https://github.com/owner/repo", str(tmp_path / "work"))
