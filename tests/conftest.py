"""Shared test fixtures for subman."""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

import pytest

from subman.config import Settings
from subman.services.git_service import GitService
from tests.helpers import SUBMODULE_PATH, UPSTREAM_TAGS, FakeGit, init_repo, make_upstream

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_git_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give git a fixed identity and keep user/system config out of tests."""
    for key in list(os.environ):
        if key.startswith("SUBMAN_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Subman Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "subman@localhost")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Subman Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "subman@localhost")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    # Local-path submodule URLs are refused by default since git 2.38.1
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", "protocol.file.allow")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", "always")


@pytest.fixture
def fake_git() -> FakeGit:
    """In-memory git backend with no working copies."""
    return FakeGit()


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """A repository with version tags v0.1.0 .. v2.0.0, acting as the remote."""
    path = tmp_path / "upstream"
    make_upstream(path, UPSTREAM_TAGS)
    return path


@pytest.fixture
def parent_repo(tmp_path: Path, upstream: Path) -> Path:
    """A parent repository with ``upstream`` cloned at libs/core."""
    parent = init_repo(tmp_path / "parent")
    subprocess.run(
        ["git", "clone", "--quiet", str(upstream), str(parent / SUBMODULE_PATH)],
        check=True,
        capture_output=True,
    )
    return parent


@pytest.fixture
def settings(parent_repo: Path) -> Settings:
    """Settings rooted at the parent repository."""
    return Settings(_env_file=None, repo_root=parent_repo)  # type: ignore[call-arg]


@pytest.fixture
def git_service(parent_repo: Path) -> GitService:
    """Git backend for the parent repository."""
    return GitService(parent_repo)
