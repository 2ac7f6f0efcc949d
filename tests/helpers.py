"""Test doubles and git repository builders shared across test modules."""

from __future__ import annotations

import fnmatch
import json
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

SUBMODULE_PATH = "libs/core"

UPSTREAM_TAGS = ["v0.1.0", "v1.0.0", "v1.9.0", "v1.10.0", "v2.0.0"]


def run_git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def init_repo(path: Path) -> Path:
    """Create a repository on branch main with one initial commit."""
    path.mkdir(parents=True, exist_ok=True)
    run_git(path, "init", "--quiet")
    run_git(path, "checkout", "--quiet", "-b", "main")
    commit_file(path, "README.md", "initial\n", "Initial commit")
    return path


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write a file, commit it, and return the new commit hash."""
    target = repo / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    run_git(repo, "add", "--", name)
    run_git(repo, "commit", "--quiet", "-m", message)
    return run_git(repo, "rev-parse", "HEAD")


def make_upstream(path: Path, tags: list[str]) -> dict[str, str]:
    """Create a repository with one annotated tag per commit, in the given order.

    Leaves an untagged commit on main after the last tag and a ``develop``
    branch one commit ahead of it. Returns tag -> commit.
    """
    init_repo(path)
    tagged: dict[str, str] = {}
    for tag in tags:
        commit = commit_file(path, "VERSION", f"{tag}\n", f"Release {tag}")
        run_git(path, "tag", "-a", tag, "-m", f"Version {tag}")
        tagged[tag] = commit
    tagged["main"] = commit_file(path, "CHANGES", "unreleased\n", "Work in progress")
    run_git(path, "checkout", "--quiet", "-b", "develop")
    tagged["develop"] = commit_file(path, "DEV", "dev\n", "Develop work")
    run_git(path, "checkout", "--quiet", "main")
    return tagged


def write_manifest_json(path: Path, data: dict[str, Any]) -> Path:
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def manifest_data(
    last_updated: str | None = "2026-01-01T00:00:00Z", **entries: dict[str, Any]
) -> dict[str, Any]:
    """Build a manifest document; each keyword is an entry name."""
    return {"last_updated": last_updated, "submodules": entries}


@dataclass
class FakeRepo:
    """One working copy in the fake backend."""

    head: str
    commits: set[str] = field(default_factory=set)
    tags: dict[str, str] = field(default_factory=dict)
    branches: dict[str, str] = field(default_factory=dict)
    branch: str | None = None
    # Refs only reachable after the matching fetch
    remote_tags: dict[str, str] = field(default_factory=dict)
    remote_branches: dict[str, str] = field(default_factory=dict)
    remote_commits: set[str] = field(default_factory=set)


class FakeGit:
    """In-memory stand-in for GitService implementing the GitBackend surface."""

    def __init__(self) -> None:
        self.repos: dict[str, FakeRepo] = {}
        self.uninitialized: dict[str, FakeRepo] = {}
        self.calls: list[tuple[str, ...]] = []
        self.failing_checkouts: set[str] = set()
        self.failing_pushes: set[str] = set()
        self.failing_fetches: set[str] = set()
        self.parent_commits: list[tuple[list[str], str]] = []

    def add_repo(self, path: str, head: str = "a" * 40, **kwargs: Any) -> FakeRepo:
        repo = FakeRepo(head=head, **kwargs)
        repo.commits.add(head)
        repo.commits.update(repo.tags.values())
        repo.commits.update(repo.branches.values())
        self.repos[path] = repo
        return repo

    # -- GitBackend ------------------------------------------------------------

    def init_submodule(self, path: str, url: str) -> None:
        self.calls.append(("init_submodule", path, url))
        if path in self.uninitialized:
            self.repos[path] = self.uninitialized.pop(path)

    def is_initialized(self, path: str) -> bool:
        return path in self.repos

    def fetch_tags(self, path: str) -> bool:
        self.calls.append(("fetch_tags", path))
        if path in self.failing_fetches:
            return False
        repo = self.repos[path]
        repo.tags.update(repo.remote_tags)
        repo.commits.update(repo.remote_tags.values())
        return True

    def fetch_branch(self, path: str, name: str) -> bool:
        self.calls.append(("fetch_branch", path, name))
        if path in self.failing_fetches:
            return False
        repo = self.repos[path]
        if name in repo.remote_branches:
            repo.branches[name] = repo.remote_branches[name]
            repo.commits.add(repo.remote_branches[name])
        return True

    def fetch_all(self, path: str) -> bool:
        self.calls.append(("fetch_all", path))
        if path in self.failing_fetches:
            return False
        repo = self.repos[path]
        repo.commits.update(repo.remote_commits)
        return True

    def checkout_ref(self, path: str, ref: str) -> bool:
        self.calls.append(("checkout_ref", path, ref))
        repo = self.repos.get(path)
        if repo is None or path in self.failing_checkouts:
            return False
        if ref.startswith("tags/"):
            commit = repo.tags.get(ref.removeprefix("tags/"))
            if commit is None:
                return False
            repo.head, repo.branch = commit, None
        elif ref in repo.branches:
            repo.head, repo.branch = repo.branches[ref], ref
        elif ref in repo.tags:
            repo.head, repo.branch = repo.tags[ref], None
        elif ref in repo.commits:
            repo.head, repo.branch = ref, None
        else:
            return False
        return True

    def current_commit(self, path: str) -> str | None:
        repo = self.repos.get(path)
        return repo.head if repo else None

    def tags_at_head(self, path: str, pattern: str = "*") -> list[str]:
        repo = self.repos.get(path)
        if repo is None:
            return []
        return sorted(
            tag
            for tag, commit in repo.tags.items()
            if commit == repo.head and fnmatch.fnmatch(tag, pattern)
        )

    def current_branch(self, path: str) -> str | None:
        repo = self.repos.get(path)
        return repo.branch if repo else None

    def list_tags(self, path: str, pattern: str = "v*") -> list[str]:
        return sorted(t for t in self.repos[path].tags if fnmatch.fnmatch(t, pattern))

    def tag_exists(self, path: str, name: str) -> bool:
        return name in self.repos[path].tags

    def local_branch_exists(self, path: str, name: str) -> bool:
        return name in self.repos[path].branches

    def create_annotated_tag(self, path: str, name: str, message: str) -> None:
        self.calls.append(("create_annotated_tag", path, name, message))
        repo = self.repos[path]
        if name in repo.tags:
            raise AssertionError(f"tag {name} created twice")
        repo.tags[name] = repo.head

    def push_tag(self, path: str, name: str) -> bool:
        self.calls.append(("push_tag", path, name))
        return path not in self.failing_pushes

    def commit_paths_in_parent(self, paths: list[str], message: str) -> str | None:
        self.parent_commits.append((paths, message))
        return "f" * 40
