"""Git service: submodule working-copy operations via the git CLI."""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path, PurePosixPath
from typing import Protocol

from subman.exceptions import BackendUnavailableError, GitCommandError

logger = logging.getLogger(__name__)

_SUBMODULE_PATH_KEY_RE = re.compile(r"^submodule\..+\.path$")


def normalize_path(path: str | Path) -> str:
    """Normalize a repository-relative path for comparison (``./a/b/`` -> ``a/b``)."""
    text = str(path).replace("\\", "/").strip()
    normalized = str(PurePosixPath(text))
    return normalized.removeprefix("./")


class GitBackend(Protocol):
    """The version-control capabilities the manifest core depends on."""

    def init_submodule(self, path: str, url: str) -> None: ...

    def is_initialized(self, path: str) -> bool: ...

    def fetch_tags(self, path: str) -> bool: ...

    def fetch_branch(self, path: str, name: str) -> bool: ...

    def fetch_all(self, path: str) -> bool: ...

    def checkout_ref(self, path: str, ref: str) -> bool: ...

    def current_commit(self, path: str) -> str | None: ...

    def tags_at_head(self, path: str, pattern: str = "*") -> list[str]: ...

    def current_branch(self, path: str) -> str | None: ...

    def list_tags(self, path: str, pattern: str = "v*") -> list[str]: ...

    def tag_exists(self, path: str, name: str) -> bool: ...

    def create_annotated_tag(self, path: str, name: str, message: str) -> None: ...

    def push_tag(self, path: str, name: str) -> bool: ...

    def commit_paths_in_parent(self, paths: list[str], message: str) -> str | None: ...


class GitService:
    """Wraps git CLI operations on a parent repository and its submodules.

    Every call names the working copy it operates on; paths are resolved
    against ``repo_root`` and passed to git with ``-C`` so the process
    working directory is never changed.
    """

    def __init__(
        self,
        repo_root: Path,
        *,
        remote: str = "origin",
        timeout: float | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.remote = remote
        self.timeout = timeout

    def resolve_path(self, path: str | Path) -> Path:
        """Location of ``path`` on disk (relative paths are taken from ``repo_root``)."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.repo_root / candidate

    def _run(
        self,
        path: str | Path,
        *args: str,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command inside the working copy at ``path``."""
        cmd = ["git", "-C", str(self.resolve_path(path)), *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BackendUnavailableError("git is required but was not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(list(args), -1, f"timed out after {self.timeout}s") from exc
        if check and result.returncode != 0:
            raise GitCommandError(list(args), result.returncode, result.stderr)
        return result

    def ensure_available(self) -> None:
        """Raise BackendUnavailableError if git is not installed."""
        if shutil.which("git") is None:
            raise BackendUnavailableError("git is required but was not found on PATH")

    # -- parent repository ---------------------------------------------------

    def submodule_paths(self) -> list[str]:
        """Return the submodule paths registered in the parent's .gitmodules."""
        if not (self.repo_root / ".gitmodules").is_file():
            return []
        result = self._run(
            ".",
            "config",
            "--file",
            ".gitmodules",
            "--get-regexp",
            r"^submodule\..*\.path$",
            check=False,
        )
        # exit 1 means "no matching keys"
        if result.returncode != 0:
            return []
        paths: list[str] = []
        for line in result.stdout.splitlines():
            key, _, value = line.partition(" ")
            if _SUBMODULE_PATH_KEY_RE.match(key) and value:
                paths.append(normalize_path(value))
        return paths

    def is_registered(self, path: str) -> bool:
        """Check if ``path`` is already listed in .gitmodules."""
        return normalize_path(path) in self.submodule_paths()

    def init_submodule(self, path: str, url: str) -> None:
        """Initialize the submodule at ``path``, adding it from ``url`` if unregistered."""
        if self.is_registered(path):
            self.update_submodule(path)
        else:
            self._run(".", "submodule", "add", "--", url, path)
            logger.info("Added submodule %s from %s", path, url)

    def update_submodule(self, path: str) -> None:
        """Initialize and update one registered submodule."""
        self._run(".", "submodule", "update", "--init", "--recursive", "--", path)
        logger.info("Initialized submodule %s", path)

    def update_submodules(self) -> None:
        """Initialize and update every registered submodule recursively."""
        self._run(".", "submodule", "update", "--init", "--recursive")

    def remove_submodule(self, path: str, keep_worktree: bool = False) -> None:
        """Undo ``init_submodule`` for ``path`` so it can be added again.

        With ``keep_worktree`` only the registration is dropped and the
        directory is left in place.
        """
        if keep_worktree:
            self._run(".", "rm", "-r", "--cached", "--force", "--quiet", "--", path)
        else:
            self._run(".", "submodule", "deinit", "--force", "--", path, check=False)
            self._run(".", "rm", "-r", "--force", "--quiet", "--", path)
            git_dir = self._run(".", "rev-parse", "--absolute-git-dir").stdout.strip()
            shutil.rmtree(Path(git_dir) / "modules" / path, ignore_errors=True)
        # git rm only edits .gitmodules when it also removes the work tree
        self._run(
            ".",
            "config",
            "--file",
            ".gitmodules",
            "--remove-section",
            f"submodule.{path}",
            check=False,
        )
        gitmodules = self.repo_root / ".gitmodules"
        if gitmodules.is_file():
            if gitmodules.read_text(encoding="utf-8").strip():
                self._run(".", "add", "--", ".gitmodules")
            else:
                self._run(".", "rm", "--force", "--quiet", "--", ".gitmodules")
        logger.info("Removed submodule %s", path)

    def commit_paths_in_parent(self, paths: list[str], message: str) -> str | None:
        """Stage ``paths`` in the parent and commit them.

        Returns the new commit hash, or None if nothing changed.
        """
        self._run(".", "add", "--", *paths)
        result = self._run(".", "diff", "--cached", "--quiet", "--", *paths, check=False)
        if result.returncode == 0:
            return None
        self._run(".", "commit", "--quiet", "-m", message, "--", *paths)
        return self.current_commit(".")

    def commit_path_in_parent(self, path: str, message: str) -> str | None:
        """Record an updated submodule pointer in the parent repository."""
        return self.commit_paths_in_parent([path], message)

    # -- submodule working copies ----------------------------------------------

    def is_initialized(self, path: str) -> bool:
        """Check if ``path`` holds its own checked-out git repository."""
        working_copy = self.resolve_path(path)
        # A bare directory inside the parent would otherwise resolve to the
        # parent's own HEAD.
        if not (working_copy / ".git").exists():
            return False
        result = self._run(path, "rev-parse", "--verify", "--quiet", "HEAD", check=False)
        return result.returncode == 0

    def fetch_tags(self, path: str) -> bool:
        """Refresh tags from the remote. Returns False (and logs) on failure."""
        return self._try_fetch(path, "fetch", "--tags", "--quiet", self.remote)

    def fetch_branch(self, path: str, name: str) -> bool:
        """Fetch a single branch from the remote."""
        return self._try_fetch(path, "fetch", "--quiet", self.remote, name)

    def fetch_all(self, path: str) -> bool:
        """Fetch all remotes."""
        return self._try_fetch(path, "fetch", "--all", "--quiet")

    def _try_fetch(self, path: str, *args: str) -> bool:
        result = self._run(path, *args, check=False)
        if result.returncode != 0:
            logger.warning(
                "git %s failed in %s (exit %d): %s",
                " ".join(args),
                path,
                result.returncode,
                result.stderr.strip() or "no stderr",
            )
            return False
        return True

    def checkout_ref(self, path: str, ref: str) -> bool:
        """Check out ``ref`` (tag, branch or commit). Returns True on success."""
        result = self._run(path, "checkout", "--quiet", ref, "--", check=False)
        if result.returncode != 0:
            logger.debug("git checkout %s failed in %s: %s", ref, path, result.stderr.strip())
            return False
        return True

    def current_commit(self, path: str) -> str | None:
        """Return the HEAD commit hash, or None if the working copy has no commits."""
        result = self._run(path, "rev-parse", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def tags_at_head(self, path: str, pattern: str = "*") -> list[str]:
        """List every tag matching ``pattern`` that points at HEAD."""
        result = self._run(path, "tag", "--points-at", "HEAD", "--list", pattern, check=False)
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def current_branch(self, path: str) -> str | None:
        """Return the checked-out branch name, or None when HEAD is detached."""
        result = self._run(path, "rev-parse", "--abbrev-ref", "HEAD", check=False)
        if result.returncode != 0:
            return None
        name = result.stdout.strip()
        return None if name == "HEAD" else name

    def list_tags(self, path: str, pattern: str = "v*") -> list[str]:
        """List tag names matching a glob ``pattern`` (git's order, not version order)."""
        result = self._run(path, "tag", "--list", pattern)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def tag_exists(self, path: str, name: str) -> bool:
        """Check if a tag called ``name`` exists in the working copy."""
        result = self._run(
            path, "rev-parse", "--verify", "--quiet", f"refs/tags/{name}", check=False
        )
        return result.returncode == 0

    def tag_commit(self, path: str, name: str) -> str | None:
        """Return the commit a tag points at, or None if the tag does not exist."""
        result = self._run(
            path, "rev-parse", "--verify", "--quiet", f"refs/tags/{name}^{{commit}}", check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def local_branch_exists(self, path: str, name: str) -> bool:
        """Check if a local branch ``name`` exists."""
        result = self._run(
            path, "show-ref", "--verify", "--quiet", f"refs/heads/{name}", check=False
        )
        return result.returncode == 0

    def create_annotated_tag(self, path: str, name: str, message: str) -> None:
        """Create an annotated tag at HEAD."""
        self._run(path, "tag", "--annotate", "--message", message, name)
        logger.info("Created tag %s in %s", name, path)

    def push_tag(self, path: str, name: str) -> bool:
        """Push a tag to the remote, logging an error on failure instead of raising."""
        result = self._run(path, "push", "--quiet", self.remote, f"refs/tags/{name}", check=False)
        if result.returncode != 0:
            logger.error(
                "Failed to push tag %s from %s (exit %d): %s",
                name,
                path,
                result.returncode,
                result.stderr.strip() or "no stderr",
            )
            return False
        return True
