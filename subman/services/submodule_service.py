"""Submodule service: add new tracked submodules and move them between versions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from subman.exceptions import (
    CheckoutFailedError,
    OperationCancelled,
    SubmanError,
    SubmoduleExistsError,
    TagNotFoundError,
)
from subman.filesystem.manifest_manager import (
    SubmoduleEntry,
    entry_name_for_path,
    find_entry_by_path,
    load_manifest,
    write_manifest,
)
from subman.services.datetime_service import format_timestamp, now_utc
from subman.services.git_service import normalize_path
from subman.services.sync_service import record_version_for_path
from subman.services.version_service import (
    Confirm,
    LatestPolicy,
    VersionService,
    accept_defaults,
)

if TYPE_CHECKING:
    from subman.config import Settings
    from subman.services.git_service import GitService

logger = logging.getLogger(__name__)

INITIAL_TAG_MESSAGE = "Initial release"


def path_from_url(url: str) -> str:
    """Derive a submodule path from its URL (``.../repo.git`` -> ``repo``)."""
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return name.removesuffix(".git")


@dataclass
class UpdateResult:
    """Outcome of moving one submodule to a version."""

    path: str
    previous: str | None
    target: str
    commit: str
    manifest_entry: str | None = None


@dataclass
class AddResult:
    """Outcome of adding a submodule."""

    path: str
    url: str
    version: str | None = None
    created_initial_tag: bool = False
    pushed: bool | None = None
    available_tags: list[str] = field(default_factory=list)
    manifest_entry: str | None = None
    parent_commit: str | None = None


class SubmoduleService:
    """Lifecycle operations on individual submodules of the parent repository."""

    def __init__(self, git: GitService, settings: Settings) -> None:
        self.git = git
        self.settings = settings
        self.versions = VersionService(git, settings)

    def update_to_version(
        self,
        path: str,
        version: str | None = None,
        policy: LatestPolicy | None = None,
    ) -> UpdateResult:
        """Check out ``path`` at an explicit tag, ``"latest"``, or the newest tag.

        The manifest entry for ``path``, when there is one, is pinned to the
        new tag and commit.
        """
        if not self.git.resolve_path(path).is_dir():
            raise SubmanError(f"Submodule directory '{path}' not found")
        if not self.git.is_initialized(path):
            logger.info("Initializing submodule %s", path)
            self.git.update_submodule(path)
        self.git.fetch_tags(path)

        head = self.versions.head_version(path)
        previous = head[0] if head is not None else self.git.current_commit(path)
        target = self.versions.resolve_target(path, version, policy)
        if not self.git.checkout_ref(path, f"tags/{target}"):
            raise CheckoutFailedError(path, f"tag {target}")
        commit = self.git.current_commit(path)
        if commit is None:
            raise CheckoutFailedError(path, f"tag {target}")
        logger.info("Updated %s to %s (%s)", path, target, commit)

        result = UpdateResult(path=path, previous=previous, target=target, commit=commit)
        manifest_path = self.settings.manifest_path
        if manifest_path.is_file():
            result.manifest_entry = record_version_for_path(manifest_path, path, target, commit)
        return result

    def add_submodule(
        self,
        url: str,
        path: str | None = None,
        version: str | None = None,
        confirm: Confirm = accept_defaults,
        initial_description: str | None = None,
    ) -> AddResult:
        """Register ``url`` as a submodule at ``path`` and pick its starting version.

        ``confirm`` decides the optional steps: adding over an existing
        repository, creating an initial tag, pushing it, checking out the latest
        version, and committing the result. A ``version`` that has no tag is
        either skipped or, when declined, the submodule is removed again and
        TagNotFoundError is raised.
        """
        path = normalize_path(path or path_from_url(url))
        if not path or path == ".":
            raise SubmanError(f"Cannot derive a submodule path from {url}")
        working_copy = self.git.resolve_path(path)
        existed = working_copy.exists()
        if existed:
            if not (working_copy / ".git").exists():
                msg = f"Directory '{path}' already exists and is not a git repository"
                raise SubmanError(msg)
            question = f"'{path}' is already a git repository. Add as submodule anyway?"
            if not confirm(question, False):
                raise OperationCancelled("Cancelled")
        if self.git.is_registered(path):
            raise SubmoduleExistsError(f"Submodule '{path}' already exists in .gitmodules")

        self.git.init_submodule(path, url)
        result = AddResult(path=path, url=url)

        self.git.fetch_tags(path)
        result.available_tags = self.versions.version_tags(path)
        if not result.available_tags:
            initial_tag = f"{self.settings.tag_prefix}0.0.1"
            if confirm(f"Create initial version tag ({initial_tag})?", True):
                message = initial_description or INITIAL_TAG_MESSAGE
                self.git.create_annotated_tag(path, initial_tag, message)
                result.created_initial_tag = True
                result.available_tags = [initial_tag]
                if confirm("Push tag to remote?", False):
                    result.pushed = self.git.push_tag(path, initial_tag)
                version = initial_tag

        if version is not None and not self.git.tag_exists(path, version):
            question = f"Tag {version} not found. Continue without checking out a version?"
            if not confirm(question, False):
                self.git.remove_submodule(path, keep_worktree=existed)
                raise TagNotFoundError(version, result.available_tags[-10:])
            logger.warning("Tag %s not found in %s, keeping the default branch", version, path)
        elif version is not None:
            if not self.git.checkout_ref(path, f"tags/{version}"):
                raise CheckoutFailedError(path, f"tag {version}")
            result.version = version
        elif result.available_tags:
            latest = result.available_tags[-1]
            if confirm(f"Checkout latest version ({latest})?", True):
                if not self.git.checkout_ref(path, f"tags/{latest}"):
                    raise CheckoutFailedError(path, f"tag {latest}")
                result.version = latest

        to_commit = [".gitmodules", path]
        result.manifest_entry = self._track_in_manifest(path, url, result.version)
        if result.manifest_entry is not None:
            to_commit.append(str(self.settings.manifest_file))

        message = f"Add submodule {path}"
        if result.version:
            message = f"{message} at {result.version}"
        if confirm("Commit submodule addition now?", True):
            result.parent_commit = self.git.commit_paths_in_parent(to_commit, message)
        return result

    def _track_in_manifest(self, path: str, url: str, version: str | None) -> str | None:
        manifest_path = self.settings.manifest_path
        if not manifest_path.is_file():
            return None
        manifest = load_manifest(manifest_path)
        if find_entry_by_path(manifest, path) is not None:
            logger.info("%s is already tracked in %s", path, manifest_path)
            return None

        name = entry_name_for_path(path)
        if name in manifest.submodules:
            name = path
        manifest.submodules[name] = SubmoduleEntry(
            path=path,
            url=url,
            tag=version,
            commit=self.git.current_commit(path),
        )
        manifest.last_updated = format_timestamp(now_utc())
        write_manifest(manifest_path, manifest)
        logger.info("Added %s to %s", name, manifest_path)
        return name
