"""Version service: semantic-version tags on submodule working copies."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from subman.exceptions import (
    CheckoutFailedError,
    InvalidVersionError,
    NotInitializedError,
    SubmanError,
    TagAlreadyExistsError,
    TagNotFoundError,
)
from subman.services.sync_service import record_version_for_path

if TYPE_CHECKING:
    from subman.config import Settings
    from subman.services.git_service import GitService

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

# Asked with (question, default answer); returns the user's decision.
Confirm = Callable[[str, bool], bool]


def accept_all(question: str, default: bool) -> bool:
    """Confirmation callback that answers yes to everything."""
    _ = question, default
    return True


def accept_defaults(question: str, default: bool) -> bool:
    """Confirmation callback that always takes the default answer."""
    _ = question
    return default


class BumpKind(StrEnum):
    """Which version component a bump increments."""

    MAJOR = "major"
    MINOR = "minor"
    FIX = "fix"


class LatestPolicy(StrEnum):
    """How ``latest`` picks a version when looking up the newest tag."""

    CURRENT_MAJOR = "current-major"  # stay on the checked-out major, else highest overall
    FIXED_MAJOR = "fixed-major"  # stay on the checked-out major, else the configured one
    ABSOLUTE = "absolute"  # highest version overall


_RELEASE_NAMES = {
    BumpKind.MAJOR: "Major release",
    BumpKind.MINOR: "Minor release",
    BumpKind.FIX: "Bug fix release",
}


@dataclass(frozen=True, order=True)
class Version:
    """A MAJOR.MINOR.PATCH version; ordering compares the numbers, not strings."""

    major: int
    minor: int
    patch: int

    def bump(self, kind: BumpKind) -> Version:
        if kind is BumpKind.MAJOR:
            return Version(self.major + 1, 0, 0)
        if kind is BumpKind.MINOR:
            return Version(self.major, self.minor + 1, 0)
        return Version(self.major, self.minor, self.patch + 1)

    def tag(self, prefix: str = "v") -> str:
        return f"{prefix}{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        return self.tag()


ZERO_VERSION = Version(0, 0, 0)


def parse_version(tag: str, prefix: str = "v") -> Version:
    """Parse ``v1.2.3`` (or ``1.2.3``) into a Version."""
    text = tag.strip()
    if prefix and text.startswith(prefix):
        text = text[len(prefix) :]
    match = _VERSION_RE.match(text)
    if match is None:
        raise InvalidVersionError(f"Could not parse version from tag: {tag}")
    major, minor, patch = (int(part) for part in match.groups())
    return Version(major, minor, patch)


def try_parse_version(tag: str, prefix: str = "v") -> Version | None:
    """Like parse_version, but returns None for tags that are not versions."""
    try:
        return parse_version(tag, prefix)
    except InvalidVersionError:
        return None


def bump_version(version: Version, kind: BumpKind | str) -> Version:
    """Return the version after a major/minor/fix bump."""
    return version.bump(BumpKind(kind))


def sort_versions(tags: Iterable[str], prefix: str = "v") -> list[str]:
    """Order version tags ascending by (major, minor, patch), dropping non-version tags."""
    parsed: list[tuple[Version, str]] = []
    for tag in tags:
        version = try_parse_version(tag, prefix)
        if version is not None:
            parsed.append((version, tag))
    parsed.sort()
    return [tag for _, tag in parsed]


def latest_version(
    tags: Iterable[str],
    *,
    major: int | None = None,
    prefix: str = "v",
) -> str | None:
    """Return the highest version tag, optionally restricted to one major version."""
    candidates = sort_versions(tags, prefix)
    if major is not None:
        candidates = [t for t in candidates if parse_version(t, prefix).major == major]
    return candidates[-1] if candidates else None


def default_description(tag: str, kind: BumpKind) -> str:
    """Tag message used when the caller supplies none."""
    return f"Version {tag} - {_RELEASE_NAMES[kind]}"


@dataclass
class BumpPlan:
    """A computed, not yet applied, version bump."""

    path: str
    kind: BumpKind
    current_tag: str | None
    current: Version
    new: Version
    new_tag: str


@dataclass
class BumpResult:
    """What ``release`` actually did."""

    tag: str
    created: bool
    commit: str | None = None
    message: str = ""
    pushed: bool | None = None  # None: push not attempted
    manifest_entry: str | None = None
    parent_commit: str | None = None


class VersionService:
    """Computes and creates version tags on submodule working copies."""

    def __init__(self, git: GitService, settings: Settings) -> None:
        self.git = git
        self.settings = settings

    @property
    def prefix(self) -> str:
        return self.settings.tag_prefix

    def version_tags(self, path: str) -> list[str]:
        """All version tags of the working copy, ascending by version."""
        return sort_versions(self.git.list_tags(path, self.settings.tag_pattern), self.prefix)

    def head_version(self, path: str) -> tuple[str, Version] | None:
        """Return the highest version tag pointing at HEAD, if any.

        HEAD may carry several tags; non-version tags among them are ignored.
        """
        tags = self.git.tags_at_head(path, self.settings.tag_pattern)
        latest = latest_version(tags, prefix=self.prefix)
        if latest is None:
            if tags:
                logger.debug("No version tag among %s on HEAD of %s", tags, path)
            return None
        return latest, parse_version(latest, self.prefix)

    def current_version(self, path: str) -> tuple[str | None, Version]:
        """Return (tag, version) the working copy is at.

        Uses the version tag on HEAD if there is one, otherwise the highest
        existing version tag, otherwise 0.0.0 with no tag.
        """
        head = self.head_version(path)
        if head is not None:
            return head

        tags = self.git.list_tags(path, self.settings.tag_pattern)
        latest = latest_version(tags, prefix=self.prefix)
        if latest is None:
            return None, ZERO_VERSION
        return latest, parse_version(latest, self.prefix)

    def switch_to_default_branch(self, path: str) -> str | None:
        """Leave detached HEAD for main (or master). Returns the branch switched to."""
        if self.git.current_branch(path) is not None:
            return None
        for name in ("main", "master"):
            if self.git.local_branch_exists(path, name):
                if not self.git.checkout_ref(path, name):
                    raise CheckoutFailedError(path, name)
                logger.info("Switched %s from detached HEAD to %s", path, name)
                return name
        raise SubmanError(
            f"No main or master branch found in {path}. Please checkout a branch first."
        )

    def plan_bump(self, path: str, kind: BumpKind | str) -> BumpPlan:
        """Compute the next version tag for ``path`` without creating it."""
        if not self.git.is_initialized(path):
            raise NotInitializedError(path)
        kind = BumpKind(kind)
        if self.settings.bump_switch_branch:
            self.switch_to_default_branch(path)
        self.git.fetch_tags(path)

        current_tag, current = self.current_version(path)
        new = current.bump(kind)
        new_tag = new.tag(self.prefix)
        if self.git.tag_exists(path, new_tag):
            raise TagAlreadyExistsError(new_tag)
        return BumpPlan(
            path=path,
            kind=kind,
            current_tag=current_tag,
            current=current,
            new=new,
            new_tag=new_tag,
        )

    def release(
        self,
        plan: BumpPlan,
        description: str | None = None,
        confirm: Confirm = accept_defaults,
        update_manifest: bool = True,
    ) -> BumpResult:
        """Create the planned tag, then optionally push it and commit the new pointer.

        ``confirm`` is asked before each step. A failed push is reported in the
        result but does not undo the local tag. With ``update_manifest`` the
        manifest entry tracking the submodule, if any, is pinned to the new tag.
        """
        message = description or default_description(plan.new_tag, plan.kind)
        result = BumpResult(tag=plan.new_tag, created=False, message=message)
        if not confirm(f"Create tag {plan.new_tag}?", False):
            return result

        if self.git.tag_exists(plan.path, plan.new_tag):
            raise TagAlreadyExistsError(plan.new_tag)
        result.commit = self.git.current_commit(plan.path)
        self.git.create_annotated_tag(plan.path, plan.new_tag, message)
        result.created = True

        if confirm("Push tag to remote?", False):
            result.pushed = self.git.push_tag(plan.path, plan.new_tag)

        paths = [plan.path]
        manifest_path = self.settings.manifest_path
        if update_manifest and manifest_path.is_file() and result.commit is not None:
            result.manifest_entry = record_version_for_path(
                manifest_path, plan.path, plan.new_tag, result.commit
            )
            if result.manifest_entry is not None:
                paths.append(str(self.settings.manifest_file))

        commit_message = f"Update {plan.path} to {plan.new_tag}"
        if description:
            commit_message = f"{commit_message}\n\n{description}"
        if confirm("Commit submodule update in parent repository?", True):
            result.parent_commit = self.git.commit_paths_in_parent(paths, commit_message)
        return result

    def latest_scope(self, path: str, policy: LatestPolicy) -> int | None:
        """Major version ``latest`` is restricted to under ``policy`` (None: unrestricted)."""
        if policy is LatestPolicy.ABSOLUTE:
            return None
        head = self.head_version(path)
        if head is not None:
            return head[1].major
        if policy is LatestPolicy.FIXED_MAJOR:
            return self.settings.latest_default_major
        return None

    def resolve_target(
        self,
        path: str,
        version: str | None = None,
        policy: LatestPolicy | None = None,
    ) -> str:
        """Pick the tag to move ``path`` to.

        ``version`` is an explicit tag, ``"latest"`` (newest within the major
        chosen by ``policy``) or None (newest overall).
        """
        if version and version != "latest":
            if not self.git.tag_exists(path, version):
                raise TagNotFoundError(version, self.version_tags(path)[-10:])
            return version

        major = None
        if version == "latest":
            major = self.latest_scope(path, policy or self.settings.latest_policy)
        target = latest_version(
            self.git.list_tags(path, self.settings.tag_pattern), major=major, prefix=self.prefix
        )
        if target is None:
            wanted = f"{self.prefix}{major}.*" if major is not None else self.settings.tag_pattern
            raise TagNotFoundError(wanted)
        return target
