"""Sync service: resolve manifest entries, check them out, and capture state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from subman.exceptions import (
    CheckoutFailedError,
    NotInitializedError,
    SubmanError,
    UnresolvableEntryError,
)
from subman.filesystem.manifest_manager import find_entry_by_path, load_manifest, write_manifest
from subman.services.datetime_service import format_timestamp, now_utc

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from subman.filesystem.manifest_manager import Manifest, SubmoduleEntry
    from subman.services.git_service import GitBackend

logger = logging.getLogger(__name__)


class RefKind(StrEnum):
    """Kind of reference a manifest entry resolves to."""

    TAG = "tag"
    BRANCH = "branch"
    COMMIT = "commit"


class EntryStatus(StrEnum):
    """Outcome of processing one manifest entry."""

    OK = "ok"
    UNRESOLVABLE = "unresolvable"
    NOT_INITIALIZED = "not_initialized"
    CHECKOUT_FAILED = "checkout_failed"
    SKIPPED = "skipped"


_FAILURE_STATUSES = frozenset(
    {EntryStatus.UNRESOLVABLE, EntryStatus.NOT_INITIALIZED, EntryStatus.CHECKOUT_FAILED}
)


@dataclass(frozen=True)
class ResolvedRef:
    """The concrete reference chosen for an entry."""

    kind: RefKind
    value: str

    def __str__(self) -> str:
        return f"{self.kind} {self.value}"


@dataclass
class EntryOutcome:
    """Result for a single entry of a batch operation."""

    name: str
    path: str
    status: EntryStatus
    target: ResolvedRef | None = None
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.status in _FAILURE_STATUSES


@dataclass
class SyncReport:
    """Aggregated per-entry outcomes, in manifest order."""

    outcomes: list[EntryOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.status is EntryStatus.OK]

    @property
    def failures(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def skipped(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.status is EntryStatus.SKIPPED]

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        """One line for full success, otherwise one line per failed entry."""
        if self.ok:
            return f"{len(self.succeeded)} submodule(s) ok, {len(self.skipped)} skipped."
        lines = [f"{len(self.failures)} of {len(self.outcomes)} submodule(s) failed:"]
        for outcome in self.failures:
            lines.append(f"  {outcome.name} ({outcome.path}): {outcome.status}: {outcome.detail}")
        return "\n".join(lines)


@dataclass
class SubmoduleStatus:
    """Declared versus observed state of one submodule."""

    name: str
    path: str
    declared_tag: str | None
    declared_branch: str | None
    declared_commit: str | None
    initialized: bool
    commit: str | None = None
    tags: list[str] = field(default_factory=list)
    branch: str | None = None

    @property
    def in_sync(self) -> bool:
        if not self.initialized:
            return False
        if self.declared_tag is not None:
            return self.declared_tag in self.tags
        if self.declared_branch is not None:
            return self.branch == self.declared_branch
        if self.declared_commit is not None:
            return self.commit is not None and self.commit.startswith(self.declared_commit)
        return False


def resolve(entry: SubmoduleEntry, name: str | None = None) -> ResolvedRef:
    """Choose the reference to check out: tag, then branch, then commit."""
    if entry.tag:
        return ResolvedRef(RefKind.TAG, entry.tag)
    if entry.branch:
        return ResolvedRef(RefKind.BRANCH, entry.branch)
    if entry.commit:
        return ResolvedRef(RefKind.COMMIT, entry.commit)
    raise UnresolvableEntryError(name or entry.path)


def checkout(git: GitBackend, path: str, ref: ResolvedRef) -> None:
    """Fetch and check out ``ref`` in the initialized working copy at ``path``.

    Fetch failures are only logged: the ref may already be present locally.
    Raises CheckoutFailedError if the final checkout does not succeed.
    """
    if not git.is_initialized(path):
        raise NotInitializedError(path)

    if ref.kind is RefKind.TAG:
        git.fetch_tags(path)
        # The qualified form keeps a same-named branch from shadowing the tag.
        if git.checkout_ref(path, f"tags/{ref.value}") or git.checkout_ref(path, ref.value):
            return
    elif ref.kind is RefKind.BRANCH:
        git.fetch_branch(path, ref.value)
        if git.checkout_ref(path, ref.value):
            return
    else:
        git.fetch_all(path)
        if git.checkout_ref(path, ref.value):
            return
    raise CheckoutFailedError(path, str(ref))


def _sync_entry(
    git: GitBackend,
    name: str,
    entry: SubmoduleEntry,
    *,
    init_missing: bool,
) -> EntryOutcome:
    try:
        ref = resolve(entry, name)
    except UnresolvableEntryError as exc:
        return EntryOutcome(name, entry.path, EntryStatus.UNRESOLVABLE, detail=str(exc))

    if init_missing and not git.is_initialized(entry.path):
        if not entry.url:
            logger.warning("Cannot initialize %s: no url in manifest", name)
        else:
            try:
                git.init_submodule(entry.path, entry.url)
            except SubmanError as exc:
                logger.warning("Failed to initialize %s: %s", name, exc)

    try:
        checkout(git, entry.path, ref)
    except NotInitializedError as exc:
        return EntryOutcome(name, entry.path, EntryStatus.NOT_INITIALIZED, ref, str(exc))
    except SubmanError as exc:
        return EntryOutcome(name, entry.path, EntryStatus.CHECKOUT_FAILED, ref, str(exc))
    return EntryOutcome(name, entry.path, EntryStatus.OK, ref)


def synchronize_all(
    manifest: Manifest,
    git: GitBackend,
    *,
    init_missing: bool = False,
) -> SyncReport:
    """Check out every entry to its resolved reference, in manifest order.

    A failing entry is recorded and processing continues with the next one.
    The manifest itself is not modified.
    """
    report = SyncReport()
    for name, entry in manifest.submodules.items():
        logger.info("Processing %s", name)
        outcome = _sync_entry(git, name, entry, init_missing=init_missing)
        if outcome.failed:
            logger.warning("%s: %s", name, outcome.detail)
        else:
            logger.info("Checked out %s at %s", name, outcome.target)
        report.outcomes.append(outcome)
    return report


def capture_state(
    manifest: Manifest,
    git: GitBackend,
    *,
    now: datetime | None = None,
) -> tuple[Manifest, SyncReport]:
    """Record each initialized working copy's HEAD commit in a copy of ``manifest``.

    Only ``commit`` fields and ``last_updated`` change. Uninitialized working
    copies are reported as skipped.
    """
    updated = manifest.model_copy(deep=True)
    report = SyncReport()
    for name, entry in updated.submodules.items():
        commit = git.current_commit(entry.path) if git.is_initialized(entry.path) else None
        if commit is None:
            logger.warning("%s (path: %s) is not initialized, skipping", name, entry.path)
            report.outcomes.append(
                EntryOutcome(name, entry.path, EntryStatus.SKIPPED, detail="not initialized")
            )
            continue
        entry.commit = commit
        logger.info("Found commit for %s: %s", name, commit)
        report.outcomes.append(
            EntryOutcome(name, entry.path, EntryStatus.OK, ResolvedRef(RefKind.COMMIT, commit))
        )
    updated.last_updated = format_timestamp(now or now_utc())
    return updated, report


def collect_status(manifest: Manifest, git: GitBackend) -> list[SubmoduleStatus]:
    """Compare each entry's declared reference with what is checked out."""
    statuses: list[SubmoduleStatus] = []
    for name, entry in manifest.submodules.items():
        status = SubmoduleStatus(
            name=name,
            path=entry.path,
            declared_tag=entry.tag,
            declared_branch=entry.branch,
            declared_commit=entry.commit,
            initialized=git.is_initialized(entry.path),
        )
        if status.initialized:
            status.commit = git.current_commit(entry.path)
            status.tags = git.tags_at_head(entry.path)
            status.branch = git.current_branch(entry.path)
        statuses.append(status)
    return statuses


def record_version(
    manifest: Manifest,
    name: str,
    tag: str,
    commit: str,
    *,
    now: datetime | None = None,
) -> Manifest:
    """Return a copy of ``manifest`` with entry ``name`` pinned to ``tag``.

    Sets the tag and the commit it points at, and clears the branch so no stale
    intent outranks the new tag.
    """
    updated = manifest.model_copy(deep=True)
    entry = updated.submodules[name]
    entry.tag = tag
    entry.commit = commit
    entry.branch = None
    updated.last_updated = format_timestamp(now or now_utc())
    return updated


def record_version_for_path(
    manifest_path: Path,
    path: str,
    tag: str,
    commit: str,
    *,
    now: datetime | None = None,
) -> str | None:
    """Pin the entry tracking ``path`` in the manifest file to ``tag``.

    Returns the entry name, or None (with a warning) if no entry tracks ``path``.
    """
    manifest = load_manifest(manifest_path)
    name = find_entry_by_path(manifest, path)
    if name is None:
        logger.warning(
            "Submodule %s not found in %s, skipping manifest update", path, manifest_path
        )
        return None
    write_manifest(manifest_path, record_version(manifest, name, tag, commit, now=now))
    logger.info("Updated %s in %s: tag %s, commit %s", name, manifest_path, tag, commit)
    return name
