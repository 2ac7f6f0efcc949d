"""JSON manifest reader/writer for submodule-versions.json."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from subman.exceptions import ManifestParseError
from subman.services.git_service import normalize_path

logger = logging.getLogger(__name__)


class SubmoduleEntry(BaseModel):
    """Desired (tag/branch) and observed (commit) state of one submodule."""

    model_config = ConfigDict(extra="allow")

    path: str = Field(min_length=1)
    url: str = ""
    tag: str | None = None
    branch: str | None = None
    commit: str | None = None
    description: str = ""

    @field_validator("tag", "branch", "commit", mode="before")
    @classmethod
    def blank_is_absent(cls, v: Any) -> Any:
        """Treat empty or whitespace-only references as not set."""
        _ = cls
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("path")
    @classmethod
    def path_must_be_nonblank(cls, v: str) -> str:
        _ = cls
        if not v.strip():
            raise ValueError("Submodule path must not be empty or whitespace-only")
        return v


class Manifest(BaseModel):
    """The whole manifest document. Entry order is the file's key order."""

    model_config = ConfigDict(extra="allow")

    last_updated: str | None = None
    submodules: dict[str, SubmoduleEntry] = Field(default_factory=dict)


def find_duplicate_paths(manifest: Manifest) -> dict[str, list[str]]:
    """Return normalized paths claimed by more than one entry, mapped to the entry names."""
    owners: dict[str, list[str]] = {}
    for name, entry in manifest.submodules.items():
        owners.setdefault(normalize_path(entry.path), []).append(name)
    return {path: names for path, names in owners.items() if len(names) > 1}


def find_entry_by_path(manifest: Manifest, path: str) -> str | None:
    """Return the name of the entry tracking ``path``, or None."""
    wanted = normalize_path(path)
    for name, entry in manifest.submodules.items():
        if normalize_path(entry.path) == wanted:
            return name
    return None


def entry_name_for_path(path: str) -> str:
    """Default manifest key for a submodule at ``path`` (its last component)."""
    return normalize_path(path).rsplit("/", 1)[-1]


def parse_manifest(text: str) -> Manifest:
    """Parse and validate manifest JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(f"Manifest is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestParseError("Manifest must be a JSON object")
    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestParseError(f"Invalid manifest: {exc}") from exc

    duplicates = find_duplicate_paths(manifest)
    if duplicates:
        details = "; ".join(
            f"{path} ({', '.join(names)})" for path, names in sorted(duplicates.items())
        )
        raise ManifestParseError(f"Duplicate submodule paths in manifest: {details}")
    return manifest


def load_manifest(manifest_path: Path) -> Manifest:
    """Load the manifest from disk."""
    if not manifest_path.is_file():
        raise ManifestParseError(f"{manifest_path} not found")
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"Could not read {manifest_path}: {exc}") from exc
    return parse_manifest(text)


def dump_manifest(manifest: Manifest) -> str:
    """Serialize a manifest with the layout used on disk."""
    data = manifest.model_dump(mode="json")
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_manifest(manifest_path: Path, manifest: Manifest) -> None:
    """Write the manifest atomically.

    The document goes to a unique temp file next to the target which is then
    renamed over it, so an interrupted or failed write leaves the original
    file untouched.
    """
    payload = dump_manifest(manifest).encode("utf-8")
    fd, tmp_name = tempfile.mkstemp(
        dir=manifest_path.parent,
        prefix=f"{manifest_path.name}.",
        suffix=".tmp",
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        mode = manifest_path.stat().st_mode if manifest_path.exists() else 0o644
        tmp_path.chmod(stat.S_IMODE(mode))
        tmp_path.replace(manifest_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug("Wrote manifest %s", manifest_path)
