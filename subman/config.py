"""Tool configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from subman.services.version_service import LatestPolicy


class Settings(BaseSettings):
    """subman settings.

    Every field can be overridden with a ``SUBMAN_``-prefixed environment
    variable (``SUBMAN_ASSUME_YES=1``) or a ``.env`` file in the working
    directory. CLI flags take precedence over both.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUBMAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    repo_root: Path = Path(".")
    manifest_file: Path = Path("submodule-versions.json")

    # Git
    remote: str = "origin"
    tag_prefix: str = "v"
    tag_pattern: str = "v*"
    git_timeout_seconds: float | None = Field(default=None, gt=0)

    # Version lookup
    latest_policy: LatestPolicy = LatestPolicy.CURRENT_MAJOR
    latest_default_major: int = Field(default=1, ge=0)

    # Behaviour
    assume_yes: bool = False
    bump_switch_branch: bool = False
    debug: bool = False

    @property
    def manifest_path(self) -> Path:
        """Manifest location, resolved against ``repo_root`` when relative."""
        if self.manifest_file.is_absolute():
            return self.manifest_file
        return self.repo_root / self.manifest_file
