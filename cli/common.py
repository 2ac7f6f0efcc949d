"""Helpers shared by the subman command-line tools."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from subman.config import Settings
from subman.exceptions import InvalidSettingsError
from subman.services.git_service import GitService
from subman.services.version_service import accept_all

if TYPE_CHECKING:
    import argparse

    from subman.services.version_service import Confirm


def configure_logging(debug: bool) -> None:
    """Send log records to stderr; only warnings unless debugging."""
    level = logging.DEBUG if debug else logging.WARNING
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Options every subman tool accepts."""
    parser.add_argument("--repo", "-C", help="Parent repository root (default: current)")
    parser.add_argument("--manifest", "-m", help="Manifest file (default: submodule-versions.json)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")


def load_settings(args: argparse.Namespace, **overrides: Any) -> Settings:
    """Build settings from the environment, with CLI flags taking precedence."""
    if getattr(args, "repo", None):
        overrides["repo_root"] = Path(args.repo)
    if getattr(args, "manifest", None):
        overrides["manifest_file"] = Path(args.manifest)
    if getattr(args, "debug", False):
        overrides["debug"] = True
    if getattr(args, "yes", False):
        overrides["assume_yes"] = True
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidSettingsError(f"Invalid settings: {problems}") from exc


def make_git(settings: Settings) -> GitService:
    """Create the git backend, failing early if git is missing."""
    git = GitService(
        settings.repo_root,
        remote=settings.remote,
        timeout=settings.git_timeout_seconds,
    )
    git.ensure_available()
    return git


def prompt_confirm(question: str, default: bool) -> bool:
    """Ask a yes/no question on the terminal."""
    hint = "[Y/n]" if default else "[y/N]"
    try:
        reply = input(f"{question} {hint} ").strip().lower()
    except EOFError:
        print()
        return default
    if not reply:
        return default
    return reply.startswith("y")


def make_confirm(assume_yes: bool) -> Confirm:
    """Interactive confirmation, or auto-accept when running non-interactively."""
    return accept_all if assume_yes else prompt_confirm
