"""CLI for checking out, capturing, and inspecting submodule versions."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from cli.common import add_common_arguments, configure_logging, load_settings, make_git
from subman.exceptions import GitCommandError, SubmanError
from subman.filesystem.manifest_manager import load_manifest, write_manifest
from subman.services.datetime_service import describe_age
from subman.services.sync_service import (
    EntryStatus,
    capture_state,
    collect_status,
    synchronize_all,
)

if TYPE_CHECKING:
    from subman.config import Settings
    from subman.services.git_service import GitService

logger = logging.getLogger(__name__)


def cmd_checkout(settings: Settings, git: GitService, init: bool) -> int:
    """Check out every submodule to the version recorded in the manifest."""
    manifest_path = settings.manifest_path
    print(f"Checking out submodules to versions specified in {manifest_path}...")
    manifest = load_manifest(manifest_path)

    if init:
        try:
            git.update_submodules()
        except GitCommandError as exc:
            logger.warning("git submodule update failed: %s", exc)

    report = synchronize_all(manifest, git, init_missing=init)
    for outcome in report.outcomes:
        if outcome.status is EntryStatus.OK:
            print(f"  {outcome.name}: checked out {outcome.target}")
        else:
            print(f"  {outcome.name}: Warning: {outcome.detail}")

    print()
    print(report.summary())
    return 0 if report.ok else 1


def cmd_update(settings: Settings, git: GitService) -> int:
    """Record the commit each submodule currently has checked out."""
    manifest_path = settings.manifest_path
    print(f"Updating {manifest_path} with current submodule commits...")
    manifest = load_manifest(manifest_path)

    updated, report = capture_state(manifest, git)
    for outcome in report.outcomes:
        if outcome.status is EntryStatus.SKIPPED:
            print(f"  Warning: {outcome.name} (path: {outcome.path}) is not initialized, skipping")
        elif outcome.target is not None:
            print(f"  Found commit for {outcome.name}: {outcome.target.value}")

    write_manifest(manifest_path, updated)
    print(f"Updated {manifest_path}")
    return 0


def cmd_status(settings: Settings, git: GitService) -> int:
    """Show manifest versions next to what is checked out."""
    manifest = load_manifest(settings.manifest_path)

    print("Submodule Version Status:")
    print("=========================")
    if manifest.last_updated:
        try:
            age = f" ({describe_age(manifest.last_updated)})"
        except ValueError:
            age = ""
        print(f"Manifest last updated {manifest.last_updated}{age}")

    for status in collect_status(manifest, git):
        print()
        print(f"{status.name} ({status.path}):")
        print(f"  Manifest:  tag {status.declared_tag or 'none'}, "
              f"branch {status.declared_branch or 'none'}, "
              f"commit {status.declared_commit or 'none'}")
        if not status.initialized:
            print("  Current:   (not initialized)")
            continue
        print(f"  Current:   tags {', '.join(status.tags) or 'none'}, "
              f"branch {status.branch or 'detached'}, "
              f"commit {status.commit or 'none'}")
        print(f"  In sync:   {'yes' if status.in_sync else 'no'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="subman",
        description="Manage submodule versions from submodule-versions.json",
    )
    add_common_arguments(parser)

    subparsers = parser.add_subparsers(dest="command")
    checkout_parser = subparsers.add_parser(
        "checkout", help="Initialize and checkout submodules to versions in the manifest"
    )
    checkout_parser.add_argument(
        "--no-init",
        dest="init",
        action="store_false",
        help="Do not initialize missing submodules first",
    )
    subparsers.add_parser("update", help="Update the manifest with current submodule commits")
    subparsers.add_parser("status", help="Show current submodule versions vs the manifest")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.debug)
    try:
        git = make_git(settings)
        if args.command == "checkout":
            return cmd_checkout(settings, git, args.init)
        if args.command == "update":
            return cmd_update(settings, git)
        return cmd_status(settings, git)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
