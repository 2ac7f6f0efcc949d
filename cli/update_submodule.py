"""CLI for moving a submodule to a specific or the latest version tag.

Examples::

    subman-update gramarye-libcore v1.2.3
    subman-update gramarye-libcore latest   # newest tag within the current major
"""

from __future__ import annotations

import argparse
import sys

from cli.common import add_common_arguments, configure_logging, load_settings, make_git
from subman.exceptions import SubmanError, TagNotFoundError
from subman.services.submodule_service import SubmoduleService
from subman.services.version_service import LatestPolicy


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="subman-update",
        description="Update a submodule to a specific version or the latest compatible version",
    )
    add_common_arguments(parser)
    parser.add_argument("path", help="Submodule path")
    parser.add_argument(
        "version",
        nargs="?",
        help="Version tag (e.g. v1.2.3), or 'latest' for the newest compatible version",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in LatestPolicy],
        help="How 'latest' chooses the major version",
    )
    args = parser.parse_args(argv)

    overrides = {"latest_policy": LatestPolicy(args.policy)} if args.policy else {}
    try:
        settings = load_settings(args, **overrides)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.debug)

    try:
        git = make_git(settings)
        service = SubmoduleService(git, settings)
        result = service.update_to_version(args.path, args.version)
    except TagNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if exc.available:
            print("Available tags:", file=sys.stderr)
            for tag in exc.available:
                print(f"  {tag}", file=sys.stderr)
        return 1
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Current: {result.previous or 'unknown'}")
    print(f"Updated to: {result.target} ({result.commit})")
    if result.manifest_entry:
        print(f"Updated {result.manifest_entry} in {settings.manifest_path}")

    print()
    print("Submodule updated. To commit:")
    print(f"  git add {result.path}")
    if result.manifest_entry:
        print(f"  git add {settings.manifest_file}")
    print(f'  git commit -m "Update {result.path} to {result.target}"')
    return 0


if __name__ == "__main__":
    sys.exit(main())
