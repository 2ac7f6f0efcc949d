"""CLI for adding a new submodule with versioning support.

Examples::

    subman-add https://github.com/user/repo.git
    subman-add https://github.com/user/repo.git my-repo v1.2.3
    subman-add --initial-description "First cut" https://github.com/user/new.git
"""

from __future__ import annotations

import argparse
import sys

from cli.common import (
    add_common_arguments,
    configure_logging,
    load_settings,
    make_confirm,
    make_git,
)
from subman.exceptions import OperationCancelled, SubmanError, TagNotFoundError
from subman.services.submodule_service import SubmoduleService


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="subman-add",
        description="Initialize a new git submodule with versioning support",
    )
    add_common_arguments(parser)
    parser.add_argument("url", help="Repository URL")
    parser.add_argument("path", nargs="?", help="Submodule path (default: derived from the URL)")
    parser.add_argument("version", nargs="?", help="Version tag to check out")
    parser.add_argument(
        "--initial-description",
        help="Message for the initial v0.0.1 tag of an untagged repository",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to every prompt")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.debug)
    confirm = make_confirm(settings.assume_yes)

    try:
        git = make_git(settings)
        service = SubmoduleService(git, settings)
        result = service.add_submodule(
            args.url,
            args.path,
            args.version,
            confirm,
            initial_description=args.initial_description,
        )
    except OperationCancelled:
        print("Cancelled")
        return 0
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

    print("Submodule initialized!")
    print()
    print("Summary:")
    print(f"  Path:    {result.path}")
    print(f"  URL:     {result.url}")
    print(f"  Current: {result.version or 'branch/commit'}")
    if result.created_initial_tag:
        print(f"  Created initial tag {result.version}")
    if result.pushed is False:
        print("  Failed to push tag. You may need to authenticate.", file=sys.stderr)
    if result.manifest_entry:
        print(f"  Tracked as {result.manifest_entry} in {settings.manifest_path}")
    if result.parent_commit:
        print(f"  Committed submodule addition ({result.parent_commit[:12]})")
    else:
        print()
        print("Submodule added. To commit:")
        print(f"  git add .gitmodules {result.path}")
        print(f'  git commit -m "Add submodule {result.path}"')

    print()
    print("Next steps:")
    print(f"  - To update version later: subman-update {result.path} [version]")
    print(f"  - To bump version: subman-bump {result.path} <major|minor|fix> [description]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
