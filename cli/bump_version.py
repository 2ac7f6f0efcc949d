"""CLI for bumping the version tag of a submodule repository.

Examples::

    subman-bump gramarye-libcore minor "Added new hash functions"
    subman-bump gramarye-libcore fix "Fixed memory leak" --yes --push
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
from subman.exceptions import SubmanError
from subman.services.version_service import BumpKind, VersionService


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="subman-bump",
        description="Bump the version tag of a submodule repository",
    )
    add_common_arguments(parser)
    parser.add_argument("path", help="Submodule path")
    parser.add_argument("kind", choices=[k.value for k in BumpKind], help="Version part to bump")
    parser.add_argument("description", nargs="?", help="Tag message")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to every prompt")
    parser.add_argument("--push", action="store_true", help="Push the new tag without asking")
    parser.add_argument(
        "--no-commit",
        action="store_true",
        help="Do not commit the submodule pointer in the parent repository",
    )
    parser.add_argument(
        "--switch-branch",
        action="store_true",
        help="Switch a detached HEAD to main/master before tagging",
    )
    args = parser.parse_args(argv)

    overrides = {"bump_switch_branch": True} if args.switch_branch else {}
    try:
        settings = load_settings(args, **overrides)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.debug)
    confirm = make_confirm(settings.assume_yes)

    def answer(question: str, default: bool) -> bool:
        if question.startswith("Push") and args.push:
            return True
        if question.startswith("Commit") and args.no_commit:
            return False
        return confirm(question, default)

    try:
        git = make_git(settings)
        versions = VersionService(git, settings)
        plan = versions.plan_bump(args.path, args.kind)

        description = args.description
        if description is None and not settings.assume_yes:
            try:
                description = input("Enter version description (or press Enter for default): ")
            except EOFError:
                description = ""
        description = description.strip() if description else None

        print()
        print("Version bump summary:")
        print(f"  Repository:  {args.path}")
        print(f"  Current:     {plan.current_tag or 'none'}")
        print(f"  New:         {plan.new_tag}")
        print(f"  Type:        {plan.kind}")
        print()

        result = versions.release(plan, description, answer)
    except SubmanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not result.created:
        print("Cancelled")
        return 0

    print(f"Tag {result.tag} created at commit {result.commit}")
    if result.pushed:
        print("Tag pushed to remote successfully!")
    else:
        if result.pushed is False:
            print("Failed to push tag. You may need to authenticate.", file=sys.stderr)
        print("Push manually with:")
        print(f"  git -C {args.path} push {settings.remote} {result.tag}")
    if result.manifest_entry:
        print(f"Updated {result.manifest_entry} in {settings.manifest_path}")
    if result.parent_commit:
        print(f"Parent repository updated ({result.parent_commit[:12]})")

    print()
    print("Version bump complete!")
    print(f"  Old version: {plan.current_tag or 'none'}")
    print(f"  New version: {result.tag}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
