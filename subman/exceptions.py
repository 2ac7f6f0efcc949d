"""Error types raised by the submodule manifest tooling.

Convention:
- Single-entry operations (``resolve``, ``checkout``, version bumps) raise the
  specific subclass and let it propagate.
- Batch operations (``synchronize_all``, ``capture_state``) catch
  ``SubmanError`` per entry and record it in the ``SyncReport`` instead.
- CLI entry points catch ``SubmanError``, print ``Error: <message>`` and exit 1.
"""

from __future__ import annotations


class SubmanError(Exception):
    """Base class for all expected failures."""


class InvalidSettingsError(SubmanError):
    """A SUBMAN_ environment variable or CLI option has an invalid value."""


class ManifestParseError(SubmanError):
    """The manifest file is missing, not valid JSON, or violates the schema."""


class UnresolvableEntryError(SubmanError):
    """A manifest entry declares none of tag, branch, or commit."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No tag, branch, or commit specified for {name}")
        self.name = name


class NotInitializedError(SubmanError):
    """The submodule working copy does not exist or is not a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Submodule at {path} is not initialized")
        self.path = path


class CheckoutFailedError(SubmanError):
    """Fetching or checking out a reference in a working copy failed."""

    def __init__(self, path: str, target: str) -> None:
        super().__init__(f"Could not checkout {target} in {path}")
        self.path = path
        self.target = target


class TagAlreadyExistsError(SubmanError):
    """The tag a version bump would create already exists."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"Tag {tag} already exists")
        self.tag = tag


class TagNotFoundError(SubmanError):
    """A requested version tag does not exist in the working copy."""

    def __init__(self, tag: str, available: list[str] | None = None) -> None:
        super().__init__(f"Tag '{tag}' not found")
        self.tag = tag
        self.available = available or []


class InvalidVersionError(SubmanError):
    """A tag could not be parsed as MAJOR.MINOR.PATCH."""


class SubmoduleExistsError(SubmanError):
    """A submodule is already registered at the requested path."""


class BackendUnavailableError(SubmanError):
    """The git executable could not be found."""


class GitCommandError(SubmanError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip() or "no stderr"
        super().__init__(f"git {' '.join(args)} failed (exit {returncode}): {detail}")
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelled(SubmanError):
    """The user declined a confirmation that the operation cannot proceed without."""
