"""Tests for adding submodules and moving them between versions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from subman.exceptions import (
    OperationCancelled,
    SubmanError,
    SubmoduleExistsError,
    TagNotFoundError,
)
from subman.services.git_service import GitService
from subman.services.submodule_service import SubmoduleService, path_from_url
from subman.services.version_service import (
    LatestPolicy,
    VersionService,
    accept_all,
    accept_defaults,
)
from tests.helpers import SUBMODULE_PATH, init_repo, manifest_data, run_git, write_manifest_json

if TYPE_CHECKING:
    from pathlib import Path

    from subman.config import Settings


@pytest.fixture
def service(git_service: GitService, settings: Settings) -> SubmoduleService:
    return SubmoduleService(git_service, settings)


def _tag_commit(repo: Path, tag: str) -> str:
    return run_git(repo, "rev-parse", f"{tag}^{{commit}}")


class TestPathFromUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://github.com/org/gramarye-libcore.git", "gramarye-libcore"),
            ("https://github.com/org/gramarye-libcore", "gramarye-libcore"),
            ("git@github.com:org/libcore.git", "libcore"),
            ("git@host:libcore.git", "libcore"),
            ("/srv/git/libcore/", "libcore"),
        ],
    )
    def test_derives_last_component(self, url: str, expected: str) -> None:
        assert path_from_url(url) == expected


class TestUpdateToVersion:
    def test_explicit_tag(self, service: SubmoduleService, upstream: Path) -> None:
        result = service.update_to_version(SUBMODULE_PATH, "v1.9.0")
        assert result.target == "v1.9.0"
        assert result.commit == _tag_commit(upstream, "v1.9.0")
        assert result.manifest_entry is None

    def test_none_means_newest(self, service: SubmoduleService, upstream: Path) -> None:
        result = service.update_to_version(SUBMODULE_PATH)
        assert result.target == "v2.0.0"
        assert result.commit == _tag_commit(upstream, "v2.0.0")

    def test_latest_stays_on_current_major(self, service: SubmoduleService) -> None:
        service.update_to_version(SUBMODULE_PATH, "v1.0.0")
        result = service.update_to_version(SUBMODULE_PATH, "latest")
        assert result.previous == "v1.0.0"
        assert result.target == "v1.10.0"

    def test_latest_with_extra_tag_on_head(
        self, service: SubmoduleService, git_service: GitService
    ) -> None:
        service.update_to_version(SUBMODULE_PATH, "v1.0.0")
        run_git(git_service.resolve_path(SUBMODULE_PATH), "tag", "-a", "stable", "-m", "stable")
        result = service.update_to_version(SUBMODULE_PATH, "latest")
        assert result.previous == "v1.0.0"
        assert result.target == "v1.10.0"

    def test_bump_with_extra_tag_on_head(
        self, git_service: GitService, settings: Settings
    ) -> None:
        git_service.checkout_ref(SUBMODULE_PATH, "tags/v1.0.0")
        run_git(git_service.resolve_path(SUBMODULE_PATH), "tag", "-a", "stable", "-m", "stable")
        plan = VersionService(git_service, settings).plan_bump(SUBMODULE_PATH, "fix")
        assert plan.current_tag == "v1.0.0"
        assert plan.new_tag == "v1.0.1"

    def test_latest_absolute_policy(self, service: SubmoduleService) -> None:
        service.update_to_version(SUBMODULE_PATH, "v1.0.0")
        result = service.update_to_version(SUBMODULE_PATH, "latest", LatestPolicy.ABSOLUTE)
        assert result.target == "v2.0.0"

    def test_unknown_tag(self, service: SubmoduleService) -> None:
        with pytest.raises(TagNotFoundError) as exc_info:
            service.update_to_version(SUBMODULE_PATH, "v9.9.9")
        assert "v2.0.0" in exc_info.value.available

    def test_missing_directory(self, service: SubmoduleService) -> None:
        with pytest.raises(SubmanError, match="not found"):
            service.update_to_version("libs/absent")

    def test_pins_manifest_entry(
        self, service: SubmoduleService, settings: Settings, upstream: Path
    ) -> None:
        write_manifest_json(
            settings.manifest_path,
            manifest_data(core={"path": SUBMODULE_PATH, "branch": "develop", "url": "u"}),
        )
        result = service.update_to_version(SUBMODULE_PATH, "v1.10.0")

        assert result.manifest_entry == "core"
        data = json.loads(settings.manifest_path.read_text())
        entry = data["submodules"]["core"]
        assert entry["tag"] == "v1.10.0"
        assert entry["commit"] == _tag_commit(upstream, "v1.10.0")
        assert entry["branch"] is None
        assert entry["url"] == "u"
        assert data["last_updated"] != "2026-01-01T00:00:00Z"


class TestAddSubmodule:
    def test_adds_and_checks_out_latest(
        self, service: SubmoduleService, parent_repo: Path, upstream: Path
    ) -> None:
        result = service.add_submodule(str(upstream), "vendor/lib", confirm=accept_all)

        assert result.path == "vendor/lib"
        assert result.version == "v2.0.0"
        assert result.created_initial_tag is False
        assert result.available_tags[-1] == "v2.0.0"
        assert result.parent_commit == run_git(parent_repo, "rev-parse", "HEAD")
        assert run_git(parent_repo, "log", "-1", "--format=%s") == (
            "Add submodule vendor/lib at v2.0.0"
        )
        assert run_git(parent_repo / "vendor/lib", "rev-parse", "HEAD") == _tag_commit(
            upstream, "v2.0.0"
        )

    def test_explicit_version(self, service: SubmoduleService, upstream: Path) -> None:
        result = service.add_submodule(str(upstream), "vendor/lib", "v1.0.0", accept_defaults)
        assert result.version == "v1.0.0"
        assert result.parent_commit is not None

    def test_tracks_new_entry_in_manifest(
        self, service: SubmoduleService, settings: Settings, parent_repo: Path, upstream: Path
    ) -> None:
        write_manifest_json(settings.manifest_path, manifest_data())
        run_git(parent_repo, "add", settings.manifest_path.name)
        run_git(parent_repo, "commit", "--quiet", "-m", "Add manifest")

        result = service.add_submodule(str(upstream), "vendor/lib", "v1.9.0", accept_all)

        assert result.manifest_entry == "lib"
        entry = json.loads(settings.manifest_path.read_text())["submodules"]["lib"]
        assert entry["path"] == "vendor/lib"
        assert entry["url"] == str(upstream)
        assert entry["tag"] == "v1.9.0"
        assert entry["commit"] == _tag_commit(upstream, "v1.9.0")
        committed = run_git(parent_repo, "show", "--name-only", "--format=", "HEAD").split()
        assert sorted(committed) == [".gitmodules", settings.manifest_path.name, "vendor/lib"]

    def test_untagged_repository_gets_initial_tag(
        self, service: SubmoduleService, tmp_path: Path
    ) -> None:
        fresh = init_repo(tmp_path / "fresh")
        result = service.add_submodule(str(fresh), "vendor/fresh", confirm=accept_all)
        assert result.created_initial_tag
        assert result.version == "v0.0.1"
        assert result.pushed is True
        assert run_git(fresh, "tag", "--list") == "v0.0.1"

    def test_untagged_repository_declined(
        self, service: SubmoduleService, tmp_path: Path
    ) -> None:
        fresh = init_repo(tmp_path / "fresh")

        def answer(question: str, default: bool) -> bool:
            return False if question.startswith("Create initial") else default

        result = service.add_submodule(str(fresh), "vendor/fresh", confirm=answer)
        assert not result.created_initial_tag
        assert result.version is None
        assert result.parent_commit is not None

    def test_existing_plain_directory(
        self, service: SubmoduleService, parent_repo: Path, upstream: Path
    ) -> None:
        (parent_repo / "vendor" / "lib").mkdir(parents=True)
        with pytest.raises(SubmanError, match="not a git repository"):
            service.add_submodule(str(upstream), "vendor/lib", confirm=accept_all)

    def test_existing_repository_declined(
        self, service: SubmoduleService, upstream: Path
    ) -> None:
        with pytest.raises(OperationCancelled):
            service.add_submodule(str(upstream), SUBMODULE_PATH, confirm=accept_defaults)

    def test_already_registered(self, service: SubmoduleService, upstream: Path) -> None:
        service.add_submodule(str(upstream), "vendor/lib", confirm=accept_all)
        with pytest.raises(SubmoduleExistsError):
            service.add_submodule(str(upstream), "vendor/lib", confirm=accept_all)

    def test_path_derived_from_url(
        self, service: SubmoduleService, parent_repo: Path, upstream: Path
    ) -> None:
        result = service.add_submodule(str(upstream), confirm=accept_all)
        assert result.path == "upstream"
        assert (parent_repo / "upstream" / ".git").exists()

    def test_unknown_version_continues_when_accepted(
        self, service: SubmoduleService, parent_repo: Path, upstream: Path
    ) -> None:
        result = service.add_submodule(str(upstream), "vendor/lib", "v9.0.0", accept_all)
        assert result.version is None
        assert result.parent_commit is not None
        assert run_git(parent_repo, "log", "-1", "--format=%s") == "Add submodule vendor/lib"
        assert run_git(parent_repo / "vendor/lib", "rev-parse", "--abbrev-ref", "HEAD") == "main"

    def test_unknown_version_declined_removes_submodule(
        self,
        service: SubmoduleService,
        git_service: GitService,
        parent_repo: Path,
        upstream: Path,
    ) -> None:
        head = run_git(parent_repo, "rev-parse", "HEAD")
        with pytest.raises(TagNotFoundError) as exc_info:
            service.add_submodule(str(upstream), "vendor/lib", "v9.0.0", accept_defaults)
        assert "v2.0.0" in exc_info.value.available
        assert git_service.submodule_paths() == []
        assert not (parent_repo / "vendor" / "lib").exists()
        assert run_git(parent_repo, "diff", "--cached", "--name-only") == ""
        assert run_git(parent_repo, "rev-parse", "HEAD") == head

        result = service.add_submodule(str(upstream), "vendor/lib", "v1.0.0", accept_defaults)
        assert result.version == "v1.0.0"
        assert git_service.submodule_paths() == ["vendor/lib"]

    def test_unknown_version_declined_keeps_existing_repository(
        self,
        service: SubmoduleService,
        git_service: GitService,
        parent_repo: Path,
        upstream: Path,
    ) -> None:
        def answer(question: str, default: bool) -> bool:
            return question.endswith("Add as submodule anyway?") or default

        with pytest.raises(TagNotFoundError):
            service.add_submodule(str(upstream), SUBMODULE_PATH, "v9.0.0", answer)
        assert git_service.submodule_paths() == []
        assert (parent_repo / SUBMODULE_PATH / ".git").is_dir()
        assert run_git(parent_repo, "diff", "--cached", "--name-only") == ""

    def test_initial_tag_description(self, service: SubmoduleService, tmp_path: Path) -> None:
        fresh = init_repo(tmp_path / "fresh")
        service.add_submodule(
            str(fresh), "vendor/fresh", confirm=accept_all, initial_description="First cut"
        )
        assert run_git(fresh, "tag", "-l", "--format=%(contents)", "v0.0.1") == "First cut"
