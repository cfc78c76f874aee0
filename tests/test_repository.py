"""Tests for formula_history.repository against real git repositories."""

from __future__ import annotations

import subprocess
from contextlib import closing
from pathlib import Path

import pytest
from conftest import commit_formula, formula_toml, requires_git, run_git

from formula_history import formulary
from formula_history.exceptions import RetrievalError
from formula_history.formula_versions import FormulaVersions
from formula_history.models import PkgVersion
from formula_history.repository import Repository

pytestmark = requires_git


class TestRepository:
    def test_containing_finds_root_from_subdirectory(self, git_repo: Path) -> None:
        sub = git_repo / "Formula"
        sub.mkdir()

        repo = Repository.containing(sub)

        assert repo.path.resolve() == git_repo.resolve()

    def test_containing_outside_repository(self, tmp_path: Path) -> None:
        outside = tmp_path / "plain"
        outside.mkdir()

        with pytest.raises(subprocess.CalledProcessError):
            Repository.containing(outside)

    def test_relative_path(self, git_repo: Path) -> None:
        repo = Repository(git_repo)
        path = git_repo / "Formula" / "foo.toml"

        assert repo.relative_path(path) == "Formula/foo.toml"

    def test_rev_list_newest_first(self, git_repo: Path) -> None:
        first = commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")
        (git_repo / "other.txt").write_text("unrelated\n")
        run_git(git_repo, "add", "other.txt")
        run_git(git_repo, "commit", "-q", "-m", "unrelated")
        second = commit_formula(git_repo, formula_toml("1.1"), "foo 1.1")

        revisions = list(Repository(git_repo).rev_list("HEAD", "Formula/foo.toml"))

        assert revisions == [second, first]

    def test_rev_list_stops_early(self, git_repo: Path) -> None:
        for version in ("1.0", "1.1", "1.2"):
            commit_formula(git_repo, formula_toml(version), f"foo {version}")

        revisions = Repository(git_repo).rev_list("HEAD", "Formula/foo.toml")
        with closing(revisions):
            next(revisions)
            proc = revisions.gi_frame.f_locals["proc"]

        assert proc.returncode is not None
        assert proc.stdout.closed
        with pytest.raises(StopIteration):
            next(revisions)

    def test_rev_list_bad_branch(self, git_repo: Path) -> None:
        revisions = Repository(git_repo).rev_list("no-such-branch", "Formula/foo.toml")

        with pytest.raises(subprocess.CalledProcessError) as exc_info:
            list(revisions)
        assert "no-such-branch" in exc_info.value.stderr

    def test_blob_at_revision_is_exact(self, git_repo: Path) -> None:
        contents = formula_toml("1.0") + b"# trailing comment\r\n"
        rev = commit_formula(git_repo, contents, "foo 1.0")

        blob = Repository(git_repo).blob_at_revision(rev, "Formula/foo.toml")

        assert blob == contents

    def test_blob_missing_at_revision(self, git_repo: Path) -> None:
        before = run_git(git_repo, "rev-parse", "--short", "HEAD")
        commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")

        with pytest.raises(RetrievalError, match="Formula/foo.toml"):
            Repository(git_repo).blob_at_revision(before, "Formula/foo.toml")

    def test_blob_at_unknown_revision_propagates(self, git_repo: Path) -> None:
        commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")

        with pytest.raises(subprocess.CalledProcessError):
            Repository(git_repo).blob_at_revision("no-such-rev", "Formula/foo.toml")

    def test_has_revision(self, git_repo: Path) -> None:
        rev = commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")
        repo = Repository(git_repo)

        assert repo.has_revision(rev)
        assert repo.has_revision("HEAD")
        assert not repo.has_revision("no-such-rev")


class TestHistoryWalk:
    def test_bottle_version_map(self, git_repo: Path) -> None:
        commit_formula(git_repo, formula_toml("0.9"), "foo 0.9")
        commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")
        commit_formula(git_repo, formula_toml("1.0", rebuild=1), "foo: rebuild")
        commit_formula(git_repo, b"[stable\n", "foo: broken")
        commit_formula(git_repo, b"", "foo: emptied")
        commit_formula(git_repo, formula_toml("1.1"), "foo 1.1")

        current = formulary.from_path(git_repo / "Formula" / "foo.toml")
        versions = FormulaVersions(current)

        assert versions.bottle_version_map("HEAD") == {
            PkgVersion(version="1.1"): [0],
            PkgVersion(version="1.0"): [1, 0],
            PkgVersion(version="0.9"): [0],
        }

    def test_version_attributes_map(self, git_repo: Path) -> None:
        commit_formula(git_repo, formula_toml("1.0"), "foo 1.0")
        commit_formula(git_repo, formula_toml("1.0", revision=1), "foo: revision bump")
        commit_formula(git_repo, formula_toml("1.1"), "foo 1.1")

        current = formulary.from_path(git_repo / "Formula" / "foo.toml")
        versions = FormulaVersions(current, Repository(git_repo))

        assert versions.version_attributes_map(["revision"], "HEAD") == {
            "revision": {"stable": {"1.1": [0], "1.0": [1, 0]}}
        }
