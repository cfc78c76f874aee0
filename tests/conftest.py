"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Iterator
from pathlib import Path

import pytest

from formula_history.exceptions import RetrievalError
from formula_history.models import Formula, SoftwareSpec

CHECKSUM = "a" * 64

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git not installed"
)


def formula_toml(
    version: str = "1.0",
    *,
    revision: int = 0,
    version_scheme: int = 0,
    rebuild: int = 0,
    bottled: bool = True,
    devel: str | None = None,
    stable: bool = True,
) -> bytes:
    """Render a formula file."""
    lines = ['desc = "Example formula"']
    if revision:
        lines.append(f"revision = {revision}")
    if version_scheme:
        lines.append(f"version_scheme = {version_scheme}")
    if stable:
        lines += ["", "[stable]", f'url = "https://example.com/foo-{version}.tar.gz"']
        lines.append(f'version = "{version}"')
    if devel:
        lines += ["", "[devel]", f'url = "https://example.com/foo-{devel}.tar.gz"']
        lines.append(f'version = "{devel}"')
    lines += ["", "[bottle]", f"rebuild = {rebuild}"]
    if bottled:
        lines += ["", "[bottle.sha256]", f'arm64_sonoma = "{CHECKSUM}"']
    return ("\n".join(lines) + "\n").encode()


class FakeRepository:
    """In-memory stand-in for Repository.

    ``revisions`` maps revision id → file contents, newest first. A value of
    None means the file did not exist at that revision.
    """

    def __init__(self, revisions: dict[str, bytes | None]) -> None:
        self.path = Path("/repo")
        self.revisions = revisions
        self.fetched: list[str] = []
        self.listed = False
        self.closed = False

    def relative_path(self, path: Path | str) -> str:
        return "Formula/foo.toml"

    def rev_list(self, branch: str, entry_name: str) -> Iterator[str]:
        self.listed = True
        try:
            yield from self.revisions
        finally:
            self.closed = True

    def blob_at_revision(self, revision: str, entry_name: str) -> bytes:
        self.fetched.append(revision)
        contents = self.revisions[revision]
        if contents is None:
            raise RetrievalError(entry_name, revision)
        return contents


@pytest.fixture
def current_formula() -> Formula:
    """The formula as it is on disk today."""
    return Formula(
        name="foo",
        path="/repo/Formula/foo.toml",
        stable=SoftwareSpec(url="https://example.com/foo-1.0.tar.gz", version="1.0"),
    )


def run_git(root: Path, *args: str) -> str:
    result = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=root,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_formula(root: Path, contents: bytes, message: str) -> str:
    """Write Formula/foo.toml, commit it, and return the short hash."""
    path = root / "Formula" / "foo.toml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(contents)
    run_git(root, "add", "Formula/foo.toml")
    run_git(root, "commit", "-q", "-m", message)
    return run_git(root, "rev-parse", "--short", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """An empty git repository with one unrelated commit."""
    root = tmp_path / "tap"
    root.mkdir()
    run_git(root, "init", "-q")
    (root / "README.md").write_text("tap\n")
    run_git(root, "add", "README.md")
    run_git(root, "commit", "-q", "-m", "initial")
    return root
