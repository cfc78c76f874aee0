"""Git repository handle used by history walks."""

from __future__ import annotations

import re
import subprocess
from collections.abc import Iterator
from pathlib import Path

from .exceptions import RetrievalError
from .shell import git, git_bytes, git_stream

# git's wording when <rev>:<path> names no object; also used for bad revisions
_MISSING_OBJECT_RE = re.compile(
    r"does not exist in|exists on disk, but not in|not a valid object name",
    re.IGNORECASE,
)


class Repository:
    """A git working tree rooted at ``path``.

    All commands run with the repository root as their working directory;
    the calling process's own working directory is never changed.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"

    @classmethod
    def containing(cls, path: Path | str) -> Repository:
        """Find the repository that contains ``path``.

        Raises:
            subprocess.CalledProcessError: If ``path`` is not inside a git
                working tree.
        """
        path = Path(path).resolve()
        start = path if path.is_dir() else path.parent
        return cls(git("rev-parse", "--show-toplevel", cwd=start))

    def relative_path(self, path: Path | str) -> str:
        """Return ``path`` relative to the root, in git's POSIX form."""
        return Path(path).resolve().relative_to(self.path.resolve()).as_posix()

    def rev_list(self, branch: str, entry_name: str) -> Iterator[str]:
        """Yield abbreviated commits touching ``entry_name``, newest first.

        Commits that leave the file empty are kept (``--remove-empty``
        only prunes history once the path disappears entirely).
        """
        return git_stream(
            "rev-list",
            "--abbrev-commit",
            "--remove-empty",
            branch,
            "--",
            entry_name,
            cwd=self.path,
        )

    def has_revision(self, revision: str) -> bool:
        """Whether ``revision`` names a commit in this repository."""
        return bool(
            git(
                "rev-parse",
                "--verify",
                "--quiet",
                f"{revision}^{{commit}}",
                cwd=self.path,
                check=False,
            )
        )

    def blob_at_revision(self, revision: str, entry_name: str) -> bytes:
        """Return the exact bytes of ``entry_name`` as of ``revision``.

        Raises:
            RetrievalError: If the path has no blob at that revision.
            subprocess.CalledProcessError: For any other git failure,
                including a revision that does not exist.
        """
        try:
            return git_bytes(
                "cat-file", "blob", f"{revision}:{entry_name}", cwd=self.path
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", "replace")
            if _MISSING_OBJECT_RE.search(stderr) and self.has_revision(revision):
                raise RetrievalError(entry_name, revision) from e
            raise
