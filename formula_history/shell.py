"""Git subprocess utilities.

Provides thin wrappers around subprocess calls for the handful of git
commands the history walker needs: buffered text output, raw blob bytes,
and a lazily consumed line stream.
"""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import IO, cast


def git(*args: str, cwd: Path | str | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "rev-parse", "--show-toplevel").
        cwd: Directory to run git in. The caller's working directory is
             never changed.
        check: If True (default), raise on non-zero exit.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def git_bytes(*args: str, cwd: Path | str | None = None) -> bytes:
    """Run a git command and return its stdout untouched.

    Used for blob retrieval, where the exact bytes matter.

    Raises:
        subprocess.CalledProcessError: On non-zero exit. ``stderr`` is
            attached as bytes so callers can inspect git's message.
    """
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)
    return result.stdout


def git_stream(*args: str, cwd: Path | str | None = None) -> Iterator[str]:
    """Run a git command and yield its stdout one line at a time.

    The subprocess is started on the first ``next()`` and read
    incrementally. If the consumer stops early (``close()`` or garbage
    collection of the generator), the process is killed and reaped
    without draining the rest of its output.

    Raises:
        subprocess.CalledProcessError: If the output was fully consumed and
            git exited non-zero.
    """
    cmd = ["git", *args]
    # stderr goes to a file so a chatty git cannot block on a full pipe
    with tempfile.TemporaryFile() as errors:
        proc = subprocess.Popen(
            cmd, cwd=cwd, stdout=subprocess.PIPE, stderr=errors, text=True
        )
        stdout = cast(IO[str], proc.stdout)
        exhausted = False
        try:
            for line in stdout:
                yield line.rstrip("\n")
            exhausted = True
        finally:
            if not exhausted:
                proc.kill()
            stdout.close()
            proc.wait()

        if proc.returncode != 0:
            errors.seek(0)
            stderr = errors.read().decode("utf-8", "replace")
            raise subprocess.CalledProcessError(proc.returncode, cmd, stderr=stderr)
