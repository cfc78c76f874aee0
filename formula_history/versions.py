"""Version parsing and detection utilities.

Handles conversion between formula version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"), and
guessing a version from a download URL when a spec does not declare one.
"""

from __future__ import annotations

import re

import semver

# Matches the version component of archive names like foo-1.2.3.tar.gz or
# foo_v2.0.zip.
_URL_VERSION_RE = re.compile(
    r"[-_.]v?(\d+(?:\.\d+)+[a-z]?)(?:\.tar\.(?:gz|bz2|xz|zst)|\.tgz|\.tbz2?|\.zip)$"
)


def parse_version(version_str: str) -> semver.Version:
    """Read a formula version as a semver.Version so versions can be ordered.

    Formula versions are often shorter or longer than major.minor.patch.
    Missing components count as zero and anything past the third is
    ignored, so "2.1" orders as 2.1.0 and "1.2.3.4" as 1.2.3.

    Raises:
        ValueError: If a used component is not numeric (e.g., "1.2b").
    """
    major, minor, patch = (version_str.split(".") + ["0", "0"])[:3]
    return semver.Version.parse(f"{major}.{minor}.{patch}")


def comparable_version(version_str: str) -> semver.Version | None:
    """Like parse_version(), but None for versions semver cannot order."""
    try:
        return parse_version(version_str)
    except ValueError:
        return None


def detect_version(url: str) -> str | None:
    """Guess a version from a download URL.

    Examples:
        "https://example.com/foo-1.2.3.tar.gz" → "1.2.3"
        "https://example.com/bar_v2.0.zip" → "2.0"
        "https://example.com/download" → None
    """
    match = _URL_VERSION_RE.search(url.split("?", 1)[0])
    return match.group(1) if match else None
