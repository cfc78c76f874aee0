"""Reconstruct historical formula attributes from git history.

Walks the commits that touched a formula file, newest first, parses the
file as it was at each commit, and folds the parsed values into maps keyed
by version. Old revisions were written against older schemas, so expected
parse failures are skipped rather than aborting the walk. Walks stop once
enough distinct versions have been seen.
"""

from __future__ import annotations

import io
import logging
import subprocess
from collections.abc import Callable, Iterator, Sequence
from contextlib import closing, redirect_stdout
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from . import formulary
from .deprecation import raise_deprecation_exceptions
from .exceptions import (
    FormulaLoadError,
    FormulaNameError,
    FormulaSpecificationError,
    FormulaSyntaxError,
    FormulaUnavailableError,
    FormulaValidationError,
    MethodDeprecatedError,
    RetrievalError,
)
from .models import Formula, PkgVersion
from .repository import Repository

logger = logging.getLogger(__name__)

MAX_VERSIONS_DEPTH = 2

Parser = Callable[[str, Path, bytes], Formula]


class FailureKind(str, Enum):
    """Why a revision yielded no formula."""

    UNAVAILABLE = "unavailable"
    DEPRECATED = "deprecated"
    SPECIFICATION = "specification"
    VALIDATION = "validation"
    LOAD = "load"
    EXECUTION = "execution"
    SYNTAX = "syntax"
    UNKNOWN_NAME = "unknown-name"
    TYPE_MISMATCH = "type-mismatch"
    MALFORMED = "malformed"

    @classmethod
    def of(cls, error: BaseException) -> FailureKind:
        """Classify an error from IGNORED_EXCEPTIONS."""
        for exc_type, kind in _FAILURE_KINDS:
            if isinstance(error, exc_type):
                return kind
        raise TypeError(f"{type(error).__name__} is not an ignored parse failure")


# Ordered most specific first: FormulaNameError is also a NameError, and
# pydantic/unicode errors are ValueErrors.
_FAILURE_KINDS: tuple[tuple[type[BaseException], FailureKind], ...] = (
    (FormulaUnavailableError, FailureKind.UNAVAILABLE),
    (RetrievalError, FailureKind.UNAVAILABLE),
    (MethodDeprecatedError, FailureKind.DEPRECATED),
    (FormulaSpecificationError, FailureKind.SPECIFICATION),
    (FormulaValidationError, FailureKind.VALIDATION),
    (FormulaLoadError, FailureKind.LOAD),
    (ImportError, FailureKind.LOAD),
    (subprocess.CalledProcessError, FailureKind.EXECUTION),
    (FormulaSyntaxError, FailureKind.SYNTAX),
    (SyntaxError, FailureKind.SYNTAX),
    (FormulaNameError, FailureKind.UNKNOWN_NAME),
    (NameError, FailureKind.UNKNOWN_NAME),
    (TypeError, FailureKind.TYPE_MISMATCH),
    (ValueError, FailureKind.MALFORMED),
)

# Failures expected when parsing old revisions. Anything else is a bug and
# propagates out of the walk.
IGNORED_EXCEPTIONS: tuple[type[BaseException], ...] = tuple(
    exc_type for exc_type, _ in _FAILURE_KINDS
)


class ParseOutcome(BaseModel):
    """Result of parsing the formula at one revision.

    Exactly one of ``formula`` or ``failure`` is set.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    revision: str
    formula: Formula | None = None
    failure: FailureKind | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class FormulaVersions:
    """Walks the git history of one formula file.

    Args:
        formula: The current formula; supplies the name and file path.
        repository: Repository the file lives in. Discovered from the
                    formula's path when omitted.
        parser: Callable turning (name, path, contents) into a Formula.
    """

    def __init__(
        self,
        formula: Formula,
        repository: Repository | None = None,
        parser: Parser = formulary.from_contents,
    ) -> None:
        self.name = formula.name
        self.path = Path(formula.path)
        self.repository = repository or Repository.containing(self.path)
        self.entry_name = self.repository.relative_path(self.path)
        self._parser = parser

    def rev_list(self, branch: str) -> Iterator[str]:
        """Lazily yield revisions that touched the formula, newest first.

        Close the iterator (or wrap it in contextlib.closing) to stop early;
        the underlying git process is then terminated.
        """
        return self.repository.rev_list(branch, self.entry_name)

    def file_contents_at_revision(self, rev: str) -> bytes:
        return self.repository.blob_at_revision(rev, self.entry_name)

    def parse_at_revision(self, rev: str) -> ParseOutcome:
        """Parse the formula as of ``rev`` without raising on expected noise.

        Deprecations are strict for the duration of the parse and the
        parser's stdout is discarded. Errors outside IGNORED_EXCEPTIONS
        propagate.
        """
        try:
            contents = self.file_contents_at_revision(rev)
        except RetrievalError as e:
            return ParseOutcome(revision=rev, failure=FailureKind.UNAVAILABLE, error=e)

        with raise_deprecation_exceptions(), redirect_stdout(io.StringIO()):
            try:
                formula = self._parser(self.name, self.path, contents)
            except IGNORED_EXCEPTIONS as e:
                return ParseOutcome(revision=rev, failure=FailureKind.of(e), error=e)
        return ParseOutcome(revision=rev, formula=formula)

    def formula_at_revision(
        self, rev: str, callback: Callable[[Formula], None] | None = None
    ) -> Formula | None:
        """Return the formula as of ``rev``, or None if it cannot be parsed.

        ``callback`` is invoked with the formula on success.
        """
        outcome = self.parse_at_revision(rev)
        formula = outcome.formula
        if formula is None:
            if outcome.failure is not FailureKind.UNAVAILABLE:
                # Skip bad revisions and keep walking the history
                logger.debug(
                    "%s in %s at revision %s",
                    outcome.error,
                    self.name,
                    rev,
                    exc_info=outcome.error,
                )
            return None

        if callback is not None:
            callback(formula)
        return formula

    def bottle_version_map(self, branch: str) -> dict[PkgVersion, list[int]]:
        """Map each recent package version to the bottle rebuilds it shipped.

        Revisions without bottle checksums count towards the depth but add
        no rebuild entry. Returns as soon as more than MAX_VERSIONS_DEPTH
        distinct package versions have been seen.
        """
        versions: dict[PkgVersion, list[int]] = {}
        versions_seen = 0

        with closing(self.rev_list(branch)) as revisions:
            for rev in revisions:
                formula = self.formula_at_revision(rev)
                if formula is not None:
                    bottle = formula.bottle_specification
                    if bottle.checksums:
                        versions.setdefault(formula.pkg_version, []).append(
                            bottle.rebuild
                        )
                    versions_seen = len(set(versions) | {formula.pkg_version})
                if versions_seen > MAX_VERSIONS_DEPTH:
                    return versions

        return versions

    def version_attributes_map(
        self, attributes: Sequence[str], branch: str
    ) -> dict[str, dict[str, dict[str, list[Any]]]]:
        """Collect historical values of ``attributes`` per channel and version.

        Returns:
            attribute → channel ("stable"/"devel") → version → values,
            values ordered newest first.

        Raises:
            ValueError: If an attribute is not a Formula attribute.
        """
        attributes_map: dict[str, dict[str, dict[str, list[Any]]]] = {}
        if not attributes:
            return attributes_map

        unknown = sorted(set(attributes) - Formula.attribute_names())
        if unknown:
            raise ValueError(f"Unknown formula attributes: {', '.join(unknown)}")

        stable_versions_seen = 0
        with closing(self.rev_list(branch)) as revisions:
            for rev in revisions:
                formula = self.formula_at_revision(rev)
                if formula is not None:
                    for attribute in attributes:
                        channels = attributes_map.setdefault(attribute, {})
                        _set_attribute_map(channels, formula, attribute)

                        stable = set(channels.get("stable", {})) | {formula.version}
                        stable_versions_seen = max(stable_versions_seen, len(stable))
                if stable_versions_seen > MAX_VERSIONS_DEPTH:
                    break

        return attributes_map


def _set_attribute_map(
    channels: dict[str, dict[str, list[Any]]], formula: Formula, attribute: str
) -> None:
    value = formula.attribute(attribute)
    for channel, spec in (("stable", formula.stable), ("devel", formula.devel)):
        if spec is None:
            continue
        version = spec.version or ""
        channels.setdefault(channel, {}).setdefault(version, []).append(value)
