"""Load Formula objects from raw file contents.

A formula is a TOML document:

    desc = "Example tool"
    revision = 1

    [stable]
    url = "https://example.com/foo-1.2.3.tar.gz"
    sha256 = "..."

    [bottle]
    rebuild = 1

    [bottle.sha256]
    arm64_sonoma = "..."

Historical revisions of a formula were written against older versions of
this schema, so every failure mode here raises a distinct exception from
formula_history.exceptions that history walks can classify.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, ValidationError
from tomlkit.exceptions import TOMLKitError

from .deprecation import odeprecated
from .exceptions import (
    FormulaLoadError,
    FormulaNameError,
    FormulaSpecificationError,
    FormulaSyntaxError,
    FormulaUnavailableError,
    FormulaValidationError,
)
from .models import Formula, SoftwareSpec
from .versions import detect_version

KNOWN_KEYS = frozenset(
    {
        "desc",
        "homepage",
        "license",
        "revision",
        "version_scheme",
        "include",
        "stable",
        "devel",
        "bottle",
    }
)
TABLE_KEYS = ("stable", "devel", "bottle")
SPEC_KEYS = ("stable", "devel")

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class ParserConfig(BaseModel):
    """Per-call parser options.

    Attributes:
        strict_deprecations: Raise MethodDeprecatedError on deprecated keys
            instead of warning. None follows the process-wide switch in
            formula_history.deprecation.
    """

    strict_deprecations: bool | None = None


def from_contents(
    name: str,
    path: Path | str,
    contents: bytes,
    config: ParserConfig | None = None,
) -> Formula:
    """Parse raw formula file contents into a Formula.

    Args:
        name: Logical formula name.
        path: Path the contents originate from. Includes are resolved
              relative to its directory.
        contents: Raw file bytes.
        config: Parser options.

    Raises:
        FormulaUnavailableError: The contents are empty.
        FormulaSyntaxError: The contents are not UTF-8 TOML.
        FormulaLoadError: An included file is missing or unreadable.
        MethodDeprecatedError: A deprecated key is used under strict mode.
        FormulaNameError: An unknown top-level key is present.
        TypeError: A key that must be a table is not one.
        FormulaValidationError: Field values fail schema validation.
        FormulaSpecificationError: A spec or bottle block is inconsistent.
    """
    config = config or ParserConfig()
    path = Path(path)

    try:
        text = contents.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormulaSyntaxError(f"{path}: not valid UTF-8 ({e.reason})") from e
    if not text.strip():
        raise FormulaUnavailableError(name)

    data = _parse_toml(text, path)
    data = _merge_includes(data, path)
    _check_tables(data)
    _apply_deprecations(data, config)
    _check_known_keys(data)

    try:
        formula = Formula.model_validate({**data, "name": name, "path": str(path)})
    except ValidationError as e:
        raise FormulaValidationError(name, e) from e

    _check_specifications(formula)
    return formula


def from_path(path: Path | str, config: ParserConfig | None = None) -> Formula:
    """Load the formula file currently on disk, named after its file stem."""
    path = Path(path)
    try:
        contents = path.read_bytes()
    except FileNotFoundError as e:
        raise FormulaUnavailableError(path.stem) from e
    return from_contents(path.stem, path, contents, config)


def _parse_toml(text: str, path: Path) -> dict[str, Any]:
    try:
        return tomlkit.parse(text).unwrap()
    except TOMLKitError as e:
        raise FormulaSyntaxError(f"{path}: {e}") from e


def _merge_includes(data: dict[str, Any], path: Path) -> dict[str, Any]:
    """Merge shared TOML files listed under ``include``.

    Keys from the formula itself take precedence over included ones.
    """
    includes = data.pop("include", [])
    if isinstance(includes, str):
        includes = [includes]
    if not isinstance(includes, list):
        raise TypeError(
            f"'include' must be a string or list, not {type(includes).__name__}"
        )

    merged: dict[str, Any] = {}
    for include in includes:
        include_path = path.parent / include
        try:
            text = include_path.read_text()
        except OSError as e:
            raise FormulaLoadError(f"cannot load such file -- {include_path}") from e
        merged.update(_parse_toml(text, include_path))
    merged.update(data)
    return merged


def _check_tables(data: dict[str, Any]) -> None:
    for key in TABLE_KEYS:
        if key in data and not isinstance(data[key], dict):
            raise TypeError(
                f"'{key}' must be a table, not {type(data[key]).__name__}"
            )


def _apply_deprecations(data: dict[str, Any], config: ParserConfig) -> None:
    """Report deprecated keys and rewrite them to their replacements."""
    bottle = data.get("bottle", {})
    if "sha1" in bottle:
        odeprecated("bottle.sha1", "bottle.sha256", strict=config.strict_deprecations)
        # sha1 bottles can no longer be verified
        del bottle["sha1"]

    for key in SPEC_KEYS:
        spec = data.get(key, {})
        if "mirror" in spec:
            odeprecated(
                f"{key}.mirror", f"{key}.mirrors", strict=config.strict_deprecations
            )
            spec.setdefault("mirrors", []).append(spec.pop("mirror"))


def _check_known_keys(data: dict[str, Any]) -> None:
    unknown = sorted(set(data) - KNOWN_KEYS)
    if unknown:
        raise FormulaNameError(f"undefined formula key {unknown[0]!r}")


def _check_specifications(formula: Formula) -> None:
    if formula.stable is None and formula.devel is None:
        raise FormulaSpecificationError(
            f"{formula.name}: formula has no stable or devel spec"
        )

    for key in SPEC_KEYS:
        spec: SoftwareSpec | None = getattr(formula, key)
        if spec is None:
            continue
        if spec.version is None:
            spec.version = detect_version(spec.url)
        if not spec.version:
            raise FormulaSpecificationError(
                f"{formula.name}: cannot detect {key} version from {spec.url}"
            )

    for tag, checksum in formula.bottle.checksums.items():
        if not _SHA256_RE.match(checksum):
            raise FormulaSpecificationError(
                f"{formula.name}: invalid bottle checksum for {tag}: {checksum!r}"
            )
