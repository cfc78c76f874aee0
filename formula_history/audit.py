"""Audit a formula's revision and version_scheme against its history.

A formula's ``version_scheme`` and ``revision`` must never go backwards
relative to what has already been published, and should only be bumped one
step at a time. These checks compare the current formula with the recent
history reconstructed by FormulaVersions.version_attributes_map().
"""

from __future__ import annotations

from .formula_versions import FormulaVersions
from .models import Formula
from .versions import comparable_version

AUDITED_ATTRIBUTES = ("revision", "version_scheme")


def _max_version(versions: list[str]) -> str | None:
    """Return the highest of ``versions`` that semver can order."""
    comparable = [(comparable_version(v), v) for v in versions]
    ordered = [(parsed, v) for parsed, v in comparable if parsed is not None]
    if not ordered:
        return None
    return max(ordered, key=lambda item: item[0])[1]


def _is_older(version: str, than: str) -> bool:
    current, previous = comparable_version(version), comparable_version(than)
    if current is None or previous is None:
        return False
    return current < previous


def audit_revision_and_version_scheme(
    formula: Formula, versions: FormulaVersions, branch: str
) -> list[str]:
    """Check ``formula`` against the history of its file on ``branch``.

    Returns:
        Human-readable problem descriptions; empty when the formula passes.
    """
    problems: list[str] = []
    attributes_map = versions.version_attributes_map(AUDITED_ATTRIBUTES, branch)
    if not attributes_map:
        return problems

    current_version_scheme = formula.version_scheme
    for channel in ("stable", "devel"):
        scheme_map = attributes_map.get("version_scheme", {}).get(channel)
        if not scheme_map:
            continue

        version_schemes = [s for schemes in scheme_map.values() for s in schemes]
        max_version_scheme = max(version_schemes)
        max_version = _max_version(
            [v for v, schemes in scheme_map.items() if schemes[0] == max_version_scheme]
        )

        if current_version_scheme < max_version_scheme:
            problems.append(
                "version_scheme should not decrease "
                f"(from {max_version_scheme} to {current_version_scheme})"
            )
        elif (
            current_version_scheme > 1
            and current_version_scheme - 1 not in version_schemes
            and current_version_scheme not in version_schemes
        ):
            problems.append("version_schemes should only increment by 1")

        spec = getattr(formula, channel)
        if spec is None or spec.version is None or max_version is None:
            continue
        if not _is_older(spec.version, max_version):
            continue
        if current_version_scheme and (
            current_version_scheme > max_version_scheme or spec.version in scheme_map
        ):
            continue
        problems.append(
            f"{channel} version should not decrease "
            f"(from {max_version} to {spec.version})"
        )

    current_revision = formula.revision
    revision_map = attributes_map.get("revision", {}).get("stable")
    if formula.stable is not None and revision_map:
        stable_revisions = revision_map.get(formula.stable.version or "", [])
        max_revision = max(stable_revisions, default=0)
        if current_revision < max_revision:
            problems.append(
                "revision should not decrease "
                f"(from {max_revision} to {current_revision})"
            )

        other_revisions = [r for r in stable_revisions if r != current_revision]
        if current_revision and not other_revisions and len(revision_map) > 1:
            problems.append(f"'revision {current_revision}' should be removed")
        elif (
            current_revision > 1
            and current_revision != max_revision
            and current_revision - 1 not in other_revisions
        ):
            problems.append("revisions should only increment by 1")
    elif formula.stable is None and current_revision:
        problems.append(f"'revision {current_revision}' should be removed")

    return problems
