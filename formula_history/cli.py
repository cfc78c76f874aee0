"""CLI entry point for formula-history."""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path

import click
from packaging.utils import canonicalize_name

from formula_history import formulary
from formula_history.audit import audit_revision_and_version_scheme
from formula_history.config import load_settings
from formula_history.exceptions import FormulaError
from formula_history.formula_versions import FormulaVersions
from formula_history.models import Formula
from formula_history.repository import Repository


def locate_formula(formula: str, repository: Repository, formula_dir: str) -> Path:
    """Resolve a formula argument to a file path.

    Accepts a path to a formula file, or a name looked up as
    ``<formula_dir>/<name>.toml`` (falling back to the PEP 503 normalized
    name, so "Foo_Bar" finds foo-bar.toml).
    """
    as_path = Path(formula)
    if as_path.suffix == ".toml" or as_path.exists():
        return as_path

    directory = repository.path / formula_dir
    for candidate in (formula, canonicalize_name(formula)):
        path = directory / f"{candidate}.toml"
        if path.exists():
            return path
    raise click.ClickException(f"No formula named {formula!r} in {directory}")


def _load(formula: str, branch: str | None) -> tuple[Formula, FormulaVersions, str]:
    cwd = Path.cwd()
    try:
        repository = Repository.containing(cwd)
    except subprocess.CalledProcessError:
        raise click.ClickException("Not a git repository.") from None

    settings = load_settings(repository.path)
    path = locate_formula(formula, repository, settings.formula_dir)
    try:
        current = formulary.from_path(path.resolve())
    except (FormulaError, TypeError) as e:
        raise click.ClickException(f"Cannot load {path}: {e}") from e
    return current, FormulaVersions(current, repository), branch or settings.branch


def _git_failure(e: subprocess.CalledProcessError) -> click.ClickException:
    stderr = e.stderr.decode() if isinstance(e.stderr, bytes) else e.stderr
    return click.ClickException(f"git failed: {(stderr or '').strip() or e}")


@click.group()
@click.version_option(package_name="formula-history")
@click.option("--debug", is_flag=True, help="Log skipped revisions and git calls.")
def cli(debug: bool) -> None:
    """Reconstruct formula attributes from git history."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("formula")
@click.option("--branch", default=None, help="Branch to walk. (default: HEAD)")
def bottles(formula: str, branch: str | None) -> None:
    """Show bottle rebuilds for the most recent package versions."""
    _, versions, branch = _load(formula, branch)
    try:
        bottle_map = versions.bottle_version_map(branch)
    except subprocess.CalledProcessError as e:
        raise _git_failure(e) from e

    if not bottle_map:
        click.echo(f"{versions.name}: no bottles in recent history")
        return
    for pkg_version, rebuilds in bottle_map.items():
        click.echo(f"{pkg_version}: {', '.join(str(r) for r in rebuilds)}")


@cli.command()
@click.argument("formula")
@click.option(
    "-a",
    "--attribute",
    "attributes",
    multiple=True,
    required=True,
    help="Formula attribute to collect (repeatable).",
)
@click.option("--branch", default=None, help="Branch to walk. (default: HEAD)")
def attributes(formula: str, attributes: tuple[str, ...], branch: str | None) -> None:
    """Print historical attribute values per channel and version as JSON."""
    _, versions, branch = _load(formula, branch)
    try:
        attributes_map = versions.version_attributes_map(list(attributes), branch)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--attribute") from e
    except subprocess.CalledProcessError as e:
        raise _git_failure(e) from e

    click.echo(json.dumps(attributes_map, indent=2, default=str))


@cli.command()
@click.argument("formula")
@click.option("--branch", default=None, help="Branch to walk. (default: HEAD)")
def audit(formula: str, branch: str | None) -> None:
    """Check that revision and version_scheme never go backwards."""
    current, versions, branch = _load(formula, branch)
    try:
        problems = audit_revision_and_version_scheme(current, versions, branch)
    except subprocess.CalledProcessError as e:
        raise _git_failure(e) from e

    if not problems:
        click.echo(f"✓ {current.name}")
        return
    for problem in problems:
        click.echo(f"  * {problem}")
    raise SystemExit(1)
