"""Repository-level settings.

Settings live in the repository root's pyproject.toml:

    [tool.formula-history]
    formula-dir = "Formula"
    branch = "origin/main"

Uses tomlkit, matching how formulas themselves are read.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Settings for history walks in one repository.

    Attributes:
        formula_dir: Directory (relative to the root) holding formula files.
        branch: Default branch or revision whose history is walked.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    formula_dir: str = Field(default="Formula", alias="formula-dir")
    branch: str = "HEAD"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Read the settings file at ``path`` as a tomlkit document."""
    return tomlkit.parse(path.read_text(encoding="utf-8"))


def load_settings(root: Path) -> Settings:
    """Read [tool.formula-history] from ``root``/pyproject.toml.

    Missing file or table yields the defaults.
    """
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return Settings()
    doc = load_pyproject(pyproject).unwrap()
    return Settings.model_validate(doc.get("tool", {}).get("formula-history", {}))
