"""Exception taxonomy for formula parsing and history retrieval."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-history errors."""


class FormulaUnavailableError(FormulaError):
    """The formula does not logically exist (e.g., the file was emptied)."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No available formula with the name {name!r}")
        self.name = name


class RetrievalError(FormulaError):
    """The formula file has no blob at the requested revision."""

    def __init__(self, path: str, revision: str) -> None:
        super().__init__(f"{path} does not exist at revision {revision}")
        self.path = path
        self.revision = revision


class FormulaSyntaxError(FormulaError):
    """The formula could not be decoded or is not valid TOML."""


class FormulaNameError(FormulaError, NameError):
    """The formula references a key or attribute that is not known."""


class FormulaLoadError(FormulaError):
    """A file the formula includes could not be loaded."""


class FormulaSpecificationError(FormulaError):
    """A stable/devel/bottle block is incomplete or inconsistent."""


class FormulaValidationError(FormulaError):
    """The formula document failed schema validation."""

    def __init__(self, name: str, detail: object) -> None:
        super().__init__(f"Invalid formula {name!r}: {detail}")
        self.name = name


class MethodDeprecatedError(FormulaError):
    """A deprecated formula key was used while deprecations are strict."""
