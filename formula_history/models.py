"""Data models for formula-history.

These Pydantic models represent one parsed revision of a formula file. A
fresh Formula is built per revision and discarded once its attributes have
been read.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import FormulaNameError


class PkgVersion(BaseModel):
    """A formula version together with its packaging revision.

    Two builds of the same upstream version that differ only in the
    formula's ``revision`` are distinct packages, so history maps keyed by
    PkgVersion keep them apart.

    Attributes:
        version: Upstream version string (e.g., "1.2.3").
        revision: Formula revision; 0 when the formula has none.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    revision: int = 0

    def __str__(self) -> str:
        return f"{self.version}_{self.revision}" if self.revision else self.version


class SoftwareSpec(BaseModel):
    """A release channel (stable or devel) of a formula.

    Attributes:
        url: Download URL of the source archive.
        version: Declared version. When omitted, formulary fills it in from
                 the URL or rejects the spec.
        sha256: Checksum of the source archive.
        mirrors: Alternate download URLs.
    """

    model_config = ConfigDict(extra="forbid")

    url: str
    version: str | None = None
    sha256: str | None = None
    mirrors: list[str] = Field(default_factory=list)


class BottleSpecification(BaseModel):
    """Prebuilt binary artifacts published for a formula.

    Attributes:
        rebuild: Incremented when bottles are rebuilt without a version change.
        root_url: Base URL the bottles are downloaded from.
        cellar: Cellar path the bottles were built for.
        checksums: Map of bottle tag (e.g., "arm64_sonoma") → sha256.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    rebuild: int = 0
    root_url: str | None = None
    cellar: str | None = None
    checksums: dict[str, str] = Field(default_factory=dict, alias="sha256")


class Formula(BaseModel):
    """One parsed revision of a formula file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str
    path: str
    desc: str | None = None
    homepage: str | None = None
    license: str | None = None
    revision: int = 0
    version_scheme: int = 0
    stable: SoftwareSpec | None = None
    devel: SoftwareSpec | None = None
    bottle: BottleSpecification = Field(default_factory=BottleSpecification)

    @property
    def active_spec(self) -> SoftwareSpec | None:
        """The spec used for installs: stable when present, else devel."""
        return self.stable or self.devel

    @property
    def version(self) -> str | None:
        spec = self.active_spec
        return spec.version if spec else None

    @property
    def pkg_version(self) -> PkgVersion:
        return PkgVersion(version=self.version or "", revision=self.revision)

    @property
    def bottle_specification(self) -> BottleSpecification:
        return self.bottle

    @classmethod
    def attribute_names(cls) -> frozenset[str]:
        """Names readable through attribute()."""
        properties = {
            name for name, value in vars(cls).items() if isinstance(value, property)
        }
        return frozenset(cls.model_fields) | properties

    def attribute(self, name: str) -> object:
        """Read a formula attribute by name.

        Raises:
            FormulaNameError: If the formula has no such attribute.
        """
        if name not in self.attribute_names():
            raise FormulaNameError(f"undefined formula attribute {name!r}")
        return getattr(self, name)
