"""Pydantic models for recipe validation."""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    field_validator,
    model_validator,
)

from mixpkg.core.checksum import ChecksumInfo
from mixpkg.core.constants import CHECKSUM_ALGORITHMS, STAGE_NAMES

REMOTE_ORIGIN_PATTERN = re.compile(r"^(https?|ftp|file)://", re.IGNORECASE)
RENAME_DELIMITER = "::"

# A shell command line, or an argv executed directly
StageHook = Union[str, list[str]]


def checksum_table_key(algorithm: str) -> str:
    """Return the recipe key holding the checksums of the given algorithm."""
    return "b2sums" if algorithm == "blake2" else f"{algorithm}sums"


@dataclass(frozen=True)
class SourceEntry:
    """One declared source, resolved into where it comes from and where it goes."""

    index: int
    """Position in the source list, used to look up the matching checksum."""

    specifier: str
    """The raw string from the recipe, e.g. 'foo.tar.gz::https://example.org/v1.tar.gz'."""

    filename: str
    """Destination file name inside the source directory."""

    origin: str
    """URL or local path to get the file from."""

    @property
    def is_remote(self) -> bool:
        """Whether the origin is a URL rather than a local path."""
        return REMOTE_ORIGIN_PATTERN.match(self.origin) is not None

    @classmethod
    def from_specifier(cls, index: int, specifier: str) -> "SourceEntry":
        """Resolve a source specifier, honoring the 'name::origin' rename syntax.

        This is a pure function of its arguments, nothing is looked up on disk or network.

        :raises ValueError: if no destination file name can be derived
        """
        name, delimiter, origin = specifier.rpartition(RENAME_DELIMITER)
        if delimiter and not name:
            raise ValueError(f"source {specifier!r} has an empty name before '::'")
        if not origin:
            raise ValueError(f"source {specifier!r} has an empty origin")

        if not name:
            if REMOTE_ORIGIN_PATTERN.match(origin):
                name = PurePosixPath(unquote(urlparse(origin).path)).name
            else:
                name = PurePosixPath(origin).name
        if not name or name in (".", ".."):
            raise ValueError(
                f"cannot derive a file name from source {specifier!r}, use the 'name::origin' form"
            )

        return cls(index=index, specifier=specifier, filename=name, origin=origin)


class Recipe(BaseModel):
    """
    A parsed and validated build recipe.

    The YAML keys follow the PKGBUILD vocabulary (pkgname, pkgver, ...); attributes use
    descriptive names. Instances are not modified after loading.
    """

    name: str = Field(alias="pkgname", min_length=1)
    version: str = Field(alias="pkgver", min_length=1)
    release: PositiveInt = Field(alias="pkgrel")
    epoch: NonNegativeInt = 0

    description: str = Field("", alias="pkgdesc")
    url: str = ""
    license: list[str] = []
    groups: list[str] = []
    arch: list[str] = Field(min_length=1)
    backup: list[str] = []

    depends: list[str] = []
    makedepends: list[str] = []
    checkdepends: list[str] = []
    optdepends: list[str] = []
    conflicts: list[str] = []
    provides: list[str] = []
    replaces: list[str] = []

    source: list[str] = []
    md5sums: Optional[list[str]] = None
    sha1sums: Optional[list[str]] = None
    sha224sums: Optional[list[str]] = None
    sha256sums: Optional[list[str]] = None
    sha384sums: Optional[list[str]] = None
    sha512sums: Optional[list[str]] = None
    b2sums: Optional[list[str]] = None
    noextract: set[str] = set()

    install: Optional[str] = None
    changelog: Optional[str] = None

    stages: dict[str, Optional[StageHook]] = {}

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    @field_validator("name", "version")
    @classmethod
    def _no_surrounding_whitespace(cls, value: str) -> str:
        if value.strip() != value or not value:
            raise ValueError("must be non-empty and must not contain leading/trailing whitespace")
        return value

    @field_validator("arch")
    @classmethod
    def _arch_as_ordered_set(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @field_validator("stages")
    @classmethod
    def _known_stages(
        cls, value: dict[str, Optional[StageHook]]
    ) -> dict[str, Optional[StageHook]]:
        unknown = set(value) - set(STAGE_NAMES)
        if unknown:
            raise ValueError(f"unknown stages: {', '.join(sorted(unknown))}")
        return value

    @model_validator(mode="after")
    def _validate_sources(self) -> "Recipe":
        for index, specifier in enumerate(self.source):
            SourceEntry.from_specifier(index, specifier)

        for algorithm in CHECKSUM_ALGORITHMS:
            table = self.checksum_table(algorithm)
            if table and len(table) != len(self.source):
                raise ValueError(
                    f"{checksum_table_key(algorithm)} has {len(table)} entries, "
                    f"but there are {len(self.source)} sources"
                )
        return self

    @property
    def source_entries(self) -> list[SourceEntry]:
        """Resolve the source list. Recomputed on every access."""
        return [
            SourceEntry.from_specifier(index, specifier)
            for index, specifier in enumerate(self.source)
        ]

    def checksum_table(self, algorithm: str) -> Optional[list[str]]:
        """Return the declared checksums for an algorithm, or None if the table is absent."""
        return getattr(self, checksum_table_key(algorithm))

    @property
    def active_checksum_algorithm(self) -> Optional[str]:
        """The strongest algorithm with a non-empty checksum table, if any."""
        for algorithm in reversed(CHECKSUM_ALGORITHMS):
            if self.checksum_table(algorithm):
                return algorithm
        return None

    def expected_checksum(self, entry: SourceEntry) -> Optional[ChecksumInfo]:
        """Return the checksum the entry must match under the active algorithm."""
        algorithm = self.active_checksum_algorithm
        if algorithm is None:
            return None
        table = self.checksum_table(algorithm) or []
        return ChecksumInfo(algorithm, table[entry.index])

    def stage_hook(self, stage: str) -> Optional[StageHook]:
        """Return the hook declared for a stage; empty declarations count as absent."""
        return self.stages.get(stage) or None

    @property
    def full_version(self) -> str:
        """Version string in the [epoch:]pkgver-pkgrel form."""
        prefix = f"{self.epoch}:" if self.epoch else ""
        return f"{prefix}{self.version}-{self.release}"
