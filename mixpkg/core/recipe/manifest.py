"""The metadata snapshot embedded in every package.

The manifest is a flat list of ``key = value`` lines. Values are quoted strings or
bracketed sequences of quoted strings, which also makes the document valid TOML::

    name = "foo"
    version = "1.0"
    release = "1"
    epoch = "0"
    depends = ["glibc", "zlib"]
"""

import json
import tomllib

from pydantic import BaseModel, ConfigDict

from mixpkg.core.recipe.models import Recipe

SCALAR_FIELDS = ("name", "version", "release", "epoch", "description", "url")
LIST_FIELDS = (
    "license",
    "groups",
    "backup",
    "depends",
    "makedepends",
    "checkdepends",
    "optdepends",
    "conflicts",
    "provides",
    "replaces",
)


class Manifest(BaseModel):
    """Declared package metadata, independent of anything the build stages produce."""

    name: str
    version: str
    release: str
    epoch: str = "0"
    description: str = ""
    url: str = ""

    license: list[str] = []
    groups: list[str] = []
    backup: list[str] = []
    depends: list[str] = []
    makedepends: list[str] = []
    checkdepends: list[str] = []
    optdepends: list[str] = []
    conflicts: list[str] = []
    provides: list[str] = []
    replaces: list[str] = []

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "Manifest":
        """Take a snapshot of the recipe's public metadata."""
        return cls(
            name=recipe.name,
            version=recipe.version,
            release=str(recipe.release),
            epoch=str(recipe.epoch),
            description=recipe.description,
            url=recipe.url,
            **{field: list(getattr(recipe, field)) for field in LIST_FIELDS},
        )

    def render(self) -> str:
        """Serialize the manifest, one field per line, in a fixed order."""
        lines = [f"{field} = {_quote(getattr(self, field))}" for field in SCALAR_FIELDS]
        lines.extend(
            f"{field} = [{', '.join(_quote(item) for item in getattr(self, field))}]"
            for field in LIST_FIELDS
        )
        return "\n".join(lines) + "\n"

    @classmethod
    def parse(cls, text: str) -> "Manifest":
        """Read back a rendered manifest.

        :raises tomllib.TOMLDecodeError: if the text is not well-formed
        :raises pydantic.ValidationError: if fields are missing, unknown or of the wrong type
        """
        return cls.model_validate(tomllib.loads(text))


def _quote(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes
    return json.dumps(value, ensure_ascii=False)
