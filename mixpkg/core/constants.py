import enum


class Mode(str, enum.Enum):
    """Represents a global CLI option to relax or tighten verification requirements."""

    STRICT = "strict"
    PERMISSIVE = "permissive"

    def __str__(self) -> str:
        return self.value


# Weakest to strongest; the recipe key of each table is "<name>sums", except blake2 ("b2sums")
CHECKSUM_ALGORITHMS = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512", "blake2")

SKIP_CHECKSUM = "SKIP"

DEFAULT_RECIPE_NAME = "RECIPE.yaml"

MANIFEST_FILENAME = ".PKGINFO"
INSTALL_FILENAME = ".INSTALL"
CHANGELOG_FILENAME = ".CHANGELOG"

STAGE_NAMES = ("prepare", "build", "check", "package")
