import os
from dataclasses import dataclass
from pathlib import Path

from mixpkg.core.recipe.models import Recipe
from mixpkg.core.rooted_path import RootedPath
from mixpkg.core.type_aliases import StrPath


@dataclass(frozen=True)
class BuildContext:
    """The directories a pipeline run works in, and what stage hooks get to see of them."""

    srcdir: RootedPath
    """Sources are acquired and extracted here; stage hooks run here."""

    pkgdir: RootedPath
    """The package tree; its contents end up in the archive."""

    startdir: Path
    """Directory of the recipe; local sources and auxiliary files are relative to it."""

    @classmethod
    def create(cls, recipe_path: StrPath, srcdir: StrPath, pkgdir: StrPath) -> "BuildContext":
        """Make a context from command line paths. Nothing is created on disk."""
        return cls(
            srcdir=RootedPath(srcdir),
            pkgdir=RootedPath(pkgdir),
            startdir=Path(recipe_path).resolve().parent,
        )

    def ensure_directories(self) -> None:
        """Create the source and package directories if they don't exist yet."""
        self.srcdir.path.mkdir(parents=True, exist_ok=True)
        self.pkgdir.path.mkdir(parents=True, exist_ok=True)

    def environment(self, recipe: Recipe) -> dict[str, str]:
        """Return the environment for stage hooks: the current one plus the build bindings."""
        env = os.environ.copy()
        env.update(
            srcdir=str(self.srcdir),
            pkgdir=str(self.pkgdir),
            startdir=str(self.startdir),
            pkgname=recipe.name,
            pkgver=recipe.version,
            pkgrel=str(recipe.release),
            epoch=str(recipe.epoch),
        )
        return env
