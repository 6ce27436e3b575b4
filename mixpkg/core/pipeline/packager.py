import logging
import shutil
from pathlib import Path

from mixpkg.core.archive import ARCHIVE_EXTENSIONS, create_archive
from mixpkg.core.config import get_config
from mixpkg.core.constants import CHANGELOG_FILENAME, INSTALL_FILENAME, MANIFEST_FILENAME
from mixpkg.core.errors import SourceNotFound, StageMissing
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.pipeline.stages import run_stage
from mixpkg.core.recipe.manifest import Manifest
from mixpkg.core.recipe.models import Recipe

log = logging.getLogger(__name__)


def archive_path_for(recipe: Recipe, context: BuildContext) -> Path:
    """Return where the package archive is written: next to the package directory."""
    extension = ARCHIVE_EXTENSIONS[get_config().archive_compression]
    return context.pkgdir.path.parent / f"{recipe.name}{extension}"


def run_package_stage(recipe: Recipe, context: BuildContext) -> Path:
    """Run the package hook, then assemble and archive the package directory.

    :return: absolute path of the package archive
    :raises StageMissing: if the recipe has no package stage
    :raises StageFailed: if the package hook fails
    :raises SourceNotFound: if a declared install script or changelog doesn't exist
    :raises ArchiveCreationFailed: if the archive cannot be written
    """
    hook = recipe.stage_hook("package")
    if hook is None:
        raise StageMissing("package", solution="Declare a package stage, even a no-op like 'true'.")

    context.ensure_directories()
    run_stage("package", hook, recipe, context)

    if recipe.install:
        _copy_auxiliary_file(context.startdir / recipe.install, context.pkgdir.path / INSTALL_FILENAME)
    if recipe.changelog:
        _copy_auxiliary_file(
            context.startdir / recipe.changelog, context.pkgdir.path / CHANGELOG_FILENAME
        )

    log.info("Generating %s", MANIFEST_FILENAME)
    manifest_path = context.pkgdir.path / MANIFEST_FILENAME
    manifest_path.write_text(Manifest.from_recipe(recipe).render())

    archive = create_archive(
        context.pkgdir.path,
        archive_path_for(recipe, context),
        compression=get_config().archive_compression,
    )
    log.info("Finished making %s %s", recipe.name, recipe.full_version)
    return archive


def _copy_auxiliary_file(source: Path, destination: Path) -> None:
    if not source.is_file():
        raise SourceNotFound(source)
    log.info("Adding %s file", destination.name)
    shutil.copyfile(source, destination)
