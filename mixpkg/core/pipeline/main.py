"""The pipeline actions: download, build, package and compile."""

import json
import logging
import os
import subprocess
import sys
from pathlib import Path

from mixpkg.core.config import get_config
from mixpkg.core.constants import Mode
from mixpkg.core.errors import StageFailed, StageMissing
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.pipeline.packager import archive_path_for, run_package_stage
from mixpkg.core.pipeline.sources import download_sources
from mixpkg.core.pipeline.stages import run_build_stages
from mixpkg.core.recipe.models import Recipe

log = logging.getLogger(__name__)


def compile_recipe(
    recipe: Recipe,
    recipe_path: Path,
    context: BuildContext,
    verify_signatures: bool = True,
    mode: Mode = Mode.PERMISSIVE,
) -> Path:
    """Run the whole pipeline: download, build, then package with dropped privileges.

    :return: absolute path of the package archive
    """
    # Fail before fetching anything if a mandatory hook is missing
    for stage in ("build", "package"):
        if recipe.stage_hook(stage) is None:
            raise StageMissing(stage)

    download_sources(recipe, context, verify_signatures=verify_signatures, mode=mode)
    run_build_stages(recipe, context)

    wrapper = get_config().privilege_wrapper
    if not wrapper:
        return run_package_stage(recipe, context)
    return run_wrapped_package_stage(wrapper, recipe, recipe_path, context)


def run_wrapped_package_stage(
    wrapper: list[str], recipe: Recipe, recipe_path: Path, context: BuildContext
) -> Path:
    """Run the package action in a new mixpkg process started through the wrapper command.

    :raises StageFailed: if the wrapped process cannot be started or fails
    """
    cmd = [
        *wrapper,
        sys.executable,
        "-m",
        "mixpkg",
        "--log-level",
        logging.getLevelName(logging.getLogger("mixpkg").getEffectiveLevel()).lower(),
        "package",
        "--no-report",
        "-p",
        str(recipe_path.resolve()),
        "-s",
        str(context.srcdir),
        "-d",
        str(context.pkgdir),
    ]
    log.info("Entering %s", " ".join(wrapper))
    try:
        result = subprocess.run(cmd, env=_environment_with_config(), check=False)
    except OSError as e:
        raise StageFailed(
            "package",
            f"cannot run {wrapper[0]!r}: {e.strerror or e}",
            solution="Install the privilege wrapper or set privilege_wrapper to [] in the config.",
        ) from e

    if result.returncode != 0:
        raise StageFailed("package", f"exited with status {result.returncode}")

    return archive_path_for(recipe, context).absolute()


def _environment_with_config() -> dict[str, str]:
    """Pass the effective configuration on to a child mixpkg process."""
    env = os.environ.copy()
    for name, value in get_config().model_dump().items():
        env[f"MIXPKG_{name.upper()}"] = value if isinstance(value, str) else json.dumps(value)
    return env
