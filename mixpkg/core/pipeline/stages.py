"""Running the stage hooks declared by a recipe.

A hook is never evaluated inside this process. A string hook is handed to the configured
shell, a list hook is executed as an argv. The hook inherits stdin, stdout and stderr,
runs in the source directory and sees the build context through its environment.
"""

import logging
import subprocess
from pathlib import Path

from mixpkg.core.config import get_config
from mixpkg.core.errors import StageFailed, StageMissing
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.recipe.models import Recipe, StageHook

log = logging.getLogger(__name__)


def run_build_stages(recipe: Recipe, context: BuildContext) -> None:
    """Run prepare, build and check, in that order.

    prepare and check are skipped when the recipe doesn't declare them; build is mandatory
    and its absence is reported before any hook runs.

    :raises StageMissing: if the recipe has no build stage
    :raises StageFailed: if a hook fails
    """
    if recipe.stage_hook("build") is None:
        raise StageMissing("build")

    context.ensure_directories()
    for stage in ("prepare", "build", "check"):
        hook = recipe.stage_hook(stage)
        if hook is None:
            log.debug("No %s step declared, skipping", stage)
            continue
        run_stage(stage, hook, recipe, context)


def run_stage(stage: str, hook: StageHook, recipe: Recipe, context: BuildContext) -> None:
    """Run a single stage hook in the source directory.

    :raises StageFailed: if the hook cannot be started or exits with a non-zero status
    """
    cmd = _hook_command(hook, context.startdir)
    log.info("Starting %s()", stage)
    try:
        result = subprocess.run(
            cmd,
            cwd=context.srcdir.path,
            env=context.environment(recipe),
            check=False,
        )
    except OSError as e:
        raise StageFailed(stage, f"cannot run {cmd[0]!r}: {e.strerror or e}") from e

    if result.returncode != 0:
        raise StageFailed(stage, f"exited with status {result.returncode}")


def _hook_command(hook: StageHook, startdir: Path) -> list[str]:
    if isinstance(hook, str):
        return [*get_config().stage_shell, hook]

    executable, *args = hook
    # ./build.sh or scripts/build.sh live next to the recipe; bare names are looked up in PATH
    if "/" in executable and not Path(executable).is_absolute():
        executable = str(startdir / executable)
    return [executable, *args]
