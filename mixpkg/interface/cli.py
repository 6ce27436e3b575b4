import functools
import importlib.metadata
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from typer.core import TyperGroup

from mixpkg import APP_NAME
from mixpkg.core.config import set_config
from mixpkg.core.constants import DEFAULT_RECIPE_NAME, Mode
from mixpkg.core.errors import BaseError
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.pipeline.main import compile_recipe
from mixpkg.core.pipeline.packager import run_package_stage
from mixpkg.core.pipeline.sources import download_sources
from mixpkg.core.pipeline.stages import run_build_stages
from mixpkg.core.recipe.manifest import Manifest
from mixpkg.core.recipe.models import Recipe
from mixpkg.core.recipe.parser import load_recipe
from mixpkg.interface.logging import LogLevel, setup_logging

log = logging.getLogger(__name__)


# typer may bundle its own click, so take the class it actually raises
_UsageError = next(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "UsageError")


class _ActionGroup(TyperGroup):
    """Command group that reports command line mistakes with exit status 1."""

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except _UsageError as e:
            e.exit_code = 1
            raise

    def invoke(self, ctx: typer.Context) -> Any:
        try:
            return super().invoke(ctx)
        except _UsageError as e:
            e.exit_code = 1
            raise


app = typer.Typer(
    cls=_ActionGroup,
    add_completion=False,
    pretty_exceptions_enable=False,
    context_settings={
        "help_option_names": ["-h", "--help"],
        # dump, DUMP and Dump are the same action
        "token_normalize_func": lambda token: token.lower(),
    },
)


def handle_errors(cmd: Callable[..., None]) -> Callable[..., None]:
    """Decorate a CLI command function with an error handler.

    Expected errors are reported as a single line on stderr and the process exits with
    the error's exit code. The suggested solution is only logged at debug level.
    """

    @functools.wraps(cmd)
    def cmd_with_error_handling(*args: Any, **kwargs: Any) -> None:
        try:
            cmd(*args, **kwargs)
        except BaseError as e:
            log.debug("%s failed: %s", cmd.__name__, e.friendly_msg(), exc_info=True)
            # YAML parser errors span several lines
            reason = " ".join(str(e).split())
            print(f"{type(e).__name__}: {reason}", file=sys.stderr)
            raise typer.Exit(e.exit_code)

    return cmd_with_error_handling


def version_callback(value: bool) -> None:
    """If --version was used, print the version and exit."""
    if not value:
        return

    print(APP_NAME, importlib.metadata.version(APP_NAME))
    raise typer.Exit()


RECIPE_OPTION = typer.Option(
    ...,
    "-p",
    "--recipe",
    dir_okay=False,
    help=f"Path to the recipe file, usually {DEFAULT_RECIPE_NAME}.",
)
SRCDIR_OPTION = typer.Option(
    ...,
    "-s",
    "--srcdir",
    file_okay=False,
    help="Directory where sources are acquired, extracted and built.",
)
PKGDIR_OPTION = typer.Option(
    ...,
    "-d",
    "--pkgdir",
    file_okay=False,
    help="Directory holding the package contents; the archive is written next to it.",
)
NOGPG_OPTION = typer.Option(
    False,
    "--nogpg",
    help="Do not verify detached signatures of the sources.",
)


@app.callback()
@handle_errors
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "-V",
        "--version",
        is_eager=True,
        callback=version_callback,
        help="Show version and exit.",
    ),
    log_level: LogLevel = typer.Option(
        LogLevel.INFO.value,
        case_sensitive=False,
        help="Set log level.",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        exists=True,
        dir_okay=False,
        help="Read configuration from this YAML file.",
    ),
    mode: Mode = typer.Option(
        Mode.PERMISSIVE.value,
        case_sensitive=False,
        help="In strict mode, a recipe without checksums is rejected.",
    ),
) -> None:
    """Build packages from a recipe: fetch and verify sources, run the stages, archive the result."""
    setup_logging(log_level)
    if config_file:
        set_config(config_file)
    ctx.obj = {"mode": mode}


def _load(recipe_path: Path, srcdir: Path, pkgdir: Path) -> tuple[Recipe, BuildContext]:
    # The recipe is validated before anything touches the directories
    recipe = load_recipe(recipe_path)
    return recipe, BuildContext.create(recipe_path, srcdir, pkgdir)


@app.command()
@handle_errors
def dump(
    recipe_path: Path = RECIPE_OPTION,
    srcdir: Path = SRCDIR_OPTION,
    pkgdir: Path = PKGDIR_OPTION,
) -> None:
    """Print the package manifest of the recipe."""
    recipe = load_recipe(recipe_path)
    typer.echo(Manifest.from_recipe(recipe).render(), nl=False)


@app.command()
@handle_errors
def download(
    ctx: typer.Context,
    recipe_path: Path = RECIPE_OPTION,
    srcdir: Path = SRCDIR_OPTION,
    pkgdir: Path = PKGDIR_OPTION,
    nogpg: bool = NOGPG_OPTION,
) -> None:
    """Acquire, verify and extract the sources."""
    recipe, context = _load(recipe_path, srcdir, pkgdir)
    download_sources(recipe, context, verify_signatures=not nogpg, mode=ctx.obj["mode"])


@app.command()
@handle_errors
def build(
    recipe_path: Path = RECIPE_OPTION,
    srcdir: Path = SRCDIR_OPTION,
    pkgdir: Path = PKGDIR_OPTION,
) -> None:
    """Run the prepare, build and check stages."""
    recipe, context = _load(recipe_path, srcdir, pkgdir)
    run_build_stages(recipe, context)


@app.command()
@handle_errors
def package(
    recipe_path: Path = RECIPE_OPTION,
    srcdir: Path = SRCDIR_OPTION,
    pkgdir: Path = PKGDIR_OPTION,
    report: bool = typer.Option(True, hidden=True, help="Print the path of the archive."),
) -> None:
    """Run the package stage, write the manifest and create the package archive."""
    recipe, context = _load(recipe_path, srcdir, pkgdir)
    archive = run_package_stage(recipe, context)
    if report:
        typer.echo(str(archive))


@app.command(name="compile")
@handle_errors
def compile_(
    ctx: typer.Context,
    recipe_path: Path = RECIPE_OPTION,
    srcdir: Path = SRCDIR_OPTION,
    pkgdir: Path = PKGDIR_OPTION,
    nogpg: bool = NOGPG_OPTION,
) -> None:
    """Download, build and package in one go; packaging runs under the privilege wrapper."""
    recipe, context = _load(recipe_path, srcdir, pkgdir)
    archive = compile_recipe(
        recipe,
        recipe_path,
        context,
        verify_signatures=not nogpg,
        mode=ctx.obj["mode"],
    )
    typer.echo(str(archive))


def main() -> None:
    """Run the mixpkg command line."""
    app()
