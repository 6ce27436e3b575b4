import json
import sys
from pathlib import Path
from typing import Any
from unittest import mock

import pytest

from mixpkg.core.config import Config
from mixpkg.core.errors import StageFailed, StageMissing
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.pipeline.main import compile_recipe, run_wrapped_package_stage
from mixpkg.core.recipe.models import Recipe


def _recipe(**fields: Any) -> Recipe:
    return Recipe.model_validate(
        {"pkgname": "foo", "pkgver": "1.0", "pkgrel": 1, "arch": ["any"], **fields}
    )


@pytest.mark.parametrize(
    "stages, missing",
    [({"package": "true"}, "build"), ({"build": "true"}, "package")],
)
@mock.patch("mixpkg.core.pipeline.main.download_sources")
def test_missing_stage_fails_before_fetching(
    mock_download: mock.Mock,
    stages: dict[str, str],
    missing: str,
    recipe_dir: Path,
    build_context: BuildContext,
) -> None:
    with pytest.raises(StageMissing) as exc_info:
        compile_recipe(_recipe(stages=stages), recipe_dir / "RECIPE.yaml", build_context)

    assert exc_info.value.stage == missing
    mock_download.assert_not_called()


def test_compile_in_process(recipe_dir: Path, tmp_path: Path, build_context: BuildContext) -> None:
    (recipe_dir / "hello.txt").write_text("hello\n")
    recipe = _recipe(
        source=["hello.txt"],
        sha256sums=["SKIP"],
        stages={
            "build": "cp hello.txt built.txt",
            "package": 'cp built.txt "$pkgdir/"',
        },
    )

    archive = compile_recipe(recipe, recipe_dir / "RECIPE.yaml", build_context)

    assert archive == tmp_path / "foo.tar.xz"
    assert (build_context.pkgdir.path / "built.txt").read_text() == "hello\n"


@mock.patch("mixpkg.core.pipeline.main.run_wrapped_package_stage")
@mock.patch("mixpkg.core.pipeline.main.run_package_stage")
@mock.patch("mixpkg.core.pipeline.main.run_build_stages")
@mock.patch("mixpkg.core.pipeline.main.download_sources")
def test_compile_uses_privilege_wrapper(
    mock_download: mock.Mock,
    mock_build: mock.Mock,
    mock_package: mock.Mock,
    mock_wrapped: mock.Mock,
    recipe_dir: Path,
    build_context: BuildContext,
    default_config: Config,
) -> None:
    default_config.privilege_wrapper = ["fakeroot", "--"]
    recipe = _recipe(stages={"build": "true", "package": "true"})

    result = compile_recipe(recipe, recipe_dir / "RECIPE.yaml", build_context, verify_signatures=False)

    assert result == mock_wrapped.return_value
    mock_download.assert_called_once_with(
        recipe, build_context, verify_signatures=False, mode=mock.ANY
    )
    mock_build.assert_called_once_with(recipe, build_context)
    mock_package.assert_not_called()
    mock_wrapped.assert_called_once_with(
        ["fakeroot", "--"], recipe, recipe_dir / "RECIPE.yaml", build_context
    )


@mock.patch("mixpkg.core.pipeline.main.subprocess.run")
def test_run_wrapped_package_stage(
    mock_run: mock.Mock,
    recipe_dir: Path,
    tmp_path: Path,
    build_context: BuildContext,
    default_config: Config,
) -> None:
    mock_run.return_value.returncode = 0
    default_config.concurrency_limit = 2
    default_config.privilege_wrapper = ["fakeroot", "--"]

    archive = run_wrapped_package_stage(
        ["fakeroot", "--"], _recipe(), recipe_dir / "RECIPE.yaml", build_context
    )

    assert archive == tmp_path / "foo.tar.xz"
    cmd = mock_run.call_args.args[0]
    assert cmd[:5] == ["fakeroot", "--", sys.executable, "-m", "mixpkg"]
    assert cmd[7:] == [
        "package",
        "--no-report",
        "-p",
        str((recipe_dir / "RECIPE.yaml").resolve()),
        "-s",
        str(build_context.srcdir),
        "-d",
        str(build_context.pkgdir),
    ]
    env = mock_run.call_args.kwargs["env"]
    assert env["MIXPKG_CONCURRENCY_LIMIT"] == "2"
    assert json.loads(env["MIXPKG_PRIVILEGE_WRAPPER"]) == ["fakeroot", "--"]
    assert env["MIXPKG_ARCHIVE_COMPRESSION"] == "xz"


@mock.patch("mixpkg.core.pipeline.main.subprocess.run")
def test_run_wrapped_package_stage_fails(
    mock_run: mock.Mock, recipe_dir: Path, build_context: BuildContext
) -> None:
    mock_run.return_value.returncode = 14

    with pytest.raises(StageFailed, match="The package step failed: exited with status 14"):
        run_wrapped_package_stage(["fakeroot", "--"], _recipe(), recipe_dir / "RECIPE.yaml", build_context)


@mock.patch("mixpkg.core.pipeline.main.subprocess.run")
def test_missing_privilege_wrapper(
    mock_run: mock.Mock, recipe_dir: Path, build_context: BuildContext
) -> None:
    mock_run.side_effect = FileNotFoundError(2, "No such file or directory")

    with pytest.raises(StageFailed, match="cannot run 'fakeroot'") as exc_info:
        run_wrapped_package_stage(["fakeroot", "--"], _recipe(), recipe_dir / "RECIPE.yaml", build_context)

    assert "privilege_wrapper" in exc_info.value.friendly_msg()
