import logging
from pathlib import Path
from typing import Iterator

import pytest

from mixpkg import APP_NAME
from mixpkg.core import config as config_module
from mixpkg.core.config import Config
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.rooted_path import RootedPath


@pytest.fixture
def rooted_tmp_path(tmp_path: Path) -> RootedPath:
    """Return RootedPath object wrapper for tmp_path."""
    return RootedPath(tmp_path)


@pytest.fixture(autouse=True)
def default_config() -> Iterator[Config]:
    """Run every test with a fresh configuration that packages in-process."""
    config_module.config = Config(privilege_wrapper=[])
    yield config_module.config
    config_module.config = None


@pytest.fixture
def recipe_dir(tmp_path: Path) -> Path:
    path = tmp_path / "recipe"
    path.mkdir()
    return path


@pytest.fixture
def build_context(tmp_path: Path, recipe_dir: Path) -> BuildContext:
    """A context whose directories don't exist yet."""
    return BuildContext.create(recipe_dir / "RECIPE.yaml", tmp_path / "src", tmp_path / "pkg")


@pytest.fixture(autouse=True)
def detach_log_handlers() -> Iterator[None]:
    """Drop handlers added by CLI runs, they write to streams that are closed afterwards."""
    yield
    logger = logging.getLogger(APP_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
