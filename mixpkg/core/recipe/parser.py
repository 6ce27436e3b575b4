"""Loading recipes from disk."""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from mixpkg.core.errors import RecipeInvalid
from mixpkg.core.recipe.models import Recipe

log = logging.getLogger(__name__)


def load_recipe(recipe_path: Path) -> Recipe:
    """
    Load and validate a recipe.

    Nothing but the recipe file itself is read, so an invalid recipe is rejected before
    the pipeline touches the source or package directories.

    :param recipe_path: Path to the recipe file
    :return: Validated Recipe object
    :raises RecipeInvalid: If the recipe cannot be read, parsed or validated
    """
    if not recipe_path.is_file():
        raise RecipeInvalid(
            recipe_path,
            "file does not exist",
            solution="Pass the path of an existing recipe file with -p.",
        )

    log.debug(f"Reading recipe: {recipe_path}")
    try:
        with open(recipe_path) as f:
            recipe_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RecipeInvalid(
            recipe_path,
            f"invalid YAML format: {e}",
            solution="Check correct YAML syntax in the recipe.",
        ) from e
    except (OSError, UnicodeDecodeError) as e:
        raise RecipeInvalid(recipe_path, f"cannot be read: {e}", solution=None) from e

    if not isinstance(recipe_data, dict):
        raise RecipeInvalid(recipe_path, "the recipe must be a mapping of fields")

    try:
        return Recipe.model_validate(recipe_data)
    except ValidationError as e:
        raise RecipeInvalid(recipe_path, _describe_first_error(e)) from e


def _describe_first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    msg = first["msg"]
    return f"'{loc}: {msg}'" if loc else f"'{msg}'"
