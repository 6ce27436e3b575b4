from typing import Any

import pytest
from pydantic import ValidationError

from mixpkg.core.checksum import ChecksumInfo
from mixpkg.core.recipe.models import Recipe, SourceEntry, checksum_table_key

MINIMAL_RECIPE: dict[str, Any] = {
    "pkgname": "foo",
    "pkgver": "1.0",
    "pkgrel": 1,
    "arch": ["x86_64"],
}


def _recipe(**fields: Any) -> Recipe:
    return Recipe.model_validate({**MINIMAL_RECIPE, **fields})


class TestSourceEntry:
    @pytest.mark.parametrize(
        "specifier, expected_filename, expected_origin, expected_remote",
        [
            (
                "https://example.org/foo-1.0.tar.gz",
                "foo-1.0.tar.gz",
                "https://example.org/foo-1.0.tar.gz",
                True,
            ),
            (
                "foo.tar.gz::https://example.org/archive/v1.0.tar.gz?download=1",
                "foo.tar.gz",
                "https://example.org/archive/v1.0.tar.gz?download=1",
                True,
            ),
            (
                "https://example.org/my%20file.txt",
                "my file.txt",
                "https://example.org/my%20file.txt",
                True,
            ),
            ("ftp://ftp.example.org/pub/foo.zip", "foo.zip", "ftp://ftp.example.org/pub/foo.zip", True),
            (
                "HTTPS://Example.org/Foo-1.0.tar.gz",
                "Foo-1.0.tar.gz",
                "HTTPS://Example.org/Foo-1.0.tar.gz",
                True,
            ),
            ("patches/fix-build.patch", "fix-build.patch", "patches/fix-build.patch", False),
            ("hello.txt", "hello.txt", "hello.txt", False),
            ("renamed.txt::hello.txt", "renamed.txt", "hello.txt", False),
        ],
    )
    def test_from_specifier(
        self,
        specifier: str,
        expected_filename: str,
        expected_origin: str,
        expected_remote: bool,
    ) -> None:
        entry = SourceEntry.from_specifier(3, specifier)

        assert entry.index == 3
        assert entry.specifier == specifier
        assert entry.filename == expected_filename
        assert entry.origin == expected_origin
        assert entry.is_remote == expected_remote

    @pytest.mark.parametrize(
        "specifier, expected_error",
        [
            ("::https://example.org/foo.tar.gz", "empty name before '::'"),
            ("foo.tar.gz::", "empty origin"),
            ("https://example.org/", "cannot derive a file name"),
            ("..", "cannot derive a file name"),
        ],
    )
    def test_from_specifier_invalid(self, specifier: str, expected_error: str) -> None:
        with pytest.raises(ValueError, match=expected_error):
            SourceEntry.from_specifier(0, specifier)


class TestRecipe:
    def test_minimal_recipe(self) -> None:
        recipe = _recipe()

        assert recipe.name == "foo"
        assert recipe.version == "1.0"
        assert recipe.release == 1
        assert recipe.epoch == 0
        assert recipe.source == []
        assert recipe.source_entries == []
        assert recipe.active_checksum_algorithm is None
        assert recipe.full_version == "1.0-1"

    def test_full_version_with_epoch(self) -> None:
        assert _recipe(epoch=2).full_version == "2:1.0-1"

    def test_arch_is_deduplicated_in_order(self) -> None:
        assert _recipe(arch=["x86_64", "aarch64", "x86_64"]).arch == ["x86_64", "aarch64"]

    @pytest.mark.parametrize(
        "fields, expected_error",
        [
            ({"arch": []}, "arch"),
            ({"pkgname": ""}, "pkgname"),
            ({"pkgname": " foo"}, "leading/trailing whitespace"),
            ({"pkgrel": 0}, "pkgrel"),
            ({"pkgver": 1.0}, "pkgver"),
            ({"epoch": -1}, "epoch"),
            ({"unknown_key": "x"}, "Extra inputs are not permitted"),
            ({"stages": {"install": "true"}}, "unknown stages: install"),
            ({"source": ["a.txt", "b.txt"], "sha256sums": ["SKIP"]}, "sha256sums has 1 entries"),
            ({"source": ["::a.txt"]}, "empty name before '::'"),
        ],
    )
    def test_invalid_recipe(self, fields: dict[str, Any], expected_error: str) -> None:
        with pytest.raises(ValidationError, match=expected_error):
            _recipe(**fields)

    def test_missing_mandatory_field(self) -> None:
        with pytest.raises(ValidationError, match="arch"):
            Recipe.model_validate({"pkgname": "foo", "pkgver": "1.0", "pkgrel": 1})

    def test_recipe_is_frozen(self) -> None:
        recipe = _recipe()
        with pytest.raises(ValidationError):
            recipe.name = "bar"  # type: ignore[misc]

    def test_strongest_checksum_algorithm_wins(self) -> None:
        recipe = _recipe(
            source=["a.txt", "b.txt"],
            md5sums=["m1", "m2"],
            sha512sums=["s1", "SKIP"],
            sha256sums=[],
        )

        assert recipe.active_checksum_algorithm == "sha512"
        entries = recipe.source_entries
        assert recipe.expected_checksum(entries[0]) == ChecksumInfo("sha512", "s1")
        assert recipe.expected_checksum(entries[1]) == ChecksumInfo("sha512", "SKIP")
        assert recipe.expected_checksum(entries[1]).is_skip

    def test_b2sums(self) -> None:
        recipe = _recipe(source=["a.txt"], b2sums=["abc"])

        assert recipe.active_checksum_algorithm == "blake2"
        assert recipe.checksum_table("blake2") == ["abc"]
        assert checksum_table_key("blake2") == "b2sums"
        assert checksum_table_key("sha1") == "sha1sums"

    def test_stage_hooks(self) -> None:
        recipe = _recipe(
            stages={"build": "make", "check": ["make", "test"], "prepare": "", "package": None}
        )

        assert recipe.stage_hook("build") == "make"
        assert recipe.stage_hook("check") == ["make", "test"]
        assert recipe.stage_hook("prepare") is None
        assert recipe.stage_hook("package") is None

    def test_descriptive_names_are_accepted(self) -> None:
        recipe = Recipe(name="foo", version="1.0", release=2, arch=["any"])
        assert recipe.release == 2
