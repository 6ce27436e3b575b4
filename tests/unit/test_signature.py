import subprocess
from pathlib import Path
from unittest import mock

import pytest

from mixpkg.core.config import Config
from mixpkg.core.errors import SignatureVerificationFailed
from mixpkg.core.signature import signed_file_for, verify_detached_signature


@pytest.mark.parametrize(
    "name, expected",
    [
        ("foo-1.0.tar.gz.sig", "foo-1.0.tar.gz"),
        ("foo-1.0.tar.gz", None),
        (".sig", None),
        ("foo.asc", None),
    ],
)
def test_signed_file_for(name: str, expected: str | None) -> None:
    assert signed_file_for(name) == expected


def test_signed_file_for_configured_extensions(default_config: Config) -> None:
    default_config.signature_extensions = [".asc"]

    assert signed_file_for("foo.asc") == "foo"
    assert signed_file_for("foo.sig") is None


@mock.patch("mixpkg.core.signature.run_cmd")
def test_verify_detached_signature(mock_run_cmd: mock.Mock, tmp_path: Path) -> None:
    verify_detached_signature(tmp_path / "foo.tar.gz.sig", tmp_path / "foo.tar.gz")

    mock_run_cmd.assert_called_once_with(
        [
            "gpg",
            "--batch",
            "--verify",
            str(tmp_path / "foo.tar.gz.sig"),
            str(tmp_path / "foo.tar.gz"),
        ],
        {"cwd": tmp_path},
    )


@mock.patch("mixpkg.core.signature.run_cmd")
def test_verify_detached_signature_fails(mock_run_cmd: mock.Mock, tmp_path: Path) -> None:
    mock_run_cmd.side_effect = subprocess.CalledProcessError(
        1, ["gpg"], stderr="gpg: BAD signature"
    )

    with pytest.raises(
        SignatureVerificationFailed, match="Signature verification failed for foo.tar.gz.sig"
    ) as exc_info:
        verify_detached_signature(tmp_path / "foo.tar.gz.sig", tmp_path / "foo.tar.gz")

    assert exc_info.value.stderr == "gpg: BAD signature"
