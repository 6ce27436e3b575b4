import hashlib
import logging
from pathlib import Path
from typing import Any, Callable, NamedTuple

from mixpkg.core.constants import CHECKSUM_ALGORITHMS, SKIP_CHECKSUM
from mixpkg.core.errors import ChecksumVerificationFailed

log = logging.getLogger(__name__)

_HASH_CONSTRUCTORS: dict[str, Callable[[], Any]] = {
    "md5": hashlib.md5,
    "sha1": hashlib.sha1,
    "sha224": hashlib.sha224,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
    "blake2": hashlib.blake2b,
}
if set(_HASH_CONSTRUCTORS) != set(CHECKSUM_ALGORITHMS):
    raise ValueError("Every supported checksum algorithm needs a hash constructor")


class ChecksumInfo(NamedTuple):
    """A cryptographic algorithm and a hex-encoded checksum calculated by that algorithm."""

    algorithm: str
    hexdigest: str

    @property
    def is_skip(self) -> bool:
        """Whether the recipe asked not to verify this entry."""
        return self.hexdigest.upper() == SKIP_CHECKSUM


def compute_hexdigest(file_path: Path, algorithm: str, chunk_size: int = 10240) -> str:
    """Compute the hex digest of a file.

    :param file_path: path to the file
    :param algorithm: one of the supported checksum algorithms
    :param chunk_size: read the file in chunks of this size
    """
    hasher = _HASH_CONSTRUCTORS[algorithm]()
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def must_match_checksum(file_path: Path, expected: ChecksumInfo, chunk_size: int = 10240) -> None:
    """Verify that the file matches the expected checksum.

    Digests are compared case-insensitively. A SKIP checksum is accepted without reading the file.

    :param file_path: path to the file to verify
    :param expected: the checksum the file must match
    :param chunk_size: read the file in chunks of this size
    :raises ChecksumVerificationFailed: if the checksum does not match
    """
    filename = file_path.name
    if expected.is_skip:
        log.debug("%s: skipping %s verification", filename, expected.algorithm)
        return

    actual = compute_hexdigest(file_path, expected.algorithm, chunk_size)
    if actual.lower() == expected.hexdigest.strip().lower():
        log.debug("%s: %s checksum matches: %s", filename, expected.algorithm, actual)
        return

    log.debug(
        "%s: %s checksum mismatch, expected %s, got %s",
        filename,
        expected.algorithm,
        expected.hexdigest,
        actual,
    )
    raise ChecksumVerificationFailed(filename, expected.algorithm)
