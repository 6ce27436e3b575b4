"""Reading source archives and writing package archives."""

import logging
import lzma
import tarfile
import zipfile
import zlib
from pathlib import Path

from mixpkg.core.errors import ArchiveCreationFailed, ExtractionFailed, PathOutsideRoot
from mixpkg.core.rooted_path import RootedPath

log = logging.getLogger(__name__)

ARCHIVE_EXTENSIONS = {"xz": ".tar.xz", "gz": ".tar.gz", "bz2": ".tar.bz2"}

_CORRUPT_ARCHIVE_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    EOFError,
    zlib.error,
    lzma.LZMAError,
    OSError,
)


def is_archive(path: Path) -> bool:
    """Probe whether the file is a tar (any compression) or zip archive."""
    if not path.is_file():
        return False
    return tarfile.is_tarfile(path) or zipfile.is_zipfile(path)


def extract_archive(archive_path: Path, destination: RootedPath) -> bool:
    """Extract an archive into the destination directory, overwriting existing files.

    Files that are not recognized as archives are left untouched.

    :param archive_path: the file to extract
    :param destination: the directory to extract into; members may not escape it
    :return: True if the file was an archive and got extracted
    :raises ExtractionFailed: if the archive is recognized but cannot be extracted
    """
    if not is_archive(archive_path):
        log.debug("%s is not an archive, leaving it as is", archive_path.name)
        return False

    log.info("Extracting %s", archive_path.name)
    try:
        if tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path, mode="r:*") as tar:
                for member in tar.getmembers():
                    destination.join_within_root(member.name)
                tar.extractall(destination.path, filter="data")
        else:
            with zipfile.ZipFile(archive_path) as zf:
                for name in zf.namelist():
                    destination.join_within_root(name)
                zf.extractall(destination.path)
    except PathOutsideRoot as e:
        raise ExtractionFailed(
            f"Refusing to extract {archive_path.name}: {e}",
            solution="The archive contains members that point outside the source directory.",
        ) from e
    except _CORRUPT_ARCHIVE_ERRORS as e:
        raise ExtractionFailed(f"Failed to extract {archive_path.name}: {e}") from e

    return True


def _as_root(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo:
    tarinfo.uid = tarinfo.gid = 0
    tarinfo.uname = tarinfo.gname = "root"
    return tarinfo


def create_archive(content_dir: Path, archive_path: Path, compression: str = "xz") -> Path:
    """Archive the contents of a directory, without the directory itself.

    Members are stored relative to content_dir, owned by root.

    :param content_dir: the directory whose contents should be archived
    :param archive_path: where to write the archive
    :param compression: one of the ARCHIVE_EXTENSIONS keys
    :return: the absolute path of the archive
    :raises ArchiveCreationFailed: if the archive cannot be written
    """
    if compression not in ARCHIVE_EXTENSIONS:
        raise ArchiveCreationFailed(f"Unsupported archive compression: {compression}")

    archive_path = archive_path.absolute()
    log.info("Creating package archive %s", archive_path)
    try:
        with tarfile.open(archive_path, mode=f"w:{compression}") as tar:
            for entry in sorted(content_dir.iterdir()):
                tar.add(entry, arcname=entry.name, filter=_as_root)
    except (tarfile.TarError, OSError) as e:
        archive_path.unlink(missing_ok=True)
        raise ArchiveCreationFailed(f"Failed to create {archive_path}: {e}") from e

    return archive_path
