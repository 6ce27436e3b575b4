"""Acquiring, verifying and extracting the sources of a recipe."""

import asyncio
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse

from mixpkg.core.archive import extract_archive
from mixpkg.core.checksum import must_match_checksum
from mixpkg.core.config import get_config
from mixpkg.core.constants import Mode
from mixpkg.core.errors import MissingChecksum, SourceNotFound
from mixpkg.core.fetch import async_download_files, download_binary_file
from mixpkg.core.pipeline.context import BuildContext
from mixpkg.core.recipe.models import Recipe, SourceEntry, checksum_table_key
from mixpkg.core.signature import signed_file_for, verify_detached_signature

log = logging.getLogger(__name__)


def download_sources(
    recipe: Recipe,
    context: BuildContext,
    verify_signatures: bool = True,
    mode: Mode = Mode.PERMISSIVE,
) -> None:
    """Acquire, verify and extract all sources of the recipe, in that order.

    :param recipe: the recipe to process
    :param context: the directories of this run
    :param verify_signatures: whether to check detached signatures
    :param mode: in strict mode a recipe without checksums is rejected
    """
    context.ensure_directories()
    acquire_sources(recipe, context)
    verify_sources(recipe, context, verify_signatures=verify_signatures, mode=mode)
    extract_sources(recipe, context)


def acquire_sources(recipe: Recipe, context: BuildContext) -> None:
    """Fetch or copy every source into the source directory.

    Files that are already present are not acquired again, so a failed run can be resumed.
    An origin shared by several entries is fetched once and copied to the other destinations.

    :raises SourceNotFound: if a local source does not exist
    :raises FetchError: if a download fails
    :raises PathOutsideRoot: if a source would be written outside the source directory
    """
    acquired: set[Path] = set()
    to_fetch: dict[str, list[Path]] = {}
    for entry in recipe.source_entries:
        destination = context.srcdir.join_within_root(entry.filename).path
        if destination.exists() or destination in acquired:
            log.info("Found %s, skipping", entry.filename)
            continue

        acquired.add(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        if entry.is_remote:
            to_fetch.setdefault(entry.origin, []).append(destination)
        else:
            _copy_local_source(entry, context.startdir, destination)

    if not to_fetch:
        return

    pending = {origin: destinations[0] for origin, destinations in to_fetch.items()}
    concurrency_limit = get_config().concurrency_limit
    http_downloads = {
        origin: path
        for origin, path in pending.items()
        if urlparse(origin).scheme in ("http", "https")
    }
    if concurrency_limit > 1 and len(http_downloads) > 1:
        log.info("Downloading %d sources, %d at a time", len(http_downloads), concurrency_limit)
        asyncio.run(async_download_files(http_downloads, concurrency_limit))
        for origin in http_downloads:
            del pending[origin]

    for origin, path in pending.items():
        log.info("Downloading %s", origin)
        download_binary_file(origin, path)

    for first, *copies in to_fetch.values():
        for copy in copies:
            log.info("Copying %s to %s", first.name, copy.name)
            shutil.copyfile(first, copy)


def _copy_local_source(entry: SourceEntry, startdir: Path, destination: Path) -> None:
    origin = startdir / entry.origin
    if not origin.is_file():
        raise SourceNotFound(origin)

    log.info("Copying %s", entry.origin)
    shutil.copyfile(origin, destination)


def verify_sources(
    recipe: Recipe,
    context: BuildContext,
    verify_signatures: bool = True,
    mode: Mode = Mode.PERMISSIVE,
) -> None:
    """Check signatures and checksums of the acquired sources.

    :raises SignatureVerificationFailed: if a detached signature does not verify
    :raises ChecksumVerificationFailed: if a file does not match its declared checksum
    :raises MissingChecksum: in strict mode, if the recipe declares no checksums
    """
    algorithm = recipe.active_checksum_algorithm
    if algorithm is None and recipe.source:
        if mode == Mode.STRICT:
            raise MissingChecksum(f"Recipe for {recipe.name} declares no checksums")
        log.warning("No checksums declared for %s, sources will not be verified", recipe.name)
    elif algorithm is not None:
        log.info("Verifying sources with %s", checksum_table_key(algorithm))

    signatures_enabled = verify_signatures and get_config().verify_signatures
    for entry in recipe.source_entries:
        path = context.srcdir.join_within_root(entry.filename).path

        if signatures_enabled and (signed_name := signed_file_for(entry.filename)):
            signed_path = context.srcdir.join_within_root(signed_name).path
            verify_detached_signature(path, signed_path)

        expected = recipe.expected_checksum(entry)
        if expected is not None:
            must_match_checksum(path, expected)


def extract_sources(recipe: Recipe, context: BuildContext) -> None:
    """Extract every source archive not listed in noextract into the source directory."""
    for entry in recipe.source_entries:
        if entry.filename in recipe.noextract:
            log.debug("%s is in noextract, not extracting", entry.filename)
            continue
        extract_archive(context.srcdir.join_within_root(entry.filename).path, context.srcdir)
