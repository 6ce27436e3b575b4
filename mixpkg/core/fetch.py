import asyncio
import logging
import os
import shutil
import ssl
import urllib.request
from contextlib import contextmanager
from os import PathLike
from pathlib import Path
from typing import Iterator, Optional, Union
from urllib.error import URLError
from urllib.parse import unquote, urlparse

import aiohttp
import aiohttp_retry
import requests

from mixpkg.core.config import get_config
from mixpkg.core.errors import FetchError, SourceNotFound
from mixpkg.core.http_requests import (
    DEFAULT_RETRY_OPTIONS,
    SAFE_REQUEST_METHODS,
    get_requests_session,
)

pkg_requests_session = get_requests_session(retry_options={"allowed_methods": SAFE_REQUEST_METHODS})

log = logging.getLogger(__name__)


@contextmanager
def _partial_file(download_path: Union[str, PathLike[str]]) -> Iterator[Path]:
    """Yield a temporary sibling path, move it over download_path only if the block succeeds."""
    final_path = Path(download_path)
    part_path = final_path.with_name(f"{final_path.name}.part")
    try:
        yield part_path
    except BaseException:
        part_path.unlink(missing_ok=True)
        raise
    os.replace(part_path, final_path)


def download_binary_file(
    url: str,
    download_path: Union[str, PathLike[str]],
    chunk_size: int = 8192,
) -> None:
    """
    Download a binary file (such as a TAR archive) from a URL.

    Supports http(s), ftp and file URLs. The file only appears at download_path
    once it has been downloaded completely.

    :param str url: URL for file download
    :param (str | PathLike) download_path: Path to download file to
    :param int chunk_size: Chunk size param for Response.iter_content()
    :raise FetchError: If download failed
    """
    scheme = urlparse(url).scheme
    with _partial_file(download_path) as part_path:
        if scheme in ("http", "https"):
            _download_http(url, part_path, chunk_size)
        elif scheme == "file":
            _copy_file_url(url, part_path)
        else:
            _download_urllib(url, part_path, chunk_size)


def _download_http(url: str, download_path: Path, chunk_size: int) -> None:
    timeout = get_config().requests_timeout
    try:
        resp = pkg_requests_session.get(url, stream=True, timeout=timeout)
        resp.raise_for_status()
        with open(download_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                f.write(chunk)
    except requests.RequestException as e:
        raise FetchError(f"Could not download {url}: {e}")


def _download_urllib(url: str, download_path: Path, chunk_size: int) -> None:
    # requests doesn't speak ftp
    timeout = get_config().requests_timeout
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp, open(download_path, "wb") as f:
            shutil.copyfileobj(resp, f, chunk_size)
    except (URLError, OSError) as e:
        raise FetchError(f"Could not download {url}: {e}")


def _copy_file_url(url: str, download_path: Path) -> None:
    source = Path(unquote(urlparse(url).path))
    if not source.is_file():
        raise SourceNotFound(source)
    shutil.copyfile(source, download_path)


async def _async_download_binary_file(
    session: aiohttp_retry.RetryClient,
    url: str,
    download_path: Union[str, PathLike[str]],
    ssl_context: Optional[ssl.SSLContext] = None,
    chunk_size: int = 8192,
) -> None:
    """
    Download a binary file (such as a TAR archive) from a URL using asyncio.

    :param aiohttp_retry.RetryClient session: Aiohttp interface for making HTTP requests.
    :param str url: URL for file download
    :param str download_path: File path location
    :param int chunk_size: Chunk size param for Response.content.read()
    :raise FetchError: If download failed
    """
    try:
        timeout = aiohttp.ClientTimeout(total=get_config().requests_timeout)

        log.debug(
            f"aiohttp.ClientSession.get(url: {url}, timeout: {timeout}, raise_for_status: True)"
        )
        with _partial_file(download_path) as part_path:
            async with session.get(
                url, timeout=timeout, raise_for_status=True, ssl=ssl_context
            ) as resp:
                with open(part_path, "wb") as f:
                    while True:
                        chunk = await resp.content.read(chunk_size)
                        if not chunk:
                            break
                        f.write(chunk)

    except asyncio.CancelledError:
        raise
    except Exception as exception:
        log.error(f"Unsuccessful download: {url}")
        # "from None" since we have the exception context in the logs
        raise FetchError(
            f"Could not download {url}: exception_name: {exception.__class__.__name__}, "
            f"details: {exception}"
        ) from None

    log.debug(f"Download completed - {url}")


async def async_download_files(
    files_to_download: dict[str, Union[str, PathLike[str]]],
    concurrency_limit: int,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> None:
    """Asynchronous function to download files.

    The first failed download cancels the ones still running and is re-raised.

    :param files_to_download: Dict of files to download with file paths
    :param concurrency_limit: Max number of concurrent tasks (downloads).
    """
    trace_config = aiohttp.TraceConfig()
    num_attempts: int = int(DEFAULT_RETRY_OPTIONS["total"])
    retry_options = aiohttp_retry.JitterRetry(attempts=num_attempts, retry_all_server_errors=True)
    retry_client = aiohttp_retry.RetryClient(
        retry_options=retry_options,
        trace_configs=[trace_config],
        # respect proxy settings and .netrc
        trust_env=True,
    )

    async with retry_client as session:
        tasks: set[asyncio.Task] = set()

        try:
            for url, download_path in files_to_download.items():
                if len(tasks) >= concurrency_limit:
                    # Wait for some download to finish before adding a new one
                    done, tasks = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                    await asyncio.gather(*done)

                task = _async_download_binary_file(
                    session, url, download_path, ssl_context=ssl_context
                )
                tasks.add(asyncio.create_task(task))

            await asyncio.gather(*tasks)
        except FetchError:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
