# WORKFLOW: Byte-stream sources and decompression for the regions dump.
# Used by: Regions pipeline (etl/load_regions.py), CLI (scripts/load_regions.py)
# Functions:
# 1. open_dump_file() - Open a local regions.xml.gz file
# 2. fetch_dump() - Stream regions.xml.gz over HTTP with an identifying User-Agent
# 3. open_decompressed() - Wrap a gzip byte stream, exposing XML bytes
#
# Every function is a context manager that releases its stream on every exit path.
# Failures to open or fetch surface as FatalStreamError; there are no retries.

"""
Byte-stream sources for the gzip-compressed regions dump.
"""

import gzip
import io
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

import requests

from core.config import settings
from core.errors import FatalStreamError

logger = logging.getLogger(__name__)


@contextmanager
def open_dump_file(path: Union[str, Path]) -> Iterator[BinaryIO]:
    """
    Open a local gzip-compressed regions dump.

    Args:
        path: Path to regions.xml.gz

    Yields:
        Binary file object positioned at the start of the file
    """
    try:
        f = open(path, "rb")
    except OSError as e:
        logger.error(f"Failed to open regions dump {path}: {e}")
        raise FatalStreamError(f"Cannot open regions dump {path}: {e}") from e
    logger.info(f"Reading regions dump from {path}")
    try:
        yield f
    finally:
        f.close()


class ResponseStream(io.RawIOBase):
    """Readable raw stream over ``requests`` response chunks."""

    def __init__(self, chunks: Iterator[bytes]):
        self._chunks = chunks
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        try:
            while not self._pending:
                self._pending = next(self._chunks)
        except StopIteration:
            return 0
        except requests.RequestException as e:
            raise OSError(f"HTTP stream interrupted: {e}") from e
        n = min(len(b), len(self._pending))
        b[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


@contextmanager
def fetch_dump(url: Optional[str] = None, user_agent: Optional[str] = None,
               timeout: Optional[float] = None, chunk_size: int = 64 * 1024) -> Iterator[BinaryIO]:
    """
    Stream the regions dump over HTTP.

    Args:
        url: Dump URL (defaults to settings.regions_dump_url)
        user_agent: Identifying User-Agent header (defaults to settings.user_agent)
        timeout: Connect/read timeout in seconds
        chunk_size: Size of the chunks pulled from the response

    Yields:
        Buffered binary stream of the still-compressed dump
    """
    url = url or settings.regions_dump_url
    headers = {"User-Agent": user_agent or settings.user_agent}
    timeout = settings.request_timeout if timeout is None else timeout

    response = None
    try:
        response = requests.get(url, headers=headers, stream=True, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        if response is not None:
            response.close()
        logger.error(f"Failed to fetch regions dump from {url}: {e}")
        raise FatalStreamError(f"Cannot fetch regions dump from {url}: {e}") from e

    logger.info(f"Streaming regions dump from {url} (status {response.status_code})")
    try:
        yield io.BufferedReader(ResponseStream(response.iter_content(chunk_size=chunk_size)))
    finally:
        response.close()


@contextmanager
def open_decompressed(stream: BinaryIO) -> Iterator[BinaryIO]:
    """
    Expose the decompressed XML bytes of a gzip byte stream.
    The wrapped stream itself is left open for its owner to close.
    """
    gz = gzip.GzipFile(fileobj=stream, mode="rb")
    try:
        yield gz
    finally:
        gz.close()
