"""
HTTP transport for remote VCF files.

open_remote_stream returns the undecoded response body as a file-like
RemoteStream, so any digest taken over it covers exactly the bytes that were
sent. Only connection establishment is bounded by a timeout; once the body is
streaming, reads block for as long as the server keeps the connection open.
"""

import logging
from typing import Optional

import requests
import urllib3

from .error_handling import TransportError

logger = logging.getLogger(__name__)


class RemoteStream:
    """Binary readable stream over a remote body.

    Parameters
    ----------
    reader : file-like
        Object with a read(size) method returning bytes.
    url : str
        Source URL, used in error messages.
    content_length : int, optional
        Announced body size in bytes, if the server sent one.
    """

    def __init__(self, reader, url: str, content_length: Optional[int] = None):
        self._reader = reader
        self.url = url
        self.content_length = content_length

    def read(self, size: int = -1) -> bytes:
        try:
            return self._reader.read(size)
        except urllib3.exceptions.HTTPError as e:
            raise TransportError(self.url, f"stream interrupted: {e}")

    def close(self) -> None:
        self._reader.close()

    def __enter__(self) -> "RemoteStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class _RawBody:
    def __init__(self, response: requests.Response):
        self._response = response

    def read(self, size: int = -1) -> bytes:
        amt = None if size is None or size < 0 else size
        return self._response.raw.read(amt, decode_content=False)

    def close(self) -> None:
        self._response.close()


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


def open_remote_stream(url: str, connect_timeout: Optional[float] = 30) -> RemoteStream:
    """
    Open a streaming GET request to url.

    Parameters
    ----------
    url : str
        Remote file location.
    connect_timeout : float, optional
        Seconds allowed for establishing the connection. None waits forever.

    Returns
    -------
    RemoteStream
        The raw (still gzip-compressed) response body.

    Raises
    ------
    TransportError
        If the connection fails or the server answers with an error status.
    """
    logger.debug(f"Opening {url}")
    try:
        response = requests.get(url, stream=True, timeout=(connect_timeout, None))
    except requests.RequestException as e:
        raise TransportError(url, str(e))

    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        response.close()
        raise TransportError(url, str(e))

    content_length = _parse_content_length(response.headers.get("Content-Length"))
    logger.debug(f"Connected to {url} (status {response.status_code}, length {content_length})")
    return RemoteStream(_RawBody(response), url, content_length)
