"""
Digest accumulation for downloaded bytes.

ChecksumingSink is a passive observer: it digests whatever is written to it
and reports byte counts, but never forwards data. TeeReader attaches it to a
readable stream so the same bytes reach both the sink and the decompressor.
"""

import hashlib
from typing import Callable, Optional

ProgressObserver = Callable[[int], None]


class ChecksumingSink:
    """Write-only sink that keeps a rolling digest of every byte written.

    Parameters
    ----------
    algorithm : str
        Any algorithm name accepted by hashlib.new (default "md5").
    observer : callable, optional
        Called with the size of each write, e.g. to advance a progress bar.
    """

    def __init__(self, algorithm: str = "md5", observer: Optional[ProgressObserver] = None):
        self._hash = hashlib.new(algorithm)
        self._observer = observer
        self._bytes_seen = 0
        self._finalized = False

    @property
    def algorithm(self) -> str:
        return self._hash.name

    @property
    def bytes_seen(self) -> int:
        return self._bytes_seen

    def write(self, data: bytes) -> int:
        if self._finalized:
            raise RuntimeError("ChecksumingSink has already been finalized")
        self._hash.update(data)
        size = len(data)
        self._bytes_seen += size
        if self._observer is not None and size:
            self._observer(size)
        return size

    def finalize(self) -> str:
        """Return the lowercase hex digest. The sink cannot be used afterwards."""
        if self._finalized:
            raise RuntimeError("ChecksumingSink has already been finalized")
        self._finalized = True
        return self._hash.hexdigest()


class TeeReader:
    """Readable wrapper that copies every chunk it returns into a sink."""

    def __init__(self, source, sink: ChecksumingSink):
        self._source = source
        self._sink = sink

    @property
    def mode(self) -> str:
        return "rb"

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        data = self._source.read(size)
        if data:
            self._sink.write(data)
        return data

    def close(self) -> None:
        self._source.close()
