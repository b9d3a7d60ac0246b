"""
Per-chromosome download, filter and verify pipeline.

One job streams a remote block-gzipped VCF through:

    remote body -> TeeReader (digest + progress) -> gzip decode -> line filter
    -> BGZF encode -> <output>.part -> rename to <output>

Header lines are copied unchanged; data records are kept only when their
position falls inside one of the job's regions. The whole body is always read,
because the digest has to cover every transmitted byte. A digest mismatch is
reported in the result, not raised, and the written file is kept.
"""

import gzip
import logging
import os
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from Bio import bgzf

from .checksum import ChecksumingSink, TeeReader
from .error_handling import (
    DestinationWriteError,
    MalformedRecordError,
    PipelineError,
    TransportError,
)
from .intervals import MAX_POSITION, IntervalScanner, Membership, Region
from .progress import ProgressBoard
from .transport import RemoteStream, open_remote_stream

logger = logging.getLogger(__name__)

HEADER_MARKER = b"#"

Opener = Callable[[str, Optional[float]], RemoteStream]


@dataclass(frozen=True)
class Job:
    """Everything one chromosome job needs; regions must be sorted by start."""

    chromosome: str
    url: str
    expected_digest: str
    regions: Tuple[Region, ...]
    output_path: Path


@dataclass
class PipelineResult:
    """Outcome of a chromosome job that ran to the end of its input."""

    chromosome: str
    digest_matched: bool
    computed_digest: str
    expected_digest: str
    output_path: Path
    bytes_downloaded: int
    records_written: int


def parse_position(line: bytes, line_number: int, chromosome: Optional[str] = None) -> int:
    """
    Extract the POS column (second tab-separated field) of a VCF data line.

    Raises
    ------
    MalformedRecordError
        If the field is missing, not a decimal number (optionally prefixed
        with '+'), or above 2**32-1.
    """
    fields = line.split(b"\t", 2)
    field = fields[1] if len(fields) > 1 else b""
    digits = field[1:] if field.startswith(b"+") else field
    if not digits.isdigit():
        raise MalformedRecordError(line_number, line.decode("utf-8", "replace"), chromosome)
    position = int(digits)
    if position > MAX_POSITION:
        raise MalformedRecordError(line_number, line.decode("utf-8", "replace"), chromosome)
    return position


def _strip_newline(line: bytes) -> bytes:
    if line.endswith(b"\n"):
        line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
    return line


def _iter_lines(stream: RemoteStream, sink: ChecksumingSink, job: Job) -> Iterator[bytes]:
    """Yield decompressed lines, turning read and decode failures into TransportError."""
    decoder = gzip.GzipFile(fileobj=TeeReader(stream, sink), mode="rb")
    try:
        for line in decoder:
            yield _strip_newline(line)
    except (OSError, EOFError, zlib.error) as e:
        raise TransportError(job.url, f"stream ended abnormally: {e}", job.chromosome)
    finally:
        decoder.close()


def filter_records(
    lines: Iterator[bytes], scanner: IntervalScanner, write, chromosome: Optional[str] = None
) -> int:
    """
    Copy header lines and in-region records to write(line).

    Parameters
    ----------
    lines : iterator of bytes
        Decompressed VCF lines without their line terminator.
    scanner : IntervalScanner
        Fresh scanner over this chromosome's regions.
    write : callable
        Receives each kept line.
    chromosome : str, optional
        Used in error messages.

    Returns
    -------
    int
        Number of data records kept (headers not counted).
    """
    kept = 0
    passed_last_region = False
    for line_number, line in enumerate(lines, start=1):
        if line.startswith(HEADER_MARKER):
            write(line)
            continue
        position = parse_position(line, line_number, chromosome)
        if scanner.classify(position) is Membership.INSIDE:
            write(line)
            kept += 1
        elif not passed_last_region and scanner.exhausted:
            passed_last_region = True
            logger.debug(
                f"[{chromosome}] Last region passed at line {line_number}; "
                "reading the rest for the checksum only"
            )
    return kept


class _RecordWriter:
    """BGZF writer for the part file; every OSError becomes DestinationWriteError."""

    def __init__(self, path: Path, chromosome: str):
        self._path = path
        self._chromosome = chromosome
        try:
            self._writer = bgzf.BgzfWriter(str(path), "wb")
        except OSError as e:
            raise DestinationWriteError(str(path), e, chromosome)

    def write(self, line: bytes) -> None:
        try:
            self._writer.write(line + b"\n")
        except OSError as e:
            raise DestinationWriteError(str(self._path), e, self._chromosome)

    def close(self) -> None:
        try:
            self._writer.close()
        except OSError as e:
            raise DestinationWriteError(str(self._path), e, self._chromosome)


def _attach_chromosome(error: PipelineError, chromosome: str) -> None:
    if error.chromosome is None:
        error.chromosome = chromosome


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove incomplete output {path}: {e}")


def run_chromosome_job(
    job: Job,
    config: Optional[Dict[str, Any]] = None,
    progress: Optional[ProgressBoard] = None,
    opener: Opener = open_remote_stream,
) -> PipelineResult:
    """
    Download, filter, recompress and verify one chromosome.

    Parameters
    ----------
    job : Job
        Source URL, expected digest, sorted regions and destination.
    config : dict, optional
        Uses 'connect_timeout' and 'digest_algorithm'.
    progress : ProgressBoard, optional
        Receives a byte count for every chunk read from the network.
    opener : callable
        Opens the remote body; defaults to an HTTP GET via requests.

    Returns
    -------
    PipelineResult
        Written output location and whether the digest matched.

    Raises
    ------
    TransportError
        If the connection fails or the body cannot be read to the end.
    MalformedRecordError
        If a data record has no valid position.
    DestinationWriteError
        If the output cannot be written.
    """
    config = config or {}
    output_path = Path(job.output_path)
    part_path = output_path.with_name(output_path.name + ".part")

    logger.info(f"[{job.chromosome}] Downloading {job.url} ({len(job.regions)} regions)")
    try:
        stream = opener(job.url, config.get("connect_timeout", 30))
    except PipelineError as e:
        _attach_chromosome(e, job.chromosome)
        raise

    bar = progress.track(job.chromosome, stream.content_length) if progress else None
    sink = ChecksumingSink(
        config.get("digest_algorithm", "md5"), bar.advance if bar else None
    )
    scanner = IntervalScanner(region.as_interval() for region in job.regions)

    writer = None
    try:
        writer = _RecordWriter(part_path, job.chromosome)
        records_written = filter_records(
            _iter_lines(stream, sink, job), scanner, writer.write, job.chromosome
        )
        writer.close()
        writer = None
        try:
            os.replace(part_path, output_path)
        except OSError as e:
            raise DestinationWriteError(str(output_path), e, job.chromosome)
    except Exception as e:
        if isinstance(e, PipelineError):
            _attach_chromosome(e, job.chromosome)
        if writer is not None:
            try:
                writer.close()
            except DestinationWriteError as close_error:
                logger.debug(
                    f"[{job.chromosome}] Ignoring close failure during cleanup: {close_error}"
                )
        _remove_quietly(part_path)
        if bar:
            bar.finish("failed")
        raise
    finally:
        stream.close()

    bytes_downloaded = sink.bytes_seen
    computed = sink.finalize()
    matched = computed == job.expected_digest
    if bar:
        bar.finish("verified" if matched else "checksum mismatch")

    if matched:
        logger.info(
            f"[{job.chromosome}] Wrote {records_written} records to {output_path}; "
            f"{sink.algorithm} verified"
        )
    else:
        logger.warning(
            f"[{job.chromosome}] {sink.algorithm} mismatch for {job.url}: "
            f"expected {job.expected_digest}, got {computed}. "
            f"{output_path} may be corrupted."
        )

    return PipelineResult(
        chromosome=job.chromosome,
        digest_matched=matched,
        computed_digest=computed,
        expected_digest=job.expected_digest,
        output_path=output_path,
        bytes_downloaded=bytes_downloaded,
        records_written=records_written,
    )
