"""
Exception classes for regionfetch.

Every failure that ends a chromosome job is a PipelineError subclass. The
scheduler turns these into per-job outcomes; nothing here aborts sibling jobs.

- TransportError: the remote stream could not be opened or broke mid-read
- MalformedRecordError: a data record has no usable position column
- DestinationWriteError: the output file could not be written
- InputFormatError: the region table or manifest could not be parsed
"""

from typing import Dict, Optional


class PipelineError(Exception):
    """Base exception for all regionfetch errors."""

    def __init__(
        self, message: str, chromosome: Optional[str] = None, details: Optional[Dict] = None
    ):
        """Initialize pipeline error.

        Parameters
        ----------
        message : str
            Error message
        chromosome : str, optional
            Chromosome whose job raised the error
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.chromosome = chromosome
        self.details = details or {}


class TransportError(PipelineError):
    """Raised when the remote file cannot be opened or read to the end."""

    def __init__(self, url: str, reason: str, chromosome: Optional[str] = None):
        """Initialize transport error."""
        message = f"Transfer of {url} failed: {reason}"
        super().__init__(message, chromosome, {"url": url, "reason": reason})
        self.url = url
        self.reason = reason


class MalformedRecordError(PipelineError):
    """Raised when a VCF data line has no valid position in its second column."""

    def __init__(self, line_number: int, line: str, chromosome: Optional[str] = None):
        """Initialize malformed record error."""
        excerpt = line if len(line) <= 80 else line[:77] + "..."
        message = (
            f"Invalid VCF record at line {line_number}: second field is missing, "
            f"not a number, or larger than 4294967295: {excerpt!r}"
        )
        super().__init__(message, chromosome, {"line_number": line_number, "line": excerpt})
        self.line_number = line_number


class DestinationWriteError(PipelineError):
    """Raised when the filtered output cannot be written to disk."""

    def __init__(self, path: str, original_error: Exception, chromosome: Optional[str] = None):
        """Initialize destination write error."""
        message = f"Cannot write output {path}: {original_error}"
        super().__init__(
            message,
            chromosome,
            {"path": path, "error_type": type(original_error).__name__},
        )
        self.original_error = original_error


class InputFormatError(PipelineError):
    """Raised when the region table or the URL manifest is invalid."""

    def __init__(self, file_path: str, reason: str):
        """Initialize input format error."""
        message = f"Invalid input file {file_path}: {reason}"
        super().__init__(message, details={"file": file_path, "reason": reason})
        self.file_path = file_path
