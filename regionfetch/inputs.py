"""
Region table and download manifest readers.

Both inputs are headerless tables. The region table is a BED-like,
tab-delimited file (chromosome, start, end, optional extra columns); the
manifest is a comma-delimited list of (chromosome, expected digest, url).
"""

import csv
import logging
import warnings
from dataclasses import dataclass
from typing import Dict, List

import pandas as pd

from .error_handling import InputFormatError
from .intervals import MAX_POSITION, Region, sort_regions

logger = logging.getLogger("regionfetch")


@dataclass(frozen=True)
class ManifestEntry:
    """Download location and expected digest for one chromosome."""

    chromosome: str
    expected_digest: str
    url: str


def _read_table(file_path: str, sep: str, names: List[str]) -> pd.DataFrame:
    """Read a headerless table into string columns named by names.

    With index_col=False the python parser keeps the first len(names) fields
    of longer rows and pads shorter rows. Lines whose first field starts with
    '#' are dropped; a '#' later on a line is kept as data.
    """
    try:
        with warnings.catch_warnings():
            # extra trailing columns are expected; pandas warns when it drops them
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            df = pd.read_csv(
                file_path,
                sep=sep,
                header=None,
                names=names,
                index_col=False,
                dtype=str,
                engine="python",
                quoting=csv.QUOTE_NONE,
                skip_blank_lines=True,
                keep_default_na=False,
            )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=names, dtype=str)
    except FileNotFoundError:
        raise InputFormatError(file_path, "file not found")
    except (pd.errors.ParserError, ValueError, UnicodeDecodeError) as e:
        raise InputFormatError(file_path, str(e))
    df = df.fillna("")
    return df[~df[names[0]].str.startswith("#")]


def _validate_bounds(df: pd.DataFrame, file_path: str) -> None:
    for column in ("start", "end"):
        bad = ~df[column].str.fullmatch(r"\d+")
        if bad.any():
            row = df[bad].iloc[0]
            raise InputFormatError(
                file_path,
                f"{column} is not a non-negative integer for {row['chromosome']}: "
                f"{row[column]!r}",
            )

    starts = df["start"].map(int)
    ends = df["end"].map(int)
    too_large = (starts > MAX_POSITION) | (ends > MAX_POSITION)
    if too_large.any():
        row = df[too_large].iloc[0]
        raise InputFormatError(
            file_path,
            f"bound larger than {MAX_POSITION} for {row['chromosome']}: "
            f"{row['start']}-{row['end']}",
        )
    reversed_rows = starts > ends
    if reversed_rows.any():
        row = df[reversed_rows].iloc[0]
        raise InputFormatError(
            file_path, f"start after end for {row['chromosome']}: {row['start']}-{row['end']}"
        )


def read_regions(file_path: str) -> Dict[str, List[Region]]:
    """
    Read a BED file into per-chromosome region lists.

    Lines starting with '#', 'track' or 'browser' are skipped and columns
    after the third are ignored. Each list is sorted by start; overlapping
    regions are kept as they are.

    Parameters
    ----------
    file_path : str
        Path to the tab-delimited region table.

    Returns
    -------
    dict
        Chromosome name to sorted list of Region, in order of first appearance.

    Raises
    ------
    InputFormatError
        If the file is missing, truncated, or has invalid bounds.
    """
    df = _read_table(file_path, "\t", ["chromosome", "start", "end"])
    df = df[~df["chromosome"].str.match(r"(track|browser)(\s|$)")]

    if (df["start"] == "").any() or (df["end"] == "").any():
        raise InputFormatError(file_path, "every region needs chromosome, start and end columns")
    _validate_bounds(df, file_path)

    regions: Dict[str, List[Region]] = {}
    for chromosome, start, end in zip(df["chromosome"], df["start"], df["end"]):
        regions.setdefault(chromosome, []).append(Region(chromosome, int(start), int(end)))

    for chromosome in regions:
        regions[chromosome] = sort_regions(regions[chromosome])

    logger.info(
        f"Read {len(df)} regions on {len(regions)} chromosomes from {file_path}"
    )
    return regions


def read_manifest(file_path: str) -> Dict[str, ManifestEntry]:
    """
    Read the URL manifest.

    When a chromosome is listed more than once, the first entry wins and
    later ones are ignored.

    Parameters
    ----------
    file_path : str
        Path to the comma-delimited manifest.

    Returns
    -------
    dict
        Chromosome name to ManifestEntry.

    Raises
    ------
    InputFormatError
        If the file is missing or a row lacks a digest or URL.
    """
    df = _read_table(file_path, ",", ["chromosome", "expected_digest", "url"])

    incomplete = (df["expected_digest"] == "") | (df["url"] == "")
    if incomplete.any():
        row = df[incomplete].iloc[0]
        raise InputFormatError(
            file_path, f"entry for {row['chromosome']!r} needs a digest and a URL"
        )

    duplicated = df["chromosome"].duplicated(keep="first")
    for chromosome in df.loc[duplicated, "chromosome"].unique():
        logger.debug(f"Ignoring repeated manifest entries for {chromosome}")
    df = df[~duplicated]

    manifest = {
        chromosome: ManifestEntry(chromosome, digest, url)
        for chromosome, digest, url in zip(df["chromosome"], df["expected_digest"], df["url"])
    }
    logger.info(f"Read {len(manifest)} download entries from {file_path}")
    return manifest
