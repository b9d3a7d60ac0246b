# File: regionfetch/__init__.py
# Location: regionfetch/regionfetch/__init__.py

"""
regionfetch Package.

This package downloads per-chromosome block-gzipped VCF files, keeps only the
records inside a set of BED regions, verifies the transfer against a manifest
digest and writes the recompressed result to disk.
"""

from .version import __version__
