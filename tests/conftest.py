"""Shared pytest fixtures for regionfetch tests."""

import pytest
from mocks.remote import VCF_HEADER, vcf_line, write_bgzf


@pytest.fixture
def make_bgzf(tmp_path):
    """Return a function turning text lines into BGZF-compressed bytes."""
    counter = {"n": 0}

    def _make(lines):
        counter["n"] += 1
        return write_bgzf(tmp_path / f"remote_{counter['n']}.vcf.gz", lines)

    return _make


@pytest.fixture
def scenario_lines():
    """One header line plus records at 50, 150, 500 and 1500 on chr1."""
    return VCF_HEADER[-1:] + [vcf_line("chr1", pos) for pos in (50, 150, 500, 1500)]
