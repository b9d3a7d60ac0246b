"""Tests for job construction and concurrent execution."""

import logging
import threading
from pathlib import Path

from mocks.remote import VCF_HEADER, FakeOpener, md5_hex, vcf_line

from regionfetch.inputs import ManifestEntry
from regionfetch.intervals import Region
from regionfetch.scheduler import (
    JobOutcome,
    JobScheduler,
    JobStatus,
    build_jobs,
    exit_code,
    summarize,
)


def regions_for(*chromosomes):
    return {c: [Region(c, 100, 200), Region(c, 400, 1000)] for c in chromosomes}


def manifest_for(*chromosomes, digest="d"):
    return {c: ManifestEntry(c, digest, f"https://example.org/{c}.vcf.bgz") for c in chromosomes}


class TestBuildJobs:
    def test_one_job_per_chromosome_with_manifest(self, tmp_path):
        jobs = build_jobs(regions_for("chr1", "chr2"), manifest_for("chr1", "chr2"), str(tmp_path))

        assert [job.chromosome for job in jobs] == ["chr1", "chr2"]
        assert jobs[0].output_path == Path(tmp_path) / "chr1.vcf.gz"
        assert jobs[0].url == "https://example.org/chr1.vcf.bgz"
        assert jobs[0].regions == (Region("chr1", 100, 200), Region("chr1", 400, 1000))

    def test_chromosome_without_manifest_is_skipped(self, tmp_path):
        jobs = build_jobs(regions_for("chr1", "chr2", "chrX"), manifest_for("chr2"), str(tmp_path))
        assert [job.chromosome for job in jobs] == ["chr2"]

    def test_manifest_without_regions_is_ignored(self, tmp_path):
        jobs = build_jobs(regions_for("chr1"), manifest_for("chr1", "chr9"), str(tmp_path))
        assert [job.chromosome for job in jobs] == ["chr1"]

    def test_empty_region_list_is_skipped(self, tmp_path):
        jobs = build_jobs({"chr1": []}, manifest_for("chr1"), str(tmp_path))
        assert jobs == []

    def test_custom_suffix(self, tmp_path):
        jobs = build_jobs(regions_for("chr3"), manifest_for("chr3"), str(tmp_path), ".bgz")
        assert jobs[0].output_path.name == "chr3.bgz"

    def test_overlapping_regions_are_reported_not_merged(self, tmp_path, caplog):
        regions = {"chr1": [Region("chr1", 0, 100), Region("chr1", 50, 150)]}
        with caplog.at_level(logging.WARNING):
            jobs = build_jobs(regions, manifest_for("chr1"), str(tmp_path))

        assert len(jobs[0].regions) == 2
        assert "overlapping" in caplog.text


class TestJobScheduler:
    """Concurrent runs with independent outcomes."""

    def _setup(self, tmp_path, make_bgzf, chromosomes, bad_digest=()):
        payloads, digests = {}, {}
        for c in chromosomes:
            data = make_bgzf(VCF_HEADER + [vcf_line(c, pos) for pos in (50, 150, 500, 1500)])
            url = f"https://example.org/{c}.vcf.bgz"
            payloads[url] = data
            digests[c] = "f" * 32 if c in bad_digest else md5_hex(data)
        manifest = {
            c: ManifestEntry(c, digests[c], f"https://example.org/{c}.vcf.bgz")
            for c in chromosomes
        }
        out = tmp_path / "out"
        out.mkdir()
        return payloads, build_jobs(regions_for(*chromosomes), manifest, str(out))

    def test_all_jobs_verified(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2", "chr3"])

        outcomes = JobScheduler(opener=FakeOpener(payloads)).run(jobs)

        assert [o.chromosome for o in outcomes] == ["chr1", "chr2", "chr3"]
        assert all(o.status is JobStatus.VERIFIED for o in outcomes)
        assert all(o.result.records_written == 2 for o in outcomes)
        assert exit_code(outcomes) == 0

    def test_transport_failure_does_not_affect_sibling(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2"])
        opener = FakeOpener(payloads, failures={"https://example.org/chr1.vcf.bgz": "timed out"})

        outcomes = JobScheduler(opener=opener).run(jobs)
        by_chrom = {o.chromosome: o for o in outcomes}

        assert by_chrom["chr1"].status is JobStatus.FAILED
        assert "timed out" in by_chrom["chr1"].reason
        assert by_chrom["chr1"].result is None
        assert by_chrom["chr2"].status is JobStatus.VERIFIED
        assert by_chrom["chr2"].result.output_path.exists()
        assert not (tmp_path / "out" / "chr1.vcf.gz").exists()
        assert exit_code(outcomes) == 1

    def test_digest_mismatch_is_its_own_outcome(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2"], bad_digest=("chr2",))

        outcomes = JobScheduler(opener=FakeOpener(payloads)).run(jobs)

        assert outcomes[0].status is JobStatus.VERIFIED
        assert outcomes[1].status is JobStatus.DIGEST_MISMATCH
        assert outcomes[1].result.output_path.exists()
        assert exit_code(outcomes) == 1

    def test_unexpected_error_becomes_failed_outcome(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2"])
        real_opener = FakeOpener(payloads)

        def opener(url, timeout):
            if "chr1" in url:
                raise RuntimeError("boom")
            return real_opener(url, timeout)

        outcomes = JobScheduler(opener=opener).run(jobs)

        assert outcomes[0].status is JobStatus.FAILED
        assert outcomes[0].reason == "internal error: RuntimeError: boom"
        assert outcomes[1].status is JobStatus.VERIFIED

    def test_jobs_run_concurrently(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2", "chr3"])
        real_opener = FakeOpener(payloads)
        barrier = threading.Barrier(len(jobs), timeout=10)

        def opener(url, timeout):
            barrier.wait()
            return real_opener(url, timeout)

        outcomes = JobScheduler(opener=opener).run(jobs)

        assert all(o.ok for o in outcomes)

    def test_max_workers_limits_pool(self, tmp_path, make_bgzf):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2", "chr3"])
        real_opener = FakeOpener(payloads)
        active, peak = [0], [0]
        lock = threading.Lock()

        def opener(url, timeout):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            try:
                return real_opener(url, timeout)
            finally:
                with lock:
                    active[0] -= 1

        outcomes = JobScheduler({"max_workers": 1}, opener=opener).run(jobs)

        assert peak[0] == 1
        assert len(outcomes) == 3

    def test_each_outcome_logged_once(self, tmp_path, make_bgzf, caplog):
        payloads, jobs = self._setup(tmp_path, make_bgzf, ["chr1", "chr2"])
        opener = FakeOpener(payloads, failures={"https://example.org/chr2.vcf.bgz": "refused"})

        with caplog.at_level(logging.INFO, logger="regionfetch"):
            JobScheduler(opener=opener).run(jobs)

        assert caplog.text.count("[chr1] (") == 1
        assert caplog.text.count("[chr2] (") == 1

    def test_no_jobs(self):
        assert JobScheduler().run([]) == []


class TestSummaries:
    def test_summarize_counts_each_status(self):
        outcomes = [
            JobOutcome("chr1", JobStatus.VERIFIED),
            JobOutcome("chr2", JobStatus.FAILED, "x"),
            JobOutcome("chr3", JobStatus.FAILED, "y"),
        ]
        assert summarize(outcomes) == {"verified": 1, "digest_mismatch": 0, "failed": 2}

    def test_exit_code_empty_run(self):
        assert exit_code([]) == 0
