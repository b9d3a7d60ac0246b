"""
JobScheduler - fans out one pipeline per chromosome and joins them all.

Every chromosome that has both regions and a manifest entry becomes a Job.
Jobs run on a thread pool and are fully independent: a failure or digest
mismatch in one job is recorded as that job's outcome and never cancels or
affects the others. run() returns only after every job has finished.
"""

import enum
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .error_handling import PipelineError
from .inputs import ManifestEntry
from .intervals import Region, find_overlaps
from .pipeline import Job, Opener, PipelineResult, run_chromosome_job
from .progress import ProgressBoard
from .transport import open_remote_stream

logger = logging.getLogger(__name__)


class JobStatus(enum.Enum):
    VERIFIED = "verified"
    DIGEST_MISMATCH = "digest_mismatch"
    FAILED = "failed"


@dataclass
class JobOutcome:
    """Terminal disposition of one chromosome job."""

    chromosome: str
    status: JobStatus
    reason: str = ""
    result: Optional[PipelineResult] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.VERIFIED


def build_jobs(
    regions_by_chromosome: Mapping[str, Sequence[Region]],
    manifest: Mapping[str, ManifestEntry],
    output_dir: str = ".",
    suffix: str = ".vcf.gz",
) -> List[Job]:
    """
    Create one Job per chromosome with regions and a manifest entry.

    Chromosomes without a manifest entry are skipped silently, so a manifest
    can restrict a run to a subset of the region table.

    Parameters
    ----------
    regions_by_chromosome : mapping
        Chromosome to regions sorted by start.
    manifest : mapping
        Chromosome to ManifestEntry.
    output_dir : str
        Directory for the filtered files.
    suffix : str
        Appended to the chromosome name to form the file name.

    Returns
    -------
    list of Job
        In the order chromosomes appear in regions_by_chromosome.
    """
    jobs = []
    for chromosome, regions in regions_by_chromosome.items():
        if not regions:
            continue
        entry = manifest.get(chromosome)
        if entry is None:
            logger.debug(f"No download entry for {chromosome}; skipping")
            continue

        overlaps = find_overlaps(list(regions))
        if overlaps:
            first, second = overlaps[0]
            logger.warning(
                f"{chromosome}: {len(overlaps)} overlapping region pair(s), e.g. "
                f"{first.start}-{first.end} and {second.start}-{second.end}; "
                "regions are used as given"
            )

        jobs.append(
            Job(
                chromosome=chromosome,
                url=entry.url,
                expected_digest=entry.expected_digest,
                regions=tuple(regions),
                output_path=Path(output_dir) / f"{chromosome}{suffix}",
            )
        )
    return jobs


class JobScheduler:
    """Runs chromosome jobs concurrently and collects one outcome per job.

    Parameters
    ----------
    config : dict, optional
        Passed to each pipeline; 'max_workers' caps the pool size (default:
        one thread per job).
    progress : ProgressBoard, optional
        Shared progress surface for all jobs.
    opener : callable
        Remote stream opener handed to every pipeline.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        progress: Optional[ProgressBoard] = None,
        opener: Opener = open_remote_stream,
    ):
        self.config = config or {}
        self.progress = progress
        self.opener = opener

    def _execute(self, job: Job) -> JobOutcome:
        start = time.time()
        try:
            result = run_chromosome_job(job, self.config, self.progress, self.opener)
        except PipelineError as e:
            return JobOutcome(
                job.chromosome, JobStatus.FAILED, str(e), duration=time.time() - start
            )

        status = JobStatus.VERIFIED if result.digest_matched else JobStatus.DIGEST_MISMATCH
        reason = "" if result.digest_matched else "checksum mismatch, output may be corrupted"
        return JobOutcome(job.chromosome, status, reason, result, time.time() - start)

    def run(self, jobs: List[Job]) -> List[JobOutcome]:
        """Execute all jobs and wait for every one of them.

        Parameters
        ----------
        jobs : list of Job
            Jobs to run; chromosome names must be unique.

        Returns
        -------
        list of JobOutcome
            One per job, in the order of jobs.
        """
        if not jobs:
            logger.info("No chromosome has both regions and a download entry; nothing to do")
            return []

        max_workers = self.config.get("max_workers") or len(jobs)
        effective_workers = min(max_workers, len(jobs))
        logger.info(f"Starting {len(jobs)} chromosome jobs on {effective_workers} workers")

        outcomes: Dict[str, JobOutcome] = {}
        with ThreadPoolExecutor(
            max_workers=effective_workers, thread_name_prefix="regionfetch"
        ) as executor:
            future_to_job: Dict[Future, Job] = {
                executor.submit(self._execute, job): job for job in jobs
            }

            for future in as_completed(future_to_job):
                job = future_to_job[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(f"[{job.chromosome}] Internal error", exc_info=True)
                    outcome = JobOutcome(
                        job.chromosome,
                        JobStatus.FAILED,
                        f"internal error: {type(e).__name__}: {e}",
                    )
                outcomes[job.chromosome] = outcome
                _report(outcome, len(outcomes), len(jobs))

        return [outcomes[job.chromosome] for job in jobs]


def _report(outcome: JobOutcome, completed: int, total: int) -> None:
    prefix = f"[{outcome.chromosome}] ({completed}/{total})"
    if outcome.status is JobStatus.VERIFIED:
        logger.info(f"{prefix} Successfully downloaded in {outcome.duration:.1f}s")
    elif outcome.status is JobStatus.DIGEST_MISMATCH:
        logger.warning(f"{prefix} Error: checksums do not match; {outcome.result.output_path} kept")
    else:
        logger.error(f"{prefix} Failed: {outcome.reason}")


def summarize(outcomes: List[JobOutcome]) -> Dict[str, int]:
    """Count outcomes per status value."""
    counts = {status.value: 0 for status in JobStatus}
    for outcome in outcomes:
        counts[outcome.status.value] += 1
    return counts


def exit_code(outcomes: List[JobOutcome]) -> int:
    """0 when every job verified (or there were none), 1 otherwise."""
    return 0 if all(outcome.ok for outcome in outcomes) else 1
