"""Command-line interface for regionfetch."""

import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from tqdm.contrib.logging import logging_redirect_tqdm

from .config import load_config
from .error_handling import InputFormatError
from .inputs import read_manifest, read_regions
from .progress import ProgressBoard
from .report import generate_html_report
from .scheduler import JobScheduler, build_jobs, exit_code, summarize
from .version import __version__

logger = logging.getLogger("regionfetch")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for the regionfetch CLI."""
    parser = argparse.ArgumentParser(
        prog="regionfetch",
        description="regionfetch: Download BED-restricted, checksum-verified VCF files.",
    )

    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--version",
        action="version",
        version=f"regionfetch {__version__}",
        help="Show the current version and exit",
    )
    general_group.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to a JSON configuration file overriding the packaged defaults",
        default=None,
    )

    io_group = parser.add_argument_group("Input/Output")
    io_group.add_argument(
        "-b", "--bed", required=True, help="BED file with the regions to keep"
    )
    io_group.add_argument(
        "-u",
        "--url-list",
        required=True,
        help="CSV file with one 'chromosome,checksum,url' line per chromosome",
    )
    io_group.add_argument(
        "--output-dir", help="Directory for the filtered <chromosome>.vcf.gz files"
    )
    io_group.add_argument("--report", help="Write an HTML summary of all jobs to this path")

    run_group = parser.add_argument_group("Execution")
    run_group.add_argument(
        "--threads",
        type=int,
        help="Maximum number of chromosomes downloaded at once (default: all)",
    )
    run_group.add_argument(
        "--connect-timeout",
        type=float,
        help="Seconds allowed for establishing each connection",
    )
    run_group.add_argument(
        "--no-progress", action="store_true", help="Disable progress bars"
    )
    return parser


def parse_args(args_list=None):
    """Parse command line arguments.

    Parameters
    ----------
    args_list : list, optional
        List of arguments to parse. If None, uses sys.argv

    Returns
    -------
    argparse.Namespace
        Parsed arguments
    """
    parser = create_parser()
    return parser.parse_args(args_list)


def _configure_logging(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    logger.setLevel(LOG_LEVELS[args.log_level])

    if args.log_file:
        log_file_path = Path(args.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(args.log_file)
        fh.setLevel(LOG_LEVELS[args.log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {args.log_file}")


def _apply_cli_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.output_dir is not None:
        cfg["output_dir"] = args.output_dir
    if args.threads is not None:
        cfg["max_workers"] = args.threads
    if args.connect_timeout is not None:
        cfg["connect_timeout"] = args.connect_timeout
    if args.no_progress:
        cfg["show_progress"] = False
    return cfg


def main(args_list=None) -> int:
    """Run main entry point for the regionfetch CLI.

    Steps:
        1. Parse arguments, configure logging and load config.
        2. Read the region table and the URL manifest.
        3. Build one job per chromosome and run them concurrently.
        4. Report each chromosome's outcome and optionally write an HTML summary.

    Returns
    -------
    int
        0 if every chromosome downloaded with a matching checksum, 1 otherwise.
    """
    args = parse_args(args_list)
    _configure_logging(args)

    start_time = datetime.datetime.now()
    logger.info(f"Run started at {start_time.isoformat()}")
    logger.debug(f"CLI arguments: {args}")

    try:
        cfg = _apply_cli_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1
    logger.debug(f"Configuration loaded: {cfg}")

    if cfg.get("max_workers") is not None and cfg["max_workers"] < 1:
        logger.error("--threads must be at least 1")
        return 1

    try:
        regions = read_regions(args.bed)
        manifest = read_manifest(args.url_list)
    except InputFormatError as e:
        logger.error(str(e))
        return 1

    output_dir = Path(cfg.get("output_dir", "."))
    output_dir.mkdir(parents=True, exist_ok=True)
    jobs = build_jobs(regions, manifest, str(output_dir), cfg.get("output_suffix", ".vcf.gz"))

    scheduler = JobScheduler(cfg, ProgressBoard(enabled=cfg.get("show_progress", True)))
    # console log lines must go through tqdm.write while bars are drawn
    with logging_redirect_tqdm():
        outcomes = scheduler.run(jobs)

    counts = summarize(outcomes)
    elapsed = datetime.datetime.now() - start_time
    logger.info(
        f"Finished {len(outcomes)} chromosomes in {elapsed}: {counts['verified']} verified, "
        f"{counts['digest_mismatch']} checksum mismatches, {counts['failed']} failed"
    )

    if args.report:
        report_path = generate_html_report(outcomes, args.report)
        logger.info(f"HTML summary written to {report_path}")

    return exit_code(outcomes)


if __name__ == "__main__":
    sys.exit(main())
