# File: regionfetch/report.py
# Location: regionfetch/regionfetch/report.py

import datetime
from pathlib import Path
from typing import List

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .scheduler import JobOutcome, summarize
from .version import __version__


def generate_html_report(outcomes: List[JobOutcome], output_file: str) -> Path:
    """
    Write an HTML summary with one row per chromosome job.

    Parameters
    ----------
    outcomes : list of JobOutcome
        Outcomes as returned by JobScheduler.run.
    output_file : str
        Destination HTML path; parent directories are created.

    Returns
    -------
    Path
        The written report path.
    """
    rows = []
    for outcome in outcomes:
        result = outcome.result
        rows.append(
            {
                "chromosome": outcome.chromosome,
                "status": outcome.status.value,
                "reason": outcome.reason,
                "output_path": str(result.output_path) if result else "",
                "bytes_downloaded": result.bytes_downloaded if result else None,
                "records_written": result.records_written if result else None,
                "expected_digest": result.expected_digest if result else "",
                "computed_digest": result.computed_digest if result else "",
                "duration": f"{outcome.duration:.1f}",
            }
        )

    templates_dir = Path(__file__).parent / "templates"
    if not templates_dir.exists():
        raise FileNotFoundError(f"Templates directory not found at: {templates_dir}")

    env = Environment(
        loader=FileSystemLoader(str(templates_dir)), autoescape=select_autoescape(["html"])
    )
    template = env.get_template("summary.html")

    html_content = template.render(
        rows=rows,
        counts=summarize(outcomes),
        version=__version__,
        generated=datetime.datetime.now().isoformat(timespec="seconds"),
    )

    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as out_f:
        out_f.write(html_content)
    return output_path
