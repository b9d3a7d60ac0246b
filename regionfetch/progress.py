"""
Multiplexed per-job progress bars.

Jobs run on worker threads and each owns one bar. Bar creation goes through a
lock so every job gets its own terminal line; drawing goes through tqdm's
shared class lock, so jobs never coordinate with each other directly.
"""

import threading
from typing import Dict, Optional

from tqdm import tqdm


class JobProgress:
    """Progress handle for one chromosome job."""

    def __init__(self, bar: tqdm):
        self._bar = bar

    def advance(self, n_bytes: int) -> None:
        self._bar.update(n_bytes)

    def finish(self, message: str) -> None:
        self._bar.set_postfix_str(message, refresh=False)
        self._bar.close()


class ProgressBoard:
    """Hands out one byte-counting bar per job.

    Parameters
    ----------
    enabled : bool
        If False, bars are created disabled and draw nothing.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._lock = threading.Lock()
        self._positions: Dict[str, int] = {}

    def track(self, chromosome: str, total: Optional[int] = None) -> JobProgress:
        with self._lock:
            position = self._positions.setdefault(chromosome, len(self._positions))
        bar = tqdm(
            total=total,
            desc=chromosome,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            position=position,
            leave=True,
            disable=not self.enabled,
        )
        return JobProgress(bar)

