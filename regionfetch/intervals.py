"""
Sorted interval membership for streams of ascending genomic positions.

IntervalScanner walks a sorted list of half-open intervals in lockstep with a
non-decreasing stream of positions, so the total cost over a whole VCF is
linear in the number of records plus the number of regions. Region ordering is
the caller's job: sort_regions and find_overlaps are the optional preparation
step, kept separate from the scanner itself.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

MAX_POSITION = 2**32 - 1


@dataclass(frozen=True)
class Region:
    """A half-open genomic interval [start, end) on one chromosome."""

    chromosome: str
    start: int
    end: int

    def as_interval(self) -> Tuple[int, int]:
        return (self.start, self.end)


class Membership(enum.Enum):
    """Result of classifying one position against the remaining intervals."""

    INSIDE = "inside"
    OUTSIDE = "outside"
    EXHAUSTED = "exhausted"


class IntervalScanner:
    """Single-pass membership test over sorted, non-overlapping intervals.

    The scanner never looks backward. Callers must supply intervals sorted
    ascending by start with no overlaps, and must query positions in
    non-decreasing order; neither precondition is checked, and violating
    either gives undefined classifications.

    Parameters
    ----------
    intervals : iterable of (int, int)
        Half-open (start, end) pairs, consumed lazily.
    """

    def __init__(self, intervals: Iterable[Tuple[int, int]]):
        self._intervals: Iterator[Tuple[int, int]] = iter(intervals)
        self._current: Optional[Tuple[int, int]] = None
        self._started = False

    @property
    def exhausted(self) -> bool:
        """True once every interval has been passed."""
        return self._started and self._current is None

    def classify(self, value: int) -> Membership:
        """Classify value against the current interval, advancing past finished ones.

        Parameters
        ----------
        value : int
            Position to test; must be >= every previously classified value.

        Returns
        -------
        Membership
            INSIDE if value lies in an interval, OUTSIDE if it falls in the gap
            before the current interval, EXHAUSTED once no intervals remain.
        """
        if not self._started:
            self._current = next(self._intervals, None)
            self._started = True

        while self._current is not None:
            start, end = self._current
            if value < start:
                return Membership.OUTSIDE
            if value < end:
                return Membership.INSIDE
            self._current = next(self._intervals, None)

        return Membership.EXHAUSTED


def sort_regions(regions: Iterable[Region]) -> List[Region]:
    """Return regions sorted ascending by start (then end), as the scanner expects."""
    return sorted(regions, key=lambda r: (r.start, r.end))


def find_overlaps(regions: List[Region]) -> List[Tuple[Region, Region]]:
    """
    Find neighbouring regions that overlap in an already sorted list.

    Overlaps are reported, never merged.

    Parameters
    ----------
    regions : list of Region
        Regions sorted by start, all on the same chromosome.

    Returns
    -------
    list of (Region, Region)
        Each adjacent pair where the second region starts before the first ends.
    """
    overlaps = []
    for previous, current in zip(regions, regions[1:]):
        if current.start < previous.end:
            overlaps.append((previous, current))
    return overlaps
