"""DateRange value object: a half-open ``[check_in, check_out)`` stay."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, timedelta

from stayengine.errors import InvalidRange


@dataclass(frozen=True)
class DateRange:
    """Calendar dates of a stay, check-in inclusive and check-out exclusive.

    The check-out day is not occupied, so a stay ending on the 5th and another
    starting on the 5th do not overlap::

        >>> DateRange(date(2026, 3, 1), date(2026, 3, 5)).overlaps(
        ...     DateRange(date(2026, 3, 5), date(2026, 3, 7)))
        False
    """

    check_in: date
    check_out: date

    def __post_init__(self) -> None:
        if self.check_out <= self.check_in:
            raise InvalidRange(
                f"check_out ({self.check_out.isoformat()}) must be after check_in ({self.check_in.isoformat()})"
            )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def nightly_dates(self) -> Iterator[date]:
        """Yield each occupied night, check-in first."""
        for offset in range(self.nights):
            yield self.check_in + timedelta(days=offset)

    def contains(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    def overlaps(self, other: "DateRange") -> bool:
        return intervals_overlap(self.check_in, self.check_out, other.check_in, other.check_out)

    def __str__(self) -> str:
        return f"{self.check_in.isoformat()}..{self.check_out.isoformat()}"


def intervals_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Half-open overlap test shared by every availability check.

    ``[a, b)`` and ``[c, d)`` overlap iff ``a < d and c < b``.
    """
    return start_a < end_b and start_b < end_a
