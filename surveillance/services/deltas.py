"""
Percentage-change and per-week average arithmetic.

Zero-denominator policy:
- percentage_change from a zero base is 0 when the current value is also 0,
  otherwise +100. It never returns infinity or NaN.
- averaging_denominator prefers the number of weeks that actually have data
  and falls back to the nominal window length in weeks (minimum 1).

The same denominator rule is used for every average the engine reports,
current and previous windows alike.
"""

from datetime import date
from typing import Optional, Union

from surveillance.models.schemas import CaseAverages, CaseCounts, CaseDeltas
from surveillance.services.week_calendar import nominal_week_count


Number = Union[int, float]


def percentage_change(
    current: Optional[Number],
    previous: Optional[Number]
) -> float:
    """
    Percentage change from previous to current.

    None is treated as 0 on either side.

    Example:
        >>> percentage_change(150, 100)
        50.0
        >>> percentage_change(5, 0)
        100.0
        >>> percentage_change(0, 0)
        0.0
    """
    current_value = float(current or 0)
    previous_value = float(previous or 0)

    if previous_value == 0:
        return 0.0 if current_value == 0 else 100.0

    return (current_value - previous_value) / abs(previous_value) * 100


def averaging_denominator(weeks_reported: int, start: date, end: date) -> int:
    """
    Number of weeks to average over for the window [start, end].

    Args:
        weeks_reported: Count of expected weeks that have at least one row.
        start: Window start (inclusive).
        end: Window end (inclusive).

    Returns:
        weeks_reported when positive, otherwise ceil(days / 7) (at least 1).
    """
    if weeks_reported > 0:
        return weeks_reported
    return nominal_week_count(start, end) or 1


def per_week_averages(totals: CaseCounts, denominator: int) -> CaseAverages:
    """Divide each total by the averaging denominator."""
    divisor = max(1, denominator)
    return CaseAverages(
        suspected=totals.suspected / divisor,
        confirmed=totals.confirmed / divisor,
        deaths=totals.deaths / divisor,
    )


def case_deltas(current: CaseCounts, previous: CaseCounts) -> CaseDeltas:
    """Period-over-period percentage change of each count."""
    return CaseDeltas(
        suspected=percentage_change(current.suspected, previous.suspected),
        confirmed=percentage_change(current.confirmed, previous.confirmed),
        deaths=percentage_change(current.deaths, previous.deaths),
    )
