"""
Signal Detection Service.

Derives ranked and boolean signals from a window aggregate:

- top_contributors: states with confirmed > 0, ranked by confirmed (top 3),
  each with its share of the qualifying confirmed sum (3 decimals)
- fastest_growers: per state, the largest positive week-over-week confirmed
  increase and the week it was reported (top 3)
- evaluate_alert_flags: four named booleans over the global weekly series
- notable_signals: at most one deterministic sentence per SignalCategory

Week-over-week deltas are taken only between adjacent ISO weeks of a
chronologically sorted series. A missing week breaks the pair (and any growth
run through it); it is surfaced through coverage rather than treated as zero.

Alert Rules (defaults in SignalThresholds):
    incompleteReporting: coverageRatio is not None and < 0.75
    sustainedGrowth:     >= 2 consecutive positive confirmed deltas
    sharpSpike:          any confirmed delta >= 25
    elevatedDeaths:      any weekly deaths total >= 5

Ordering ties are broken by state name so output is deterministic.

Dependencies:
    - numpy: consecutive differences, adjacency masks and argmax over weekly series
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from surveillance.core.config import Settings
from surveillance.models.enums import SignalCategory
from surveillance.models.schemas import (
    AlertFlags,
    ContributorShare,
    CoverageReport,
    GrowthSignal,
    SignalReport,
    StateTotal,
    WeeklyTotal,
)
from surveillance.services.coverage import StateWeekSeries, WindowAggregate
from surveillance.services.week_calendar import iso_week_start, parse_week_key


# =============================================================================
# Constants
# =============================================================================

DEFAULT_TOP_N: int = 3
INCOMPLETE_COVERAGE_THRESHOLD: float = 0.75
SUSTAINED_GROWTH_WEEKS: int = 2
SHARP_SPIKE_THRESHOLD: int = 25
ELEVATED_DEATHS_THRESHOLD: int = 5

SHARE_DECIMALS: int = 3


@dataclass(frozen=True)
class SignalThresholds:
    """
    Tunable limits for ranking and alerting.

    Attributes:
        top_n: Length of contributor and grower rankings.
        incomplete_coverage: Coverage ratio below which reporting is incomplete.
        sustained_growth_weeks: Consecutive positive deltas for sustained growth.
        sharp_spike: Absolute confirmed increase counted as a spike.
        elevated_deaths: Weekly deaths total counted as elevated.
    """
    top_n: int = DEFAULT_TOP_N
    incomplete_coverage: float = INCOMPLETE_COVERAGE_THRESHOLD
    sustained_growth_weeks: int = SUSTAINED_GROWTH_WEEKS
    sharp_spike: int = SHARP_SPIKE_THRESHOLD
    elevated_deaths: int = ELEVATED_DEATHS_THRESHOLD

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignalThresholds":
        return cls(
            top_n=settings.top_n,
            incomplete_coverage=settings.incomplete_coverage_threshold,
            sustained_growth_weeks=settings.sustained_growth_weeks,
            sharp_spike=settings.sharp_spike_threshold,
            elevated_deaths=settings.elevated_deaths_threshold,
        )


# =============================================================================
# Series Helpers
# =============================================================================


def week_over_week_deltas(values: Sequence[int]) -> np.ndarray:
    """Consecutive differences; empty for fewer than two values."""
    if len(values) < 2:
        return np.array([], dtype=np.int64)
    return np.diff(np.asarray(values, dtype=np.int64))


def adjacent_week_mask(week_keys: Sequence[str]) -> np.ndarray:
    """
    Boolean mask over consecutive pairs of a sorted key sequence.

    Entry i is True when week_keys[i + 1] is the ISO week right after
    week_keys[i], including across year boundaries (2020-W53 -> 2021-W01).

    Example:
        >>> adjacent_week_mask(["2024-W01", "2024-W02", "2024-W04"]).tolist()
        [True, False]
    """
    if len(week_keys) < 2:
        return np.array([], dtype=bool)
    starts = np.array(
        [iso_week_start(*parse_week_key(key)) for key in week_keys],
        dtype="datetime64[D]",
    )
    return np.diff(starts) == np.timedelta64(7, "D")


def adjacent_deltas(week_keys: Sequence[str], values: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """Consecutive differences of values and the adjacency mask of their pairs."""
    return week_over_week_deltas(values), adjacent_week_mask(week_keys)


def longest_positive_run(deltas: np.ndarray) -> int:
    """Length of the longest run of strictly positive deltas."""
    longest = 0
    current = 0
    for delta in deltas:
        if delta > 0:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def _extreme_change(
    weekly_totals: Sequence[WeeklyTotal],
    largest: bool
) -> Optional[Tuple[int, str, str]]:
    """
    Largest increase (or decrease) of global confirmed between adjacent weeks.

    Returns:
        (delta, from_week, to_week), or None when no such change exists.
        The earliest pair wins a tie.
    """
    deltas, adjacent = adjacent_deltas(
        [w.weekKey for w in weekly_totals], [w.confirmed for w in weekly_totals]
    )
    candidates = np.flatnonzero(adjacent)
    if candidates.size == 0:
        return None

    pair_deltas = deltas[candidates]
    index = int(candidates[np.argmax(pair_deltas) if largest else np.argmin(pair_deltas)])
    delta = int(deltas[index])

    if (largest and delta <= 0) or (not largest and delta >= 0):
        return None

    return delta, weekly_totals[index].weekKey, weekly_totals[index + 1].weekKey


# =============================================================================
# Rankings
# =============================================================================


def top_contributors(
    state_totals: Sequence[StateTotal],
    limit: int = DEFAULT_TOP_N
) -> List[ContributorShare]:
    """
    Rank states by confirmed cases.

    States with zero confirmed never qualify. Shares are computed against the
    sum over all qualifying states (not just the top N) and are omitted when
    that sum is zero.
    """
    qualifying = [s for s in state_totals if s.confirmed > 0]
    confirmed_sum = sum(s.confirmed for s in qualifying)

    ranked = sorted(qualifying, key=lambda s: (-s.confirmed, s.state))[:limit]

    return [
        ContributorShare(
            state=s.state,
            suspected=s.suspected,
            confirmed=s.confirmed,
            deaths=s.deaths,
            shareOfConfirmed=(
                round(s.confirmed / confirmed_sum, SHARE_DECIMALS) if confirmed_sum > 0 else None
            ),
        )
        for s in ranked
    ]


def fastest_growers(
    state_series: StateWeekSeries,
    limit: int = DEFAULT_TOP_N
) -> List[GrowthSignal]:
    """
    Rank states by their single largest week-over-week confirmed increase.

    Each state's series is re-sorted by week before differencing, and only
    pairs of adjacent ISO weeks count. States without such a pair, or whose
    largest delta is <= 0, are skipped.
    """
    signals: List[GrowthSignal] = []

    for state in sorted(state_series):
        series = sorted(state_series[state], key=lambda item: item[0])
        deltas, adjacent = adjacent_deltas(
            [week for week, _ in series], [confirmed for _, confirmed in series]
        )
        candidates = np.flatnonzero(adjacent)
        if candidates.size == 0:
            continue

        index = int(candidates[np.argmax(deltas[candidates])])
        max_delta = int(deltas[index])
        if max_delta <= 0:
            continue

        signals.append(GrowthSignal(
            state=state,
            week=series[index + 1][0],
            weekOverWeekChange=max_delta,
        ))

    signals.sort(key=lambda g: (-g.weekOverWeekChange, g.state))
    return signals[:limit]


# =============================================================================
# Alerts
# =============================================================================


def evaluate_alert_flags(
    weekly_totals: Sequence[WeeklyTotal],
    coverage: CoverageReport,
    thresholds: SignalThresholds = SignalThresholds()
) -> AlertFlags:
    """
    Evaluate the four alert flags over the global weekly series.

    Growth runs and spikes only use adjacent-week deltas; a gap resets the run.
    """
    deltas, adjacent = adjacent_deltas(
        [w.weekKey for w in weekly_totals], [w.confirmed for w in weekly_totals]
    )
    adjacent_only = np.where(adjacent, deltas, 0)

    return AlertFlags(
        incompleteReporting=(
            coverage.coverageRatio is not None
            and coverage.coverageRatio < thresholds.incomplete_coverage
        ),
        sustainedGrowth=longest_positive_run(adjacent_only) >= thresholds.sustained_growth_weeks,
        sharpSpike=bool(np.any(deltas[adjacent] >= thresholds.sharp_spike)),
        elevatedDeaths=any(w.deaths >= thresholds.elevated_deaths for w in weekly_totals),
    )


def notable_signals(
    weekly_totals: Sequence[WeeklyTotal],
    coverage: CoverageReport
) -> Dict[SignalCategory, str]:
    """
    Deterministic sentences, at most one per category.

    Categories appear only when they apply: missing weeks when any are
    missing, the largest increase when one exists, the largest decrease when
    one exists.
    """
    signals: Dict[SignalCategory, str] = {}

    if coverage.missingWeekLabels:
        count = len(coverage.missingWeekLabels)
        signals[SignalCategory.MISSING_WEEKS] = (
            f"No data reported for {count} of {coverage.totalWeeks} expected "
            f"week{'s' if coverage.totalWeeks != 1 else ''}: "
            f"{', '.join(coverage.missingWeekLabels)}"
        )

    increase = _extreme_change(weekly_totals, largest=True)
    if increase:
        delta, from_week, to_week = increase
        signals[SignalCategory.LARGEST_INCREASE] = (
            f"Largest week-over-week increase: +{delta} confirmed cases "
            f"from {from_week} to {to_week}"
        )

    decrease = _extreme_change(weekly_totals, largest=False)
    if decrease:
        delta, from_week, to_week = decrease
        signals[SignalCategory.LARGEST_DECREASE] = (
            f"Largest week-over-week decrease: {delta} confirmed cases "
            f"from {from_week} to {to_week}"
        )

    return signals


def detect_signals(
    aggregate: WindowAggregate,
    thresholds: SignalThresholds = SignalThresholds()
) -> SignalReport:
    """
    Run every detector over one window aggregate.

    Args:
        aggregate: Output of coverage.aggregate_window.
        thresholds: Ranking and alert limits.

    Returns:
        SignalReport with rankings, alert flags and notable signals.
    """
    return SignalReport(
        topContributors=tuple(top_contributors(aggregate.state_totals, thresholds.top_n)),
        fastestGrowers=tuple(fastest_growers(aggregate.state_series, thresholds.top_n)),
        alertFlags=evaluate_alert_flags(aggregate.weekly_totals, aggregate.coverage, thresholds),
        notableSignals=tuple(notable_signals(aggregate.weekly_totals, aggregate.coverage).values()),
    )
