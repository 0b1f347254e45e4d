"""
Report Metrics Assembly Service.

Shapes the PeriodSummary, CoverageReport and SignalReport of one request into
the flattened MetricsPayload handed to the narrative report generator. The
assembler performs no narrative generation and makes no outbound calls.

Assembler Responsibilities:
- Round coverageRatio to 3 decimals
- Drop empty or whitespace-only notable-signal strings
- Validate internal consistency:
    weeksReported <= totalWeeks
    availableWeeks and missingWeeks partition the expected weeks
    summary.weeksReported agrees with the coverage report

Request Pipeline (generate_report_metrics):
    1. validate_report_range: parse, order-check, and cap the window length
    2. fetch raw rows for the ISO years of the current and previous windows,
       as two concurrent tasks; a failure in one cancels the other
    3. aggregate both windows, detect signals on the current window
    4. summarize and assemble

Upstream failures surface as FetchError; the engine does not retry.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Set, Tuple

from surveillance.core.config import Settings, get_settings
from surveillance.core.exceptions import FetchError, InconsistentMetricsError, InvalidRangeError
from surveillance.models.schemas import CoverageReport, MetricsPayload, PeriodSummary, SignalReport
from surveillance.services.coverage import aggregate_window
from surveillance.services.ingestion import fetch_years, resolve_state_filters
from surveillance.services.signals import SignalThresholds, detect_signals
from surveillance.services.summary import resolve_range, summarize_windows
from surveillance.services.week_calendar import format_date_range, previous_window, window_days

logger = logging.getLogger(__name__)


# Async callable returning raw rows for a set of ISO years and optional states
RowFetcher = Callable[[Set[int], Optional[List[str]]], Awaitable[List[Mapping[str, Any]]]]

COVERAGE_DECIMALS: int = 3

# Two years
MAX_RANGE_DAYS: int = 366 * 2


# =============================================================================
# Validation
# =============================================================================


def validate_report_range(
    start: Any,
    end: Any,
    max_range_days: int = MAX_RANGE_DAYS
) -> Tuple[date, date]:
    """
    Caller-facing validation of a report window.

    Args:
        start: Requested start (date or ISO string).
        end: Requested end (date or ISO string).
        max_range_days: Longest allowed span (end - start) in days.

    Returns:
        (start_date, end_date)

    Raises:
        InvalidRangeError: If either date is unparseable, end < start, or the
            span exceeds max_range_days.
    """
    start_date, end_date = resolve_range(start, end)

    if (end_date - start_date).days > max_range_days:
        raise InvalidRangeError(f"Date range must be {max_range_days} days or less")

    return start_date, end_date


# =============================================================================
# Formatting
# =============================================================================


def format_coverage_label(weeks_reported: int, total_weeks: int) -> Optional[str]:
    """
    Short coverage description, e.g. '2 of 4 weeks reported'.

    Returns None when no week was reported.
    """
    if weeks_reported <= 0:
        return None

    if total_weeks <= 0:
        return f"{weeks_reported} published week{'' if weeks_reported == 1 else 's'}"

    return f"{weeks_reported} of {total_weeks} weeks reported"


# =============================================================================
# Assembly
# =============================================================================


def _check_consistency(summary: PeriodSummary, coverage: CoverageReport) -> None:
    available = coverage.availableWeekLabels
    missing = coverage.missingWeekLabels

    if len(available) > coverage.totalWeeks:
        raise InconsistentMetricsError(
            f"{len(available)} available weeks exceed {coverage.totalWeeks} expected weeks"
        )

    if len(set(available)) != len(available) or len(set(missing)) != len(missing):
        raise InconsistentMetricsError("Week labels must not repeat")

    if set(available) & set(missing):
        raise InconsistentMetricsError("A week cannot be both available and missing")

    if len(available) + len(missing) != coverage.totalWeeks:
        raise InconsistentMetricsError(
            f"Available and missing weeks do not cover {coverage.totalWeeks} expected weeks"
        )

    if summary.weeksReported != len(available):
        raise InconsistentMetricsError(
            f"Summary reports {summary.weeksReported} weeks but coverage has {len(available)}"
        )


def assemble_report_metrics(
    summary: PeriodSummary,
    coverage: CoverageReport,
    signals: SignalReport
) -> MetricsPayload:
    """
    Build the immutable payload for the narrative generator.

    Args:
        summary: PeriodSummary of the requested window.
        coverage: CoverageReport of the same window.
        signals: SignalReport of the same window.

    Returns:
        MetricsPayload with stable field names.

    Raises:
        InconsistentMetricsError: If coverage and summary contradict each other.
    """
    _check_consistency(summary, coverage)

    weeks_reported = len(coverage.availableWeekLabels)
    coverage_ratio = (
        round(coverage.coverageRatio, COVERAGE_DECIMALS)
        if coverage.coverageRatio is not None else None
    )

    return MetricsPayload(
        state=summary.state,
        periodStart=summary.periodStart,
        periodEnd=summary.periodEnd,
        rangeLabel=format_date_range(summary.periodStart, summary.periodEnd),
        totals=summary.totals,
        previousTotals=summary.previousTotals,
        averages=summary.averages,
        deltas=summary.deltas,
        weeksReported=weeks_reported,
        totalWeeks=coverage.totalWeeks,
        coverageRatio=coverage_ratio,
        coverageLabel=format_coverage_label(weeks_reported, coverage.totalWeeks),
        availableWeeks=coverage.availableWeekLabels,
        missingWeeks=coverage.missingWeekLabels,
        topContributors=signals.topContributors,
        fastestGrowers=signals.fastestGrowers,
        alertFlags=signals.alertFlags,
        notableSignals=tuple(s for s in signals.notableSignals if s and s.strip()),
    )


# =============================================================================
# Request Pipeline
# =============================================================================


async def _fetch_window_rows(
    fetcher: RowFetcher,
    years: Set[int],
    states: Optional[List[str]]
) -> List[Mapping[str, Any]]:
    try:
        return list(await fetcher(years, states))
    except FetchError:
        raise
    except Exception as e:
        logger.error(f"Upstream fetch failed for years={sorted(years)}: {e}")
        raise FetchError(f"Failed to fetch case rows: {e}") from e


async def _fetch_both_windows(
    fetcher: RowFetcher,
    current_years: Set[int],
    previous_years: Set[int],
    states: Optional[List[str]]
) -> Tuple[List[Mapping[str, Any]], List[Mapping[str, Any]]]:
    """
    Fetch the current and previous window rows concurrently.

    When either fetch fails the other is cancelled and awaited before the
    error propagates, so no query outlives the request.
    """
    tasks = [
        asyncio.create_task(_fetch_window_rows(fetcher, current_years, states)),
        asyncio.create_task(_fetch_window_rows(fetcher, previous_years, states)),
    ]
    try:
        current_rows, previous_rows = await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return current_rows, previous_rows


async def generate_report_metrics(
    start: Any,
    end: Any,
    states: Optional[Sequence[str]] = None,
    fetcher: Optional[RowFetcher] = None,
    settings: Optional[Settings] = None
) -> MetricsPayload:
    """
    Validate a request, fetch its rows, and produce the MetricsPayload.

    Args:
        start: Requested start (date or ISO string).
        end: Requested end (date or ISO string).
        states: Explicit state names; None, empty or ["All States"] means all.
        fetcher: Async row source; defaults to core.database.fetch_case_rows.
        settings: Thresholds and limits; defaults to get_settings().

    Returns:
        MetricsPayload for the window.

    Raises:
        InvalidRangeError: For an unparseable, inverted or oversized window.
        FetchError: If the row source fails.

    Example:
        >>> payload = await generate_report_metrics("2024-01-01", "2024-01-28", ["Ondo"])
        >>> payload.alertFlags.sharpSpike
        False
    """
    settings = settings or get_settings()
    if fetcher is None:
        from surveillance.core.database import fetch_case_rows
        fetcher = fetch_case_rows

    start_date, end_date = validate_report_range(start, end, settings.max_range_days)
    previous_start, previous_end = previous_window(start_date, end_date)

    state_filter = resolve_state_filters(states)
    fetch_states = sorted(state_filter) if state_filter else None

    logger.info(
        f"Generating report metrics for {start_date}..{end_date} "
        f"({window_days(start_date, end_date)} days), states={fetch_states or 'all'}"
    )

    current_rows, previous_rows = await _fetch_both_windows(
        fetcher,
        fetch_years(start_date, end_date),
        fetch_years(previous_start, previous_end),
        fetch_states,
    )

    current = aggregate_window(start_date, end_date, state_filter, current_rows)
    previous = aggregate_window(previous_start, previous_end, state_filter, previous_rows)

    signals = detect_signals(current, SignalThresholds.from_settings(settings))
    summary = summarize_windows(current, previous, state_filter)

    payload = assemble_report_metrics(summary, current.coverage, signals)

    logger.info(
        f"Report metrics ready: {payload.weeksReported}/{payload.totalWeeks} weeks, "
        f"alerts={[flag.value for flag in payload.alertFlags.active()]}"
    )
    return payload
