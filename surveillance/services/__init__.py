"""
Surveillance Services Module

This module contains the computation services of the surveillance engine.
Every service is a pure function of its inputs except report_metrics, which
orchestrates the upstream fetch.

Services:
- week_calendar: ISO-8601 week arithmetic and week-key helpers
- ingestion: raw row normalization into WeeklyRecord instances
- coverage: weekly/state aggregation and expected-week coverage
- signals: contributor/grower rankings, alert flags, notable signals
- deltas: percentage change and per-week averages
- summary: period-over-period comparison
- report_metrics: MetricsPayload assembly and the request pipeline
"""

# =============================================================================
# Week Calendar Exports
# =============================================================================

from surveillance.services.week_calendar import (
    parse_date,
    iso_week_start,
    iso_week_end,
    is_valid_iso_week,
    format_week_key,
    parse_week_key,
    weeks_between,
    iso_years_between,
    nominal_week_count,
    has_previous_window,
    previous_window,
    format_date_range,
    derive_available_months,
    derive_available_quarters,
    filter_weeks_by_month,
    filter_weeks_by_quarter,
    format_month_label,
    format_quarter_label,
)

# =============================================================================
# Ingestion Exports
# =============================================================================

from surveillance.services.ingestion import (
    WeeklyRecord,
    NormalizedRow,
    normalize_row,
    ingest_rows,
    resolve_state_filters,
    describe_state_filters,
    fetch_years,
    ALL_STATES,
    AGGREGATE_STATE,
)

# =============================================================================
# Coverage Exports
# =============================================================================

from surveillance.services.coverage import (
    WindowAggregate,
    aggregate_window,
    build_coverage_report,
    build_state_week_series,
    compute_coverage,
)

# =============================================================================
# Signal Exports
# =============================================================================

from surveillance.services.signals import (
    SignalThresholds,
    top_contributors,
    fastest_growers,
    evaluate_alert_flags,
    notable_signals,
    detect_signals,
)

# =============================================================================
# Delta / Summary Exports
# =============================================================================

from surveillance.services.deltas import (
    percentage_change,
    averaging_denominator,
    per_week_averages,
    case_deltas,
)

from surveillance.services.summary import (
    resolve_range,
    summarize_windows,
    compute_summary,
)

# =============================================================================
# Report Metrics Exports
# =============================================================================

from surveillance.services.report_metrics import (
    validate_report_range,
    format_coverage_label,
    assemble_report_metrics,
    generate_report_metrics,
)

__all__ = [
    # Week calendar
    'parse_date',
    'iso_week_start',
    'iso_week_end',
    'is_valid_iso_week',
    'format_week_key',
    'parse_week_key',
    'weeks_between',
    'iso_years_between',
    'nominal_week_count',
    'has_previous_window',
    'previous_window',
    'format_date_range',
    'derive_available_months',
    'derive_available_quarters',
    'filter_weeks_by_month',
    'filter_weeks_by_quarter',
    'format_month_label',
    'format_quarter_label',
    # Ingestion
    'WeeklyRecord',
    'NormalizedRow',
    'normalize_row',
    'ingest_rows',
    'resolve_state_filters',
    'describe_state_filters',
    'fetch_years',
    'ALL_STATES',
    'AGGREGATE_STATE',
    # Coverage
    'WindowAggregate',
    'aggregate_window',
    'build_coverage_report',
    'build_state_week_series',
    'compute_coverage',
    # Signals
    'SignalThresholds',
    'top_contributors',
    'fastest_growers',
    'evaluate_alert_flags',
    'notable_signals',
    'detect_signals',
    # Deltas / summary
    'percentage_change',
    'averaging_denominator',
    'per_week_averages',
    'case_deltas',
    'resolve_range',
    'summarize_windows',
    'compute_summary',
    # Report metrics
    'validate_report_range',
    'format_coverage_label',
    'assemble_report_metrics',
    'generate_report_metrics',
]
