"""
Package initialization file for surveillance models.

Exports all Pydantic schemas and enumerations so other modules can import
them from surveillance.models directly.

Usage:
    from surveillance.models import CoverageReport, MetricsPayload, DropReason
"""

# =============================================================================
# Enums
# =============================================================================

from surveillance.models.enums import (
    DropReason,
    AlertFlag,
    SignalCategory,
)

# =============================================================================
# Schemas
# =============================================================================

from surveillance.models.schemas import (
    CaseCounts,
    CaseAverages,
    CaseDeltas,
    WeeklyTotal,
    StateTotal,
    CoverageReport,
    ContributorShare,
    GrowthSignal,
    AlertFlags,
    SignalReport,
    PeriodSummary,
    MetricsPayload,
)

__all__ = [
    # Enums
    'DropReason',
    'AlertFlag',
    'SignalCategory',
    # Schemas
    'CaseCounts',
    'CaseAverages',
    'CaseDeltas',
    'WeeklyTotal',
    'StateTotal',
    'CoverageReport',
    'ContributorShare',
    'GrowthSignal',
    'AlertFlags',
    'SignalReport',
    'PeriodSummary',
    'MetricsPayload',
]
