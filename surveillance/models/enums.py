"""
Enumeration definitions for the surveillance engine.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings inside Pydantic models and log messages.
"""

from enum import Enum


class DropReason(str, Enum):
    """
    Why a raw row was not turned into a WeeklyRecord.

    - invalid_week: isoYear/isoWeek missing, non-numeric, or not a real ISO week
    - aggregate_row: the pre-aggregated 'Total' pseudo-state
    - state_filtered: state not in the explicit filter list
    - outside_window: the row's ISO week does not overlap the requested range
    """
    INVALID_WEEK = "invalid_week"
    AGGREGATE_ROW = "aggregate_row"
    STATE_FILTERED = "state_filtered"
    OUTSIDE_WINDOW = "outside_window"


class AlertFlag(str, Enum):
    """
    Named alert flags evaluated over the global weekly series.

    Values match the field names of AlertFlags so the two can be used
    interchangeably by downstream consumers.
    """
    INCOMPLETE_REPORTING = "incompleteReporting"
    SUSTAINED_GROWTH = "sustainedGrowth"
    SHARP_SPIKE = "sharpSpike"
    ELEVATED_DEATHS = "elevatedDeaths"


class SignalCategory(str, Enum):
    """
    Categories of notable-signal text, at most one entry per category.
    """
    MISSING_WEEKS = "missing_weeks"
    LARGEST_INCREASE = "largest_increase"
    LARGEST_DECREASE = "largest_decrease"
