"""
Pydantic models for the surveillance engine output.

Every model is frozen: instances are created once per invocation and handed to
the narrative generator or the dashboard unchanged. Field names are camelCase
because the downstream text generator parses the payload by name; renaming a
field is a breaking change.

Model groups:
- Case counts: CaseCounts, CaseAverages, CaseDeltas
- Aggregates: WeeklyTotal, StateTotal
- Coverage: CoverageReport
- Signals: ContributorShare, GrowthSignal, AlertFlags, SignalReport
- Period comparison: PeriodSummary
- Narrative handoff: MetricsPayload

All models use Pydantic v2 syntax.
"""

from datetime import date as DateType
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ConfigDict

from surveillance.models.enums import AlertFlag


# =============================================================================
# Case Count Models
# =============================================================================


class CaseCounts(BaseModel):
    """Summed suspected/confirmed/deaths counts."""
    model_config = ConfigDict(frozen=True)

    suspected: int = Field(default=0, ge=0)
    confirmed: int = Field(default=0, ge=0)
    deaths: int = Field(default=0, ge=0)


class CaseAverages(BaseModel):
    """Per-reported-week averages of each count."""
    model_config = ConfigDict(frozen=True)

    suspected: float = 0.0
    confirmed: float = 0.0
    deaths: float = 0.0


class CaseDeltas(BaseModel):
    """Period-over-period percentage changes of each count."""
    model_config = ConfigDict(frozen=True)

    suspected: float = 0.0
    confirmed: float = 0.0
    deaths: float = 0.0


# =============================================================================
# Aggregate Models
# =============================================================================


class WeeklyTotal(BaseModel):
    """
    Sum across all matching states for one ISO week.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "weekKey": "2024-W01",
                "weekStart": "2024-01-01",
                "weekEnd": "2024-01-07",
                "suspected": 120,
                "confirmed": 14,
                "deaths": 2
            }
        }
    )

    weekKey: str = Field(
        ...,
        pattern=r"^\d{4}-W\d{2}$",
        description="Canonical ISO week key (YYYY-Www)"
    )
    weekStart: DateType = Field(..., description="Monday of the ISO week")
    weekEnd: DateType = Field(..., description="Sunday of the ISO week")
    suspected: int = Field(default=0, ge=0)
    confirmed: int = Field(default=0, ge=0)
    deaths: int = Field(default=0, ge=0)


class StateTotal(BaseModel):
    """
    Sum across all weeks in the requested range for one state.
    """
    model_config = ConfigDict(frozen=True)

    state: str = Field(..., min_length=1)
    suspected: int = Field(default=0, ge=0)
    confirmed: int = Field(default=0, ge=0)
    deaths: int = Field(default=0, ge=0)


# =============================================================================
# Coverage Models
# =============================================================================


class CoverageReport(BaseModel):
    """
    Calendar-complete view of which expected weeks have data.

    availableWeekLabels and missingWeekLabels partition the expected week
    sequence; both are chronologically ordered without duplicates.
    coverageRatio is None when the expected sequence is empty.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "availableWeekLabels": ["2024-W01", "2024-W03"],
                "missingWeekLabels": ["2024-W02", "2024-W04"],
                "totalWeeks": 4,
                "coverageRatio": 0.5
            }
        }
    )

    availableWeekLabels: Tuple[str, ...] = Field(default_factory=tuple)
    missingWeekLabels: Tuple[str, ...] = Field(default_factory=tuple)
    totalWeeks: int = Field(default=0, ge=0)
    coverageRatio: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="|available| / |expected|, None when no weeks are expected"
    )

    @property
    def expectedWeekLabels(self) -> List[str]:
        """Expected week sequence reconstructed from the partition."""
        return sorted(set(self.availableWeekLabels) | set(self.missingWeekLabels))


# =============================================================================
# Signal Models
# =============================================================================


class ContributorShare(BaseModel):
    """
    One ranked state contributor.

    shareOfConfirmed is omitted (None) when the qualifying confirmed sum is 0.
    """
    model_config = ConfigDict(frozen=True)

    state: str
    suspected: int = Field(default=0, ge=0)
    confirmed: int = Field(default=0, ge=0)
    deaths: int = Field(default=0, ge=0)
    shareOfConfirmed: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class GrowthSignal(BaseModel):
    """
    The single largest positive week-over-week confirmed increase of a state.

    week is the later week of the pair, i.e. the week the increase was reported.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "state": "Ondo",
                "week": "2024-W02",
                "weekOverWeekChange": 30
            }
        }
    )

    state: str
    week: str
    weekOverWeekChange: int = Field(..., gt=0)


class AlertFlags(BaseModel):
    """Named boolean alerts over the global weekly series."""
    model_config = ConfigDict(frozen=True)

    incompleteReporting: bool = False
    sustainedGrowth: bool = False
    sharpSpike: bool = False
    elevatedDeaths: bool = False

    def active(self) -> List[AlertFlag]:
        """Return the raised flags in declaration order."""
        return [flag for flag in AlertFlag if getattr(self, flag.value)]


class SignalReport(BaseModel):
    """SignalDetector output for one window."""
    model_config = ConfigDict(frozen=True)

    topContributors: Tuple[ContributorShare, ...] = Field(default_factory=tuple)
    fastestGrowers: Tuple[GrowthSignal, ...] = Field(default_factory=tuple)
    alertFlags: AlertFlags = Field(default_factory=AlertFlags)
    notableSignals: Tuple[str, ...] = Field(default_factory=tuple)


# =============================================================================
# Period Summary
# =============================================================================


class PeriodSummary(BaseModel):
    """
    Totals for a requested window and the immediately preceding window of
    equal length, with per-reported-week averages and percentage deltas.
    """
    model_config = ConfigDict(frozen=True)

    state: str = Field(..., description="'All States', a single state, or a joined list")
    periodStart: DateType
    periodEnd: DateType
    totals: CaseCounts = Field(default_factory=CaseCounts)
    previousTotals: CaseCounts = Field(default_factory=CaseCounts)
    averages: CaseAverages = Field(default_factory=CaseAverages)
    previousAverages: CaseAverages = Field(default_factory=CaseAverages)
    deltas: CaseDeltas = Field(default_factory=CaseDeltas)
    weeksReported: int = Field(default=0, ge=0)
    previousWeeksReported: int = Field(default=0, ge=0)
    totalWeeks: int = Field(default=0, ge=0)


# =============================================================================
# Narrative Handoff Payload
# =============================================================================


class MetricsPayload(BaseModel):
    """
    Flattened, field-stable structure handed to the narrative generator.

    Produced only by assemble_report_metrics, which guarantees
    weeksReported <= totalWeeks and that availableWeeks/missingWeeks partition
    the expected week sequence.
    """
    model_config = ConfigDict(frozen=True)

    state: str
    periodStart: DateType
    periodEnd: DateType
    rangeLabel: str
    totals: CaseCounts
    previousTotals: CaseCounts
    averages: CaseAverages
    deltas: CaseDeltas
    weeksReported: int = Field(..., ge=0)
    totalWeeks: int = Field(..., ge=0)
    coverageRatio: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    coverageLabel: Optional[str] = None
    availableWeeks: Tuple[str, ...] = Field(default_factory=tuple)
    missingWeeks: Tuple[str, ...] = Field(default_factory=tuple)
    topContributors: Tuple[ContributorShare, ...] = Field(default_factory=tuple)
    fastestGrowers: Tuple[GrowthSignal, ...] = Field(default_factory=tuple)
    alertFlags: AlertFlags = Field(default_factory=AlertFlags)
    notableSignals: Tuple[str, ...] = Field(default_factory=tuple)
