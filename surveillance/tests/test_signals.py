"""
Test Module for Signal Detection.

Validates:
- Contributor ranking, tie-breaking and confirmed shares
- Fastest growers from per-state series (later week of the pair reported)
- Deltas only between adjacent ISO weeks; gaps break pairs and growth runs
- The four alert flags and their threshold boundaries
- Notable-signal sentences (at most one per category)
- Thresholds loaded from Settings
"""

import numpy as np
import pytest

from surveillance.models.enums import AlertFlag, SignalCategory
from surveillance.models.schemas import CoverageReport, StateTotal
from surveillance.services.coverage import aggregate_window
from surveillance.services.signals import (
    SignalThresholds,
    adjacent_week_mask,
    detect_signals,
    evaluate_alert_flags,
    fastest_growers,
    longest_positive_run,
    notable_signals,
    top_contributors,
    week_over_week_deltas,
)
from surveillance.tests.conftest import make_row


def _signals_for(window, rows, thresholds=SignalThresholds()):
    return detect_signals(aggregate_window(*window, None, rows), thresholds)


@pytest.mark.scenario
class TestSignalScenarios:
    """Acceptance scenarios for spikes, sustained growth and gaps."""

    def test_sharp_spike_and_fastest_grower(self, january_window, spike_rows):
        report = _signals_for(january_window, spike_rows)

        assert report.alertFlags.sharpSpike is True
        growers = {g.state: g for g in report.fastestGrowers}
        assert growers['Ondo'].weekOverWeekChange == 30
        assert growers['Ondo'].week == '2024-W02'

    def test_sustained_growth(self, january_window, sustained_growth_rows):
        report = _signals_for(january_window, sustained_growth_rows)

        assert report.alertFlags.sustainedGrowth is True
        assert report.alertFlags.sharpSpike is False

    def test_gapped_window_flags_incomplete_reporting(self, january_window, gapped_rows):
        report = _signals_for(january_window, gapped_rows)

        assert report.alertFlags.incompleteReporting is True
        assert AlertFlag.INCOMPLETE_REPORTING in report.alertFlags.active()


class TestSeriesHelpers:
    """Tests for week_over_week_deltas / longest_positive_run."""

    def test_deltas(self):
        assert week_over_week_deltas([5, 10, 8]).tolist() == [5, -2]
        assert week_over_week_deltas([5]).size == 0
        assert week_over_week_deltas([]).size == 0

    def test_longest_positive_run(self):
        assert longest_positive_run(np.array([1, 2, 0, 3, 4, 5])) == 3
        assert longest_positive_run(np.array([0, -1])) == 0
        assert longest_positive_run(np.array([], dtype=np.int64)) == 0

    def test_adjacent_week_mask(self):
        assert adjacent_week_mask(['2024-W01', '2024-W02', '2024-W04']).tolist() == [True, False]
        assert adjacent_week_mask(['2020-W52', '2020-W53', '2021-W01']).tolist() == [True, True]
        assert adjacent_week_mask(['2024-W01']).size == 0


class TestTopContributors:
    """Tests for top_contributors()."""

    @pytest.fixture
    def state_totals(self):
        return [
            StateTotal(state='Bauchi', confirmed=0, suspected=40),
            StateTotal(state='Edo', confirmed=20),
            StateTotal(state='Kano', confirmed=10),
            StateTotal(state='Lagos', confirmed=50),
            StateTotal(state='Ondo', confirmed=30),
        ]

    def test_ranked_by_confirmed_descending(self, state_totals):
        ranked = top_contributors(state_totals)

        assert [c.state for c in ranked] == ['Lagos', 'Ondo', 'Edo']
        confirmed = [c.confirmed for c in ranked]
        assert confirmed == sorted(confirmed, reverse=True)

    def test_shares_use_all_qualifying_states(self, state_totals):
        ranked = top_contributors(state_totals)

        assert [c.shareOfConfirmed for c in ranked] == [0.455, 0.273, 0.182]

    def test_zero_confirmed_never_listed(self, state_totals):
        ranked = top_contributors(state_totals, limit=10)
        assert 'Bauchi' not in [c.state for c in ranked]

    def test_ties_broken_by_state_name(self):
        ranked = top_contributors([
            StateTotal(state='Ondo', confirmed=5),
            StateTotal(state='Edo', confirmed=5),
        ])
        assert [c.state for c in ranked] == ['Edo', 'Ondo']

    def test_no_confirmed_cases(self):
        assert top_contributors([StateTotal(state='Lagos', suspected=3)]) == []


class TestFastestGrowers:
    """Tests for fastest_growers()."""

    def test_ranked_by_largest_increase(self):
        series = {
            'Lagos': [('2024-W01', 1), ('2024-W02', 6), ('2024-W03', 4)],
            'Ondo': [('2024-W01', 10), ('2024-W02', 40)],
            'Edo': [('2024-W01', 0), ('2024-W02', 12)],
            'Kano': [('2024-W01', 2), ('2024-W02', 3)],
        }
        growers = fastest_growers(series)

        assert [(g.state, g.weekOverWeekChange) for g in growers] == [('Ondo', 30), ('Edo', 12), ('Lagos', 5)]

    def test_series_resorted_before_differencing(self):
        growers = fastest_growers({'Ondo': [('2024-W02', 40), ('2024-W01', 10)]})
        assert growers[0].week == '2024-W02'
        assert growers[0].weekOverWeekChange == 30

    def test_declining_or_single_week_states_skipped(self):
        series = {
            'Lagos': [('2024-W01', 9), ('2024-W02', 3)],
            'Ondo': [('2024-W01', 4)],
        }
        assert fastest_growers(series) == []

    def test_weeks_across_a_gap_are_not_compared(self):
        assert fastest_growers({'Ondo': [('2024-W01', 10), ('2024-W03', 40)]}) == []

        growers = fastest_growers({'Ondo': [('2024-W01', 10), ('2024-W03', 40), ('2024-W04', 45)]})
        assert growers[0].week == '2024-W04'
        assert growers[0].weekOverWeekChange == 5


class TestAlertFlags:
    """Boundary tests for evaluate_alert_flags()."""

    def test_incomplete_reporting_boundary(self, january_window):
        """3 of 4 weeks is exactly 0.75, which is not incomplete."""
        rows = [make_row(week, confirmed=1) for week in (1, 2, 3)]
        report = _signals_for(january_window, rows)

        assert report.alertFlags.incompleteReporting is False

    def test_no_expected_weeks_is_not_incomplete(self):
        flags = evaluate_alert_flags([], CoverageReport())
        assert flags.incompleteReporting is False
        assert flags.active() == []

    def test_spike_threshold_is_inclusive(self, january_window):
        rows = [make_row(1, confirmed=5), make_row(2, confirmed=30)]
        assert _signals_for(january_window, rows).alertFlags.sharpSpike is True

        rows = [make_row(1, confirmed=5), make_row(2, confirmed=29)]
        assert _signals_for(january_window, rows).alertFlags.sharpSpike is False

    def test_single_positive_delta_is_not_sustained(self, january_window):
        rows = [make_row(1, confirmed=1), make_row(2, confirmed=2), make_row(3, confirmed=1)]
        assert _signals_for(january_window, rows).alertFlags.sustainedGrowth is False

    def test_gap_breaks_growth_run_and_spike(self, january_window):
        rows = [make_row(1, confirmed=1), make_row(2, confirmed=5), make_row(4, confirmed=50)]
        flags = _signals_for(january_window, rows).alertFlags

        assert flags.sustainedGrowth is False
        assert flags.sharpSpike is False

    def test_elevated_deaths_sums_states(self, january_window):
        rows = [make_row(1, 'Lagos', deaths=3), make_row(1, 'Ondo', deaths=2)]
        assert _signals_for(january_window, rows).alertFlags.elevatedDeaths is True

        rows = [make_row(1, 'Lagos', deaths=4), make_row(2, 'Lagos', deaths=4)]
        assert _signals_for(january_window, rows).alertFlags.elevatedDeaths is False

    def test_custom_thresholds(self, january_window, spike_rows):
        thresholds = SignalThresholds(sharp_spike=50)
        assert _signals_for(january_window, spike_rows, thresholds).alertFlags.sharpSpike is False


class TestNotableSignals:
    """Tests for notable_signals()."""

    def test_missing_weeks_and_extremes(self, january_window):
        rows = [make_row(1, confirmed=20), make_row(2, confirmed=5), make_row(3, confirmed=12)]
        aggregate = aggregate_window(*january_window, None, rows)

        signals = notable_signals(aggregate.weekly_totals, aggregate.coverage)

        assert signals[SignalCategory.MISSING_WEEKS] == 'No data reported for 1 of 4 expected weeks: 2024-W04'
        assert signals[SignalCategory.LARGEST_INCREASE] == (
            'Largest week-over-week increase: +7 confirmed cases from 2024-W02 to 2024-W03'
        )
        assert signals[SignalCategory.LARGEST_DECREASE] == (
            'Largest week-over-week decrease: -15 confirmed cases from 2024-W01 to 2024-W02'
        )

    def test_change_across_gap_not_reported(self, january_window, gapped_rows):
        aggregate = aggregate_window(*january_window, None, gapped_rows)
        signals = notable_signals(aggregate.weekly_totals, aggregate.coverage)

        assert SignalCategory.LARGEST_INCREASE not in signals
        assert SignalCategory.LARGEST_DECREASE not in signals

    def test_fully_covered_flat_series_has_no_signals(self, first_week_window, single_week_rows):
        aggregate = aggregate_window(*first_week_window, None, single_week_rows)
        assert notable_signals(aggregate.weekly_totals, aggregate.coverage) == {}

    def test_at_most_one_signal_per_category(self, january_window, gapped_rows):
        report = _signals_for(january_window, gapped_rows)
        assert len(report.notableSignals) <= len(SignalCategory)


class TestDetectSignals:
    """Tests for detect_signals() and SignalThresholds."""

    def test_rankings_limited_to_top_n(self, january_window):
        rows = [make_row(1, state, confirmed=n) for state, n in
                [('Lagos', 4), ('Ondo', 3), ('Edo', 2), ('Kano', 1)]]
        report = _signals_for(january_window, rows, SignalThresholds(top_n=2))

        assert [c.state for c in report.topContributors] == ['Lagos', 'Ondo']
        assert isinstance(report.topContributors, tuple)

    def test_empty_window(self, january_window):
        report = _signals_for(january_window, [])

        assert report.topContributors == ()
        assert report.fastestGrowers == ()
        assert report.alertFlags.incompleteReporting is True
        assert report.notableSignals == (
            'No data reported for 4 of 4 expected weeks: 2024-W01, 2024-W02, 2024-W03, 2024-W04',
        )

    def test_thresholds_from_settings(self, default_settings):
        settings = default_settings.model_copy(update={'sharp_spike_threshold': 10, 'top_n': 5})
        thresholds = SignalThresholds.from_settings(settings)

        assert thresholds.sharp_spike == 10
        assert thresholds.top_n == 5
        assert thresholds.incomplete_coverage == 0.75
        assert thresholds == SignalThresholds(top_n=5, sharp_spike=10)
