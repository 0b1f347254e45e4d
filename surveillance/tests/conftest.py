"""
Pytest Configuration and Shared Fixtures for the Surveillance Engine Tests.

This module provides fixtures and helpers shared by all test modules:
- make_row(): raw row builder matching the persistence adapter's output
- Scenario row fixtures (single week, gapped month, spike, sustained growth)
- A fake async row fetcher recording the years it was asked for
- Mock asyncpg pool fixtures for testing core.database without a server
- Settings fixture with the default thresholds

Raw rows use the engine field names (isoYear/isoWeek/state) unless a test is
specifically about the source table aliases (full_year/week/states).

Calendar anchors used throughout:
- 2024-01-01 is a Monday, so 2024-W01 spans 2024-01-01..2024-01-07
- 2024-01-01..2024-01-28 covers exactly 2024-W01..2024-W04
- 2020 is a long ISO year (53 weeks); 2024 is not
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set
from unittest.mock import AsyncMock, Mock

import pytest

from surveillance.core.config import Settings


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - scenario: acceptance scenarios over a full window
    """
    config.addinivalue_line(
        'markers',
        'scenario: end-to-end acceptance scenarios over a full report window'
    )


# ============================================================
# ROW HELPERS
# ============================================================

def make_row(
    week: int,
    state: str = 'Lagos',
    suspected: Any = 0,
    confirmed: Any = 0,
    deaths: Any = 0,
    year: int = 2024
) -> Dict[str, Any]:
    """
    Build one raw weekly row.

    Args:
        week: ISO week number.
        state: State name.
        suspected: Suspected count (any type, the ingestor coerces).
        confirmed: Confirmed count.
        deaths: Deaths count.
        year: ISO year.

    Returns:
        Dict shaped like a raw persistence row.
    """
    return {
        'isoYear': year,
        'isoWeek': week,
        'state': state,
        'suspected': suspected,
        'confirmed': confirmed,
        'deaths': deaths,
    }


# ============================================================
# WINDOW FIXTURES
# ============================================================

@pytest.fixture
def first_week_window() -> tuple:
    """Exactly 2024-W01."""
    return date(2024, 1, 1), date(2024, 1, 7)


@pytest.fixture
def january_window() -> tuple:
    """2024-W01..2024-W04 (28 days)."""
    return date(2024, 1, 1), date(2024, 1, 28)


# ============================================================
# SCENARIO ROW FIXTURES
# ============================================================

@pytest.fixture
def single_week_rows() -> List[Dict[str, Any]]:
    """One Lagos row in 2024-W01."""
    return [make_row(1, 'Lagos', suspected=10, confirmed=2, deaths=0)]


@pytest.fixture
def gapped_rows() -> List[Dict[str, Any]]:
    """Data for weeks 1 and 3 of January 2024 only."""
    return [
        make_row(1, 'Lagos', suspected=12, confirmed=4, deaths=1),
        make_row(1, 'Ondo', suspected=8, confirmed=3, deaths=0),
        make_row(3, 'Lagos', suspected=9, confirmed=2, deaths=0),
    ]


@pytest.fixture
def spike_rows() -> List[Dict[str, Any]]:
    """Ondo confirmed goes 10 -> 40 across 2024-W01 and 2024-W02."""
    return [
        make_row(1, 'Ondo', suspected=30, confirmed=10, deaths=1),
        make_row(2, 'Ondo', suspected=70, confirmed=40, deaths=2),
    ]


@pytest.fixture
def sustained_growth_rows() -> List[Dict[str, Any]]:
    """Global confirmed 5 -> 10 -> 20 over three weeks, split across states."""
    return [
        make_row(1, 'Lagos', confirmed=3),
        make_row(1, 'Edo', confirmed=2),
        make_row(2, 'Lagos', confirmed=6),
        make_row(2, 'Edo', confirmed=4),
        make_row(3, 'Lagos', confirmed=12),
        make_row(3, 'Edo', confirmed=8),
    ]


# ============================================================
# FETCHER FIXTURES
# ============================================================

class FakeFetcher:
    """
    In-memory async row source.

    Returns the rows whose isoYear is among the requested years and records
    every call as (years, states).
    """

    def __init__(self, rows: List[Dict[str, Any]], error: Optional[Exception] = None):
        self.rows = rows
        self.error = error
        self.calls: List[tuple] = []

    async def __call__(self, years: Set[int], states: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        self.calls.append((set(years), states))
        if self.error is not None:
            raise self.error
        return [row for row in self.rows if row['isoYear'] in years]


@pytest.fixture
def fake_fetcher_factory() -> Callable[..., FakeFetcher]:
    """
    Factory for FakeFetcher instances.

    Usage:
        fetcher = fake_fetcher_factory(rows)
        fetcher = fake_fetcher_factory([], error=RuntimeError("down"))
    """
    return FakeFetcher


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_connection() -> AsyncMock:
    """Mock asyncpg connection whose fetch() returns no rows by default."""
    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    return conn


@pytest.fixture
def mock_db_pool(mock_db_connection: AsyncMock) -> AsyncMock:
    """
    Mock asyncpg pool.

    pool.acquire() returns an async context manager yielding
    mock_db_connection, mirroring asyncpg.Pool usage in core.database.
    """
    pool = AsyncMock()

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=mock_db_connection)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.close = AsyncMock(return_value=None)

    return pool


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def default_settings() -> Settings:
    """Settings with default thresholds, independent of the environment."""
    return Settings(
        database_url=None,
        source_table='lassa_data',
        log_level='INFO',
        max_range_days=732,
        top_n=3,
        incomplete_coverage_threshold=0.75,
        sustained_growth_weeks=2,
        sharp_spike_threshold=25,
        elevated_deaths_threshold=5,
    )
