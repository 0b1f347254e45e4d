"""
Core infrastructure package for the surveillance engine.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL adapter for the case-count table via asyncpg
- Exception types shared by services and the CLI

Usage Examples:
    from surveillance.core import get_settings, fetch_case_rows, FetchError

    settings = get_settings()
    rows = await fetch_case_rows({2024})
"""

from surveillance.core.config import Settings, get_settings

from surveillance.core.database import (
    init_db,
    close_db,
    get_db_pool,
    fetch_case_rows,
)

from surveillance.core.exceptions import (
    InvalidRangeError,
    FetchError,
    InconsistentMetricsError,
)

__all__ = [
    'Settings',
    'get_settings',
    'init_db',
    'close_db',
    'get_db_pool',
    'fetch_case_rows',
    'InvalidRangeError',
    'FetchError',
    'InconsistentMetricsError',
]
