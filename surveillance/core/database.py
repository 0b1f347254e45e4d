"""
Async PostgreSQL adapter for the weekly case-count table.

This module is the persistence collaborator of the engine: it owns the asyncpg
connection pool and returns raw case rows for a set of ISO years. The engine
itself never imports asyncpg; it only consumes the rows returned here.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool
- fetch_case_rows(): Year-scoped fetch of raw weekly rows

Connection Pool Configuration:
- min_size: 1
- max_size: 5
- command_timeout: 60 seconds

Failure Handling:
    Driver and network errors are re-raised as FetchError. No retry is
    attempted here; callers decide whether to try again.

Usage:
    pool = await get_db_pool()
    rows = await fetch_case_rows({2024, 2025}, states=["Lagos"])
    await close_db()
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import asyncpg
from asyncpg import Pool

from surveillance.core.config import get_settings
from surveillance.core.exceptions import FetchError


logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        FetchError: If DATABASE_URL is not configured or the connection fails.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        if not settings.database_url:
            raise FetchError("DATABASE_URL is not configured")

        try:
            _pool = await asyncpg.create_pool(
                dsn=settings.database_url,
                min_size=1,
                max_size=5,
                command_timeout=60,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to create database pool: {e}")
            raise FetchError(f"Could not connect to database: {e}") from e

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Idempotent - calling it when the pool is not initialized has no effect.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Case Row Fetch
# =============================================================================

def build_case_rows_query(
    table: str,
    filter_states: bool
) -> str:
    """
    Build the year-scoped case row query.

    The aggregate 'Total' pseudo-state is excluded here as well, although the
    ingestor excludes it again regardless of what the table returns.

    Args:
        table: Source table name from settings.
        filter_states: Whether to add the $2 state list predicate.

    Returns:
        SQL string with $1 (int[] years) and optionally $2 (text[] states).
    """
    query = f"""
        SELECT
            full_year,
            week,
            states,
            suspected,
            confirmed,
            deaths
        FROM {table}
        WHERE full_year = ANY($1::int[])
          AND states <> 'Total'
    """

    if filter_states:
        query += " AND states = ANY($2::text[])"

    query += " ORDER BY full_year, week, states"

    return query


async def fetch_case_rows(
    years: Iterable[int],
    states: Optional[Sequence[str]] = None
) -> List[Dict[str, Any]]:
    """
    Fetch raw weekly case rows for a set of ISO years.

    The result is intentionally wider than any requested window: the caller
    re-checks each row's week against its own date range.

    Args:
        years: ISO years to fetch.
        states: Optional explicit state names. None or empty means all states.

    Returns:
        List of dicts keyed by the table's column names
        (full_year, week, states, suspected, confirmed, deaths).

    Raises:
        FetchError: If the pool cannot be created or the query fails.
    """
    year_list = sorted({int(y) for y in years})
    if not year_list:
        return []

    settings = get_settings()
    state_list = [s for s in (states or []) if s]
    query = build_case_rows_query(settings.source_table, bool(state_list))

    params: List[Any] = [year_list]
    if state_list:
        params.append(state_list)

    pool = await get_db_pool()

    try:
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"Case row fetch failed for years={year_list}: {e}")
        raise FetchError(f"Failed to fetch case rows: {e}") from e

    logger.info(f"Fetched {len(rows)} case rows for years={year_list}")
    return [dict(row) for row in rows]
