"""
Surveillance engine test suite.

Tests run with pytest and pytest-asyncio and never require a live database:
the asyncpg pool is replaced with unittest.mock objects and the row source of
generate_report_metrics is an in-memory fake fetcher.
"""
