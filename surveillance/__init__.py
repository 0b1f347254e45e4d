"""
Lassa Surveillance Engine Package.

Coverage and signal-detection aggregation engine behind the Lassa fever
surveillance dashboard. Turns irregular per-state weekly case counts into a
calendar-complete coverage report, ranked contributor/growth signals and
alert flags, shaped into one payload for the narrative report generator.

Subpackages:
    - core: Configuration, persistence adapter, and exceptions
    - models: Pydantic schemas and enums
    - services: Stateless aggregation services
    - tests: Pytest suite
"""

__version__ = "1.0.0"
