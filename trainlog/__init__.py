"""
TrainLog - activity logging and progress analytics for athletes.

This package contains the complete application:
- core: Framework-agnostic entry model, pace, aggregation and streak logic
- infrastructure: Snowflake persistence and bearer token verification
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
