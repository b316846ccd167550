"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .entries import EntryRepository

__all__ = ["EntryRepository"]
