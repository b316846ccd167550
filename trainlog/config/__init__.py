"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults,
including the reference time zone the analytics use for calendar days.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
