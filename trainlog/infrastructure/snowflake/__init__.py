"""Snowflake persistence: connections, the in-memory mock and repositories."""
