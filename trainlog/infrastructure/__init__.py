"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Entry persistence
- auth: Bearer token verification

These wrappers translate between external formats and our domain models.
"""
