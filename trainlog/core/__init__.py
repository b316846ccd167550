"""
Core business logic for training progress.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. This separation means we can test the
analytics in isolation and swap storage if needed.
"""
