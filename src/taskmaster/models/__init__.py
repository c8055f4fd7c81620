"""Pydantic models for the task store, context log and CLI output."""
