"""Persistence for the task store and the context log."""
