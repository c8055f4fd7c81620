"""Utility functions - paths, config, locks, time parsing, console output."""
