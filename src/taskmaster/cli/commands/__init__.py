"""Command implementations registered on the root app."""
