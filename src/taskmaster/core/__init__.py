"""Task lifecycle, scheduling and plan ingestion."""
