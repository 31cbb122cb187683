"""Market signal service: ingestion, activation, and distribution."""
