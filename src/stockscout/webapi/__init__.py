"""HTTP API for the Stock Scout dashboard."""
