"""HTTP API for QueryPilot."""
