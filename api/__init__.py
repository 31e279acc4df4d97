"""HTTP layer for the AI/GEO Audit API."""
