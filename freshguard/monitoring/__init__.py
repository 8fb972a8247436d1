"""Check engine: domain model, check algorithms and backend connectors."""
