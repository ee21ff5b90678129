"""Core graph, record and build-state types."""
