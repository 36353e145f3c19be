"""Core cross-cutting definitions (exception hierarchy)."""
