"""Shared helpers for blueprints."""
