"""Fetch collaborators for external services."""
