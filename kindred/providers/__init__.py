"""Completion providers."""
