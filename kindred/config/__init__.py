"""Configuration for kindred."""
