"""Message log storage."""
