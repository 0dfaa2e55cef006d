"""Domain services and the in-memory store."""
