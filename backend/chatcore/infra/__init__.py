"""Infrastructure adapters: persistence, credentials, tokens."""
