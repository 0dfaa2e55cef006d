"""Chat core: identity, relationships, conversations and messages."""
