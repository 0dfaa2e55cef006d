"""Direct conversations and groups."""

from chatcore.domain.conversations.service import ConversationService, ensure_direct

__all__ = ["ConversationService", "ensure_direct"]
