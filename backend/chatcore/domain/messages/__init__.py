"""Per-container message log."""

from chatcore.domain.messages.service import MessageService

__all__ = ["MessageService"]
