"""User records, credentials and session tokens."""

from chatcore.domain.identity.service import IdentityService

__all__ = ["IdentityService"]
