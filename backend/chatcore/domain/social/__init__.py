"""Friend requests, friendships and blocking."""

from chatcore.domain.social.service import RelationshipService

__all__ = ["RelationshipService"]
