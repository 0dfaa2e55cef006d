"""HTTP routers for the chat core."""

from chatcore.api import auth, conversations, messages, social, users

ROUTERS = (
	auth.router,
	users.router,
	social.router,
	conversations.router,
	messages.router,
)

__all__ = ["ROUTERS"]
