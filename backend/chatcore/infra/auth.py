"""Authentication helpers for FastAPI endpoints.

Sessions carry only the user id and a session id. Profile fields are read
from the store on demand, never cached on the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chatcore.infra import jwt as jwt_helper
from chatcore.obs import logging as obs_logging
from chatcore.settings import settings


@dataclass(slots=True, frozen=True)
class AuthenticatedUser:
	id: str
	session_id: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None
	sub = str(payload.get("sub") or "").strip()
	if not sub:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return AuthenticatedUser(id=sub, session_id=str(payload.get("sid")))


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development a bare X-User-Id header is accepted; everywhere else a
	valid Bearer token is required.
	"""
	user: AuthenticatedUser | None = None
	if credentials and credentials.scheme.lower() == "bearer":
		user = verify_access_jwt(credentials.credentials)
	elif settings.is_dev() and x_user_id:
		user = AuthenticatedUser(id=x_user_id)
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	obs_logging.bind_context(user_id=user.id)
	return user
