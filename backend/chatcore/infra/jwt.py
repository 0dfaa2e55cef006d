"""Session token helpers.

Uses HS256 with the application's secret key. Tokens carry only the user id
(`sub`) and a session id (`sid`); profile fields are always read from the store.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from chatcore.settings import settings

ISSUER = "chatcore-api"
AUDIENCE = "chatcore-ui"


def encode_access(payload: dict[str, object], *, ttl_minutes: int | None = None) -> str:
	"""Encode an access token with required issuer/audience defaults."""
	now = int(time.time())
	ttl = settings.access_ttl_minutes if ttl_minutes is None else ttl_minutes
	body: Dict[str, Any] = {"iss": ISSUER, "aud": AUDIENCE, "iat": now, "exp": now + ttl * 60}
	body.update(payload)
	return jwt.encode(body, settings.secret_key, algorithm="HS256")


def decode_access(token: str) -> dict[str, object]:
	"""Decode and validate an access token.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	options = {"require": ["exp", "iat", "iss", "aud"]}
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=["HS256"],
		audience=AUDIENCE,
		issuer=ISSUER,
		leeway=5,
		options=options,
	)
	for k in ("sub", "sid"):
		if not payload.get(k):
			raise InvalidTokenError(f"missing_claim:{k}")
	return payload  # type: ignore[return-value]
