"""Identity store: registration, credential checks and session tokens."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import ulid
from jwt import InvalidTokenError

from chatcore.domain.errors import CoreError, DuplicateEmail, InvalidCredential, InvalidInput, NotFound
from chatcore.domain.identity.schemas import UserProfile, UserSummary
from chatcore.domain.models import User, normalize_email
from chatcore.domain.results import OpResult
from chatcore.domain.store import ChatStore
from chatcore.infra import jwt as jwt_helper
from chatcore.infra import password
from chatcore.infra.auth import AuthenticatedUser
from chatcore.obs import metrics as obs_metrics
from chatcore.settings import optional_str

logger = logging.getLogger(__name__)


def _validate_registration(name: str, email: str, credential: str) -> None:
	if not str(name or "").strip():
		raise InvalidInput("name_required")
	normalized = normalize_email(email)
	if not normalized or "@" not in normalized:
		raise InvalidInput("email_invalid")
	if not credential:
		raise InvalidInput("credential_required")


class IdentityService:
	def __init__(self, store: ChatStore) -> None:
		self._store = store

	async def register(
		self,
		name: str,
		email: str,
		credential: str,
		image: Optional[str] = None,
	) -> OpResult[UserProfile]:
		try:
			_validate_registration(name, email, credential)
		except CoreError as exc:
			obs_metrics.inc_identity("register", exc.reason)
			return OpResult.failure(exc)

		credential_hash = await asyncio.to_thread(password.hash_password, credential)
		async with self._store.transaction() as tx:
			if tx.state.user_by_email(email) is not None:
				obs_metrics.inc_identity("register", DuplicateEmail.reason)
				return OpResult.failure(DuplicateEmail())
			user = User(
				id=str(ulid.new()),
				display_name=str(name).strip(),
				email=str(email).strip(),
				credential_hash=credential_hash,
				image=optional_str(image),
			)
			tx.state.add_user(user)
			tx.touch()
			profile = UserProfile.from_model(user)
		obs_metrics.inc_identity("register", "ok")
		logger.info("user_registered", extra={"user_id": profile.id})
		return OpResult.success(profile)

	async def authenticate(self, email: str, credential: str) -> OpResult[UserProfile]:
		"""Verify credentials.

		Unknown emails and wrong credentials produce the same error, and both
		paths run one Argon2 verification.
		"""
		async with self._store.read() as state:
			user = state.user_by_email(email)
			user_id = user.id if user else None
			stored_hash = user.credential_hash if user else None

		if user_id is None or not stored_hash:
			await asyncio.to_thread(password.burn_verification, credential or "")
			obs_metrics.inc_identity("login", "unknown_email")
			return OpResult.failure(InvalidCredential())

		valid = await asyncio.to_thread(password.verify_password, stored_hash, credential or "")
		if not valid:
			obs_metrics.inc_identity("login", "bad_credential")
			return OpResult.failure(InvalidCredential())

		if password.check_needs_rehash(stored_hash):
			upgraded = await asyncio.to_thread(password.hash_password, credential)
			async with self._store.transaction() as tx:
				current = tx.state.users.get(user_id)
				if current is not None and current.credential_hash == stored_hash:
					current.credential_hash = upgraded
					tx.touch()

		async with self._store.read() as state:
			profile = UserProfile.from_model(state.users[user_id])
		obs_metrics.inc_identity("login", "ok")
		return OpResult.success(profile)

	async def lookup(self, user_id: str) -> Optional[UserProfile]:
		async with self._store.read() as state:
			user = state.users.get(user_id)
			return UserProfile.from_model(user) if user else None

	async def lookup_by_email(self, email: str) -> Optional[UserProfile]:
		async with self._store.read() as state:
			user = state.user_by_email(email)
			return UserProfile.from_model(user) if user else None

	async def require(self, user_id: str) -> OpResult[UserProfile]:
		profile = await self.lookup(user_id)
		if profile is None:
			return OpResult.failure(NotFound("user_missing"))
		return OpResult.success(profile)

	async def list_users(self, *, exclude_id: Optional[str] = None) -> List[UserSummary]:
		async with self._store.read() as state:
			users = [u for u in state.users.values() if u.id != exclude_id]
			users.sort(key=lambda u: (u.display_name.lower(), u.id))
			return [UserSummary.from_model(u) for u in users]

	def issue_session(self, user_id: str) -> str:
		return jwt_helper.encode_access({"sub": user_id, "sid": str(ulid.new())})

	def resolve_session(self, token: str) -> OpResult[AuthenticatedUser]:
		try:
			payload = jwt_helper.decode_access(token)
		except InvalidTokenError:
			return OpResult.failure(InvalidCredential("invalid_token"))
		return OpResult.success(AuthenticatedUser(id=str(payload["sub"]), session_id=str(payload["sid"])))
