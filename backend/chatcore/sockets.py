"""Socket.IO namespace that fans core events out to per-user rooms."""

from __future__ import annotations

from typing import Dict, Optional

import socketio
from jwt import InvalidTokenError

from chatcore.domain.events import Event
from chatcore.infra import jwt as jwt_helper
from chatcore.infra.auth import AuthenticatedUser
from chatcore.obs import metrics as obs_metrics
from chatcore.settings import settings


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def _resolve_user(environ: dict, auth: Optional[dict]) -> Optional[AuthenticatedUser]:
	scope = environ.get("asgi.scope", environ)
	payload = auth or environ.get("auth") or scope.get("auth") or {}
	token = payload.get("token")
	if token:
		try:
			claims = jwt_helper.decode_access(str(token))
		except InvalidTokenError:
			return None
		return AuthenticatedUser(id=str(claims["sub"]), session_id=str(claims["sid"]))
	if settings.is_dev():
		user_id = payload.get("userId") or _header(scope, "x-user-id")
		if user_id:
			return AuthenticatedUser(id=str(user_id))
	return None


class ChatNamespace(socketio.AsyncNamespace):
	"""Places each connection in ``user:{id}`` and relays bus events there."""

	def __init__(self) -> None:
		super().__init__("/chat")
		self._sessions: Dict[str, AuthenticatedUser] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_event(self.namespace, "connect")
		user = _resolve_user(environ, auth)
		if user is None:
			raise ConnectionRefusedError("unauthenticated")
		self._sessions[sid] = user
		await self.enter_room(sid, self.user_room(user.id))
		await self.emit("chat:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		obs_metrics.socket_event(self.namespace, "disconnect")
		user = self._sessions.pop(sid, None)
		if user:
			await self.leave_room(sid, self.user_room(user.id))

	async def deliver(self, event: Event) -> None:
		"""Event bus listener."""
		obs_metrics.socket_event(self.namespace, event.name)
		for user_id in event.user_ids:
			await self.emit(event.name, event.payload, room=self.user_room(user_id))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"
