from unittest.mock import AsyncMock

import pytest
import socketio

from chatcore.domain.events import Event
from chatcore.infra import jwt as jwt_helper
from chatcore.settings import settings
from chatcore.sockets import ChatNamespace


def _namespace() -> ChatNamespace:
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = ChatNamespace()
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	namespace.enter_room = AsyncMock()
	namespace.leave_room = AsyncMock()
	return namespace


@pytest.mark.asyncio
async def test_connect_requires_identity():
	namespace = _namespace()

	with pytest.raises(ConnectionRefusedError):
		await namespace.on_connect("sid-1", {"asgi.scope": {"headers": []}})


@pytest.mark.asyncio
async def test_connect_with_token_joins_user_room():
	namespace = _namespace()
	token = jwt_helper.encode_access({"sub": "user-1", "sid": "session-1"})

	await namespace.on_connect("sid-1", {"asgi.scope": {"headers": []}}, {"token": token})

	namespace.enter_room.assert_awaited_once_with("sid-1", "user:user-1")
	assert namespace.emit.await_args.args[0] == "chat:ack"


@pytest.mark.asyncio
async def test_dev_header_only_accepted_in_dev():
	namespace = _namespace()
	environ = {"asgi.scope": {"headers": [(b"x-user-id", b"user-2")]}}

	await namespace.on_connect("sid-2", environ)
	namespace.enter_room.assert_awaited_once_with("sid-2", "user:user-2")

	settings.environment = "production"
	with pytest.raises(ConnectionRefusedError):
		await namespace.on_connect("sid-3", environ)


@pytest.mark.asyncio
async def test_deliver_fans_out_to_each_user_room():
	namespace = _namespace()

	await namespace.deliver(Event(name="message:new", user_ids=("a", "b"), payload={"x": 1}))

	rooms = [call.kwargs["room"] for call in namespace.emit.await_args_list]
	assert rooms == ["user:a", "user:b"]


@pytest.mark.asyncio
async def test_core_events_reach_socket_rooms(core, make_user):
	namespace = _namespace()
	core.bus.subscribe(namespace.deliver)
	alice = await make_user("Alice")
	bob = await make_user("Bob")

	await core.relationships.send_request(alice.id, bob.id)
	await core.relationships.accept_request(bob.id, alice.id)

	emitted = [(call.args[0], call.kwargs["room"]) for call in namespace.emit.await_args_list]
	assert ("chat:select", f"user:{bob.id}") in emitted
	assert ("friend:request", f"user:{bob.id}") in emitted
	assert ("friend:update", f"user:{alice.id}") in emitted
