import pytest

from chatcore.domain import events
from chatcore.domain.errors import Blocked, NoSuchRequest, NotFound, SelfRequest


def _assert_symmetric(state):
    for user in state.users.values():
        for friend_id in user.friend_ids:
            assert user.id in state.users[friend_id].friend_ids
        assert not (user.friend_ids & user.incoming_requests)
        assert not (user.friend_ids & user.outgoing_requests)


@pytest.mark.asyncio
async def test_accepting_request_links_friends_and_opens_conversation(core, make_user, published):
    alice = await make_user("Alice")
    bob = await make_user("Bob")

    sent = await core.relationships.send_request(alice.id, bob.id)
    assert sent.value is True
    incoming = await core.relationships.list_incoming(bob.id)
    assert [u.id for u in incoming.value] == [alice.id]

    accepted = await core.relationships.accept_request(bob.id, alice.id)

    assert accepted.ok
    state = core.store.state
    assert alice.id in state.users[bob.id].friend_ids
    assert bob.id in state.users[alice.id].friend_ids
    assert not state.users[bob.id].incoming_requests
    assert not state.users[alice.id].outgoing_requests
    conversation = state.conversation_for_pair(alice.id, bob.id)
    assert conversation is not None
    assert accepted.value.conversation.id == conversation.id
    assert conversation.messages == []
    _assert_symmetric(state)

    select = [e for e in published if e.name == events.CHAT_SELECT]
    assert len(select) == 1
    assert select[0].user_ids == (bob.id,)
    assert select[0].payload["conversation_id"] == conversation.id
    updates = {e.user_ids for e in published if e.name == events.FRIEND_UPDATE and e.payload["action"] == "accepted"}
    assert updates == {(alice.id,), (bob.id,)}


@pytest.mark.asyncio
async def test_send_request_is_noop_when_pending_or_friends(core, make_user, backend):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await core.relationships.send_request(alice.id, bob.id)
    commits = backend.commits

    again = await core.relationships.send_request(alice.id, bob.id)
    reverse = await core.relationships.send_request(bob.id, alice.id)

    assert again.ok and again.value is False
    assert reverse.ok and reverse.value is False
    assert backend.commits == commits

    await core.relationships.accept_request(bob.id, alice.id)
    after_friendship = await core.relationships.send_request(alice.id, bob.id)
    assert after_friendship.value is False


@pytest.mark.asyncio
async def test_send_request_errors(core, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")

    assert isinstance((await core.relationships.send_request(alice.id, alice.id)).error, SelfRequest)
    assert isinstance((await core.relationships.send_request(alice.id, "nobody")).error, NotFound)

    await core.relationships.block(bob.id, alice.id)
    assert isinstance((await core.relationships.send_request(alice.id, bob.id)).error, Blocked)


@pytest.mark.asyncio
async def test_accept_without_request_fails(core, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")

    result = await core.relationships.accept_request(bob.id, alice.id)

    assert isinstance(result.error, NoSuchRequest)
    assert core.store.state.conversation_for_pair(alice.id, bob.id) is None


@pytest.mark.asyncio
async def test_reject_is_idempotent(core, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await core.relationships.send_request(alice.id, bob.id)

    first = await core.relationships.reject_request(bob.id, alice.id)
    second = await core.relationships.reject_request(bob.id, alice.id)

    assert first.value is True
    assert second.ok and second.value is False
    state = core.store.state
    assert not state.users[bob.id].incoming_requests
    assert not state.users[alice.id].outgoing_requests
    assert not state.users[bob.id].friend_ids


@pytest.mark.asyncio
async def test_cancel_withdraws_outgoing_request(core, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await core.relationships.send_request(alice.id, bob.id)

    result = await core.relationships.cancel_request(alice.id, bob.id)

    assert result.value is True
    assert (await core.relationships.list_outgoing(alice.id)).value == []
    assert (await core.relationships.list_incoming(bob.id)).value == []


@pytest.mark.asyncio
async def test_block_drops_friendship_and_unblock_restores_requests(core, make_user):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await core.relationships.send_request(alice.id, bob.id)
    await core.relationships.accept_request(bob.id, alice.id)

    blocked = await core.relationships.block(alice.id, bob.id)

    assert blocked.value is True
    assert (await core.relationships.list_friends(alice.id)).value == []
    assert (await core.relationships.list_friends(bob.id)).value == []
    assert [u.id for u in (await core.relationships.list_blocked(alice.id)).value] == [bob.id]
    assert isinstance((await core.relationships.block(alice.id, alice.id)).error, SelfRequest)

    assert (await core.relationships.unblock(alice.id, bob.id)).value is True
    assert (await core.relationships.unblock(alice.id, bob.id)).value is False
    assert (await core.relationships.send_request(bob.id, alice.id)).value is True
    _assert_symmetric(core.store.state)


@pytest.mark.asyncio
async def test_only_the_blocker_is_told_about_a_block(core, make_user, published):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    await core.relationships.send_request(alice.id, bob.id)
    await core.relationships.accept_request(bob.id, alice.id)
    published.clear()

    await core.relationships.block(alice.id, bob.id)
    await core.relationships.block(alice.id, carol.id)
    await core.relationships.unblock(alice.id, bob.id)

    updates = [(e.user_ids, e.payload["action"], e.payload["user_id"]) for e in published if e.name == events.FRIEND_UPDATE]
    assert updates == [
        ((alice.id,), "blocked", bob.id),
        ((bob.id,), "unfriended", alice.id),
        ((alice.id,), "blocked", carol.id),
        ((alice.id,), "unblocked", bob.id),
    ]
