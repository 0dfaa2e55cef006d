import asyncio

import pytest

from chatcore.core import ChatCore
from chatcore.domain.errors import StorageError
from chatcore.infra import password
from chatcore.infra.persistence import MemoryBackend


class FlakyBackend(MemoryBackend):
    """Memory backend whose commits can be switched to fail."""

    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.fail = False

    async def commit(self, snapshot):
        if self.fail:
            raise ConnectionError("backend down")
        await super().commit(snapshot)


class SlowBackend(MemoryBackend):
    """Memory backend whose commits take `delay` seconds."""

    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.delay = 0.0

    async def commit(self, snapshot):
        await asyncio.sleep(self.delay)
        await super().commit(snapshot)


class BrokenLoadBackend(MemoryBackend):
    async def load(self):
        raise ValueError("corrupt")


def _legacy_snapshot():
    return {
        "users": [
            {
                "id": "u1",
                "name": "Alice",
                "email": "alice@example.com",
                "password": "plaintext",
                "friends": ["u2", "ghost"],
                "pendingRequests": [],
                "sentRequests": [],
                "groups": [],
                "createdAt": 1700000000000,
            },
            {
                "id": "u2",
                "name": "Bob",
                "email": "bob@example.com",
                "password": "letmein",
                "friends": ["u1"],
                "groups": [],
                "createdAt": 1700000000000,
            },
        ],
        "conversations": [
            {
                "id": "c1",
                "participants": ["u1", "u2"],
                "messages": [
                    {
                        "id": "m1",
                        "senderId": "u1",
                        "content": "first",
                        "timestamp": 1700000001000,
                        "readBy": ["u1"],
                        "reactions": [{"emoji": "👍", "count": 7, "users": ["u2"]}],
                    }
                ],
                "lastActivity": 1700000001000,
            },
            {
                "id": "c2",
                "participants": ["u2", "u1"],
                "messages": [
                    {"id": "m2", "senderId": "u2", "content": "second", "timestamp": 1700000002000, "readBy": ["u2"]}
                ],
                "lastActivity": 1700000002000,
            },
            {"id": "broken", "participants": ["u1"], "messages": []},
        ],
        "groups": [
            {"id": "g1", "name": "Team", "creatorId": "u1", "admins": [], "members": ["u2"], "messages": []},
        ],
    }


@pytest.mark.asyncio
async def test_commit_failure_rolls_back_state():
    backend = FlakyBackend()
    core = ChatCore(backend)
    await core.start()
    alice = (await core.identity.register("Alice", "alice@example.com", "pw")).unwrap()

    backend.fail = True
    with pytest.raises(StorageError):
        await core.identity.register("Bob", "bob@example.com", "pw")

    assert list(core.store.state.users) == [alice.id]
    assert core.store.state.user_by_email("bob@example.com") is None

    backend.fail = False
    assert (await core.identity.register("Bob", "bob@example.com", "pw")).ok


@pytest.mark.asyncio
async def test_corrupt_snapshot_loads_empty():
    core = ChatCore(BrokenLoadBackend())

    await core.start()

    assert core.store.state.users == {}
    assert (await core.identity.register("Alice", "alice@example.com", "pw")).ok


@pytest.mark.asyncio
async def test_legacy_snapshot_is_migrated_and_repaired():
    backend = MemoryBackend(_legacy_snapshot())
    core = ChatCore(backend)

    await core.start()

    state = core.store.state
    alice = state.users["u1"]
    assert password.looks_hashed(alice.credential_hash)
    assert (await core.identity.authenticate("alice@example.com", "plaintext")).ok
    assert alice.friend_ids == {"u2"}
    assert alice.group_ids == {"g1"}

    # duplicate pair conversations collapse onto the first, in time order
    assert list(state.conversations) == ["c1"]
    merged = state.conversations["c1"]
    assert [m.id for m in merged.messages] == ["m1", "m2"]
    assert [m.seq for m in merged.messages] == [1, 2]
    assert merged.messages[0].reaction_counts() == {"👍": 1}

    group = state.groups["g1"]
    assert group.admins == {"u1"}
    assert group.members == {"u1", "u2"}

    # the repaired state was written back without plaintext credentials
    reloaded = await backend.load()
    assert all("password" not in record for record in reloaded["users"])
    assert len(reloaded["conversations"]) == 1


@pytest.mark.asyncio
async def test_state_survives_restart():
    backend = MemoryBackend()
    async with ChatCore(backend) as first:
        alice = (await first.identity.register("Alice", "alice@example.com", "pw")).unwrap()
        bob = (await first.identity.register("Bob", "bob@example.com", "pw")).unwrap()
        await first.relationships.send_request(alice.id, bob.id)
        accepted = (await first.relationships.accept_request(bob.id, alice.id)).unwrap()
        await first.messages.append(accepted.conversation.id, alice.id, "hello")

    async with ChatCore(backend) as second:
        page = (await second.messages.list_since(accepted.conversation.id, bob.id)).unwrap()
        friends = (await second.relationships.list_friends(alice.id)).unwrap()

    assert [m.content for m in page.items] == ["hello"]
    assert [f.id for f in friends] == [bob.id]


@pytest.mark.asyncio
async def test_cancelled_commit_leaves_no_visible_message():
    backend = SlowBackend()
    core = ChatCore(backend)
    await core.start()
    alice = (await core.identity.register("Alice", "alice@example.com", "pw")).unwrap()
    bob = (await core.identity.register("Bob", "bob@example.com", "pw")).unwrap()
    conversation = (await core.conversations.get_or_create_direct(alice.id, bob.id)).unwrap()

    backend.delay = 0.5
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(core.messages.append(conversation.id, alice.id, "ghost"), 0.1)

    backend.delay = 0.0
    page = (await core.messages.list_since(conversation.id, bob.id)).unwrap()
    assert page.items == []

    # the next unrelated write must not make the cancelled message durable
    await core.identity.register("Carol", "carol@example.com", "pw")
    persisted = await backend.load()
    assert [c["messages"] for c in persisted["conversations"]] == [[]]


@pytest.mark.asyncio
async def test_non_record_entries_are_skipped_on_load():
    snapshot = _legacy_snapshot()
    snapshot["users"].append("garbage")
    snapshot["conversations"][0]["messages"].append(42)
    snapshot["conversations"][0]["messages"][0]["reactions"].append("🔥")
    snapshot["groups"].insert(0, ["not", "a", "group"])
    backend = MemoryBackend(snapshot)
    core = ChatCore(backend)

    await core.start()

    state = core.store.state
    assert set(state.users) == {"u1", "u2"}
    assert [m.id for m in state.conversations["c1"].messages] == ["m1", "m2"]
    assert state.conversations["c1"].messages[0].reaction_counts() == {"👍": 1}
    assert list(state.groups) == ["g1"]

    await core.identity.register("Carol", "carol@example.com", "pw")
    persisted = await backend.load()
    assert {"u1", "u2"} <= {record["id"] for record in persisted["users"]}
