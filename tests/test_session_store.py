from __future__ import annotations

import pytest

from lyria_backend.music.models import GenerationMetadata, NewMessage
from lyria_backend.services.session_store import DEFAULT_SESSION_TITLE, SessionStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _metadata(cost: float, **overrides) -> GenerationMetadata:
    values = {"duration": 30, "model": "lyria-002", "prompt": "piano", "cost": cost}
    values.update(overrides)
    return GenerationMetadata(**values)


@pytest.mark.anyio
async def test_create_and_get_session() -> None:
    store = SessionStore()

    session = await store.create_session()

    assert session.title == DEFAULT_SESSION_TITLE
    assert session.messages == ()
    assert session.total_cost == 0
    assert await store.get(session.id) == session


@pytest.mark.anyio
async def test_list_all_is_newest_first() -> None:
    store = SessionStore()
    first = await store.create_session("first")
    second = await store.create_session("second")
    third = await store.create_session("third")

    listed = await store.list_all()

    assert [s.id for s in listed] == [third.id, second.id, first.id]


@pytest.mark.anyio
async def test_delete_is_idempotent() -> None:
    store = SessionStore()
    session = await store.create_session()

    await store.delete(session.id)
    await store.delete(session.id)
    await store.delete("never-existed")

    assert await store.get(session.id) is None


@pytest.mark.anyio
async def test_append_to_unknown_session_returns_none() -> None:
    store = SessionStore()

    result = await store.append_message(
        "missing", NewMessage(role="user", content="hello")
    )

    assert result is None


@pytest.mark.anyio
async def test_append_assigns_id_and_timestamp() -> None:
    store = SessionStore()
    session = await store.create_session()

    updated = await store.append_message(
        session.id, NewMessage(role="user", content="make a waltz")
    )
    assert updated is not None
    updated = await store.append_message(
        session.id, NewMessage(role="user", content="slower please")
    )
    assert updated is not None

    first, second = updated.messages
    assert first.id and second.id and first.id != second.id
    assert first.timestamp <= second.timestamp
    assert [m.content for m in updated.messages] == ["make a waltz", "slower please"]


@pytest.mark.anyio
async def test_running_cost_tracks_assistant_metadata() -> None:
    store = SessionStore()
    session = await store.create_session()

    await store.append_message(
        session.id,
        NewMessage(role="assistant", content="one", metadata=_metadata(0.16)),
    )
    await store.append_message(
        session.id,
        NewMessage(role="user", content="ignored cost", metadata=_metadata(5.0)),
    )
    await store.append_message(
        session.id, NewMessage(role="assistant", content="no metadata")
    )
    await store.append_message(
        session.id,
        NewMessage(role="assistant", content="two", metadata=_metadata(0.08)),
    )

    reread = await store.get(session.id)
    reread_again = await store.get(session.id)

    assert reread is not None
    assert reread.total_cost == pytest.approx(0.24)
    assert reread_again == reread


@pytest.mark.anyio
async def test_snapshots_are_not_affected_by_later_appends() -> None:
    store = SessionStore()
    session = await store.create_session()
    snapshot = await store.append_message(
        session.id, NewMessage(role="user", content="first")
    )

    await store.append_message(
        session.id,
        NewMessage(role="assistant", content="second", metadata=_metadata(0.08)),
    )

    assert snapshot is not None
    assert len(snapshot.messages) == 1
    assert snapshot.total_cost == 0
    assert session.messages == ()


@pytest.mark.anyio
async def test_get_message() -> None:
    store = SessionStore()
    session = await store.create_session()
    updated = await store.append_message(
        session.id, NewMessage(role="user", content="hi")
    )
    assert updated is not None
    message_id = updated.messages[0].id

    assert (await store.get_message(session.id, message_id)).content == "hi"
    assert await store.get_message(session.id, "nope") is None
    assert await store.get_message("nope", message_id) is None
