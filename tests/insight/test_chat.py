import pytest

from fakes import FakeAPIError
from insight import SessionState


@pytest.mark.asyncio
async def test_session_created_lazily_and_reused(context, backend):
    sessions = context.sessions
    assert sessions.state is SessionState.ABSENT

    first = await sessions.ensure_session()
    second = await sessions.ensure_session()

    assert first is second
    assert sessions.state is SessionState.BOUND
    assert len(backend.chats) == 1
    assert backend.chats[0].store_names == [first.index.name]
    assert backend.chats[0].system_instruction == context.settings.SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_refresh_replaces_the_session(context, backend):
    first = await context.sessions.ensure_session()
    second = await context.sessions.ensure_session(refresh=True)

    assert first is not second
    assert first.index == second.index
    assert context.sessions.created_count == 2


@pytest.mark.asyncio
async def test_different_index_replaces_the_session(context, backend):
    first = await context.sessions.ensure_session()
    other = await backend.create_store("other")

    second = await context.sessions.ensure_session(index=other)

    assert second is not first
    assert second.index == other
    assert await context.sessions.ensure_session(index=other) is second


@pytest.mark.asyncio
async def test_not_found_on_create_recreates_store_once(context, backend):
    await context.stores.ensure_index()
    backend.fail("create_chat", FakeAPIError(404, "store not found"))

    session = await context.sessions.ensure_session()

    assert backend.calls["create_chat"] == 2
    assert backend.calls["create_store"] == 2
    assert session.index.name in backend.stores


@pytest.mark.asyncio
async def test_not_found_with_explicit_index_is_raised(context, backend):
    stale = await backend.create_store("stale")
    del backend.stores[stale.name]

    with pytest.raises(FakeAPIError):
        await context.sessions.ensure_session(index=stale)
    assert context.sessions.state is SessionState.ABSENT


@pytest.mark.asyncio
async def test_invalidate_returns_to_absent(context):
    await context.sessions.ensure_session()

    context.sessions.invalidate()

    assert context.sessions.state is SessionState.ABSENT
    assert context.sessions.session is None
