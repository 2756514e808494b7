import asyncio

import pytest

from fakes import FakeAPIError
from insight import ConfigurationError, SessionState
from schema import Citation, UploadableFile


def report() -> UploadableFile:
    return UploadableFile.from_bytes("report.pdf", b"%PDF-1.7\nquarterly numbers")


@pytest.mark.asyncio
async def test_added_files_become_active_and_refresh_session(context, backend):
    [doc] = await context.files.add_files([report()])

    assert doc.status == "active"
    assert context.files.active_count == 1
    assert not context.files.is_uploading
    assert context.sessions.state is SessionState.BOUND
    assert len(backend.chats) == 1


@pytest.mark.asyncio
async def test_list_keeps_insertion_order_and_mixed_outcomes(context):
    files = [
        UploadableFile.from_bytes("a.txt", b"alpha"),
        UploadableFile.from_bytes("b.exe", b"MZ binary"),
        UploadableFile.from_bytes("c.csv", b"x,y\n1,2"),
    ]

    results = await context.files.add_files(files)

    assert [r.status for r in results] == ["active", "error", "active"]
    assert [f.name for f in context.files.files] == ["a.txt", "b.exe", "c.csv"]
    assert context.files.active_count == 2


@pytest.mark.asyncio
async def test_is_uploading_while_queue_is_processed(context):
    observed = []

    def on_update(doc: UploadableFile) -> None:
        observed.append((doc.status, context.files.is_uploading))

    await context.files.add_files([report()], on_update)

    assert ("processing", True) in observed
    assert context.files.is_uploading is False


@pytest.mark.asyncio
async def test_finished_files_drop_their_bytes(context):
    [doc] = await context.files.add_files([report()])

    stored = context.files.get(doc.id)
    assert stored.content is None
    assert stored.status == "active"


@pytest.mark.asyncio
async def test_failed_batch_does_not_touch_session(context, backend):
    backend.fail("upload_file", FakeAPIError(400, "bad"))

    [doc] = await context.files.add_files([report()])

    assert doc.status == "error"
    assert context.sessions.state is SessionState.ABSENT
    assert backend.chats == []


@pytest.mark.asyncio
async def test_missing_key_adds_nothing(context):
    context.credentials.clear()

    with pytest.raises(ConfigurationError):
        await context.files.add_files([report()])
    assert context.files.files == []


@pytest.mark.asyncio
async def test_remove_deletes_remote_copies_and_invalidates_session(context, backend):
    [doc] = await context.files.add_files([report()])

    removed = await context.files.remove_file(doc.id)

    assert removed.id == doc.id
    assert context.files.get(doc.id) is None
    assert doc.document_ref not in backend.documents
    assert doc.remote_ref not in backend.uploaded
    assert context.sessions.state is SessionState.ABSENT


@pytest.mark.asyncio
async def test_remove_tolerates_remote_failures(context, backend):
    [doc] = await context.files.add_files([report()])
    backend.fail("delete_document", FakeAPIError(500, "down"))
    backend.fail("delete_file", FakeAPIError(403, "forbidden"))

    removed = await context.files.remove_file(doc.id)

    assert removed is not None
    assert context.files.files == []
    assert context.sessions.state is SessionState.ABSENT


@pytest.mark.asyncio
async def test_remove_unknown_file_returns_none(context, backend):
    assert await context.files.remove_file("missing") is None
    assert backend.calls["delete_file"] == 0


@pytest.mark.asyncio
async def test_resolve_by_reference_then_by_title(context):
    [doc] = await context.files.add_files([report()])

    by_uri = context.files.resolve(Citation(kind="document", uri=doc.document_ref))
    by_title = context.files.resolve(Citation(kind="document", title="report.pdf"))
    unknown = context.files.resolve(Citation(kind="document", title="other.pdf"))

    assert by_uri.id == doc.id
    assert by_title.id == doc.id
    assert unknown is None


@pytest.mark.asyncio
async def test_file_removed_while_indexing_is_deleted_remotely(context, backend):
    backend.create_store_gate = asyncio.Event()
    doc = report()
    task = asyncio.create_task(context.files.add_files([doc]))
    for _ in range(100):
        if backend.calls["create_store"]:
            break
        await asyncio.sleep(0)
    assert context.files.get(doc.id).status == "processing"

    await context.files.remove_file(doc.id)
    backend.create_store_gate.set()
    [result] = await task

    assert result.status == "active"
    assert context.files.files == []
    assert backend.uploaded == {}
    assert backend.documents == {}
    assert context.sessions.state is SessionState.ABSENT
    assert backend.chats == []


@pytest.mark.asyncio
async def test_session_refresh_failure_keeps_per_file_results(context, backend):
    backend.fail("get_store", *[FakeAPIError(503) for _ in range(4)])

    [doc] = await context.files.add_files([report()])

    assert doc.status == "active"
    assert context.files.get(doc.id).status == "active"
    assert context.sessions.state is SessionState.ABSENT

    text = await context.relay.send("hi", lambda chunk, grounding: None)

    assert text == "Hello world"
    assert len(backend.chats) == 1
