"""Tests for the markdown notes worker."""

import pytest

from agentpilot.core.types import ActionRequest
from agentpilot.workers.notes import NotesWorker


def _req(operation, **params):
    return ActionRequest(
        type="notes",
        operation=operation,
        params=params,
        session_id="s1",
        channel_type="cli",
        channel_id="direct",
        user_id="me",
    )


@pytest.fixture
def worker(tmp_path):
    return NotesWorker(tmp_path / "notes")


@pytest.mark.asyncio
async def test_create_writes_header_and_content(worker):
    result = await worker.execute(_req("create_note", name="shopping list", content="- milk"))

    assert result.success is True
    path = worker.notes_dir / "shopping_list.md"
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# shopping list\n_Created: ")
    assert text.endswith("_\n\n- milk")
    assert result.data["path"] == str(path)


@pytest.mark.asyncio
async def test_append_adds_separator(worker):
    await worker.execute(_req("create_note", name="log", content="first"))

    result = await worker.execute(_req("append_note", name="log", content="second"))

    assert result.success is True
    text = (worker.notes_dir / "log.md").read_text(encoding="utf-8")
    assert "first\n\n---\n_Updated: " in text
    assert text.endswith("second")


@pytest.mark.asyncio
async def test_append_and_read_missing_note(worker):
    appended = await worker.execute(_req("append_note", name="ghost", content="x"))
    read = await worker.execute(_req("read_note", name="ghost"))

    assert appended.error == 'Note "ghost" not found'
    assert read.error == 'Note "ghost" not found'


@pytest.mark.asyncio
async def test_missing_parameters(worker):
    assert (await worker.execute(_req("create_note", name="x"))).error == "Missing name or content"
    assert (await worker.execute(_req("read_note"))).error == "Missing note name"
    assert (await worker.execute(_req("search_notes", query="  "))).error == "Missing search query"


@pytest.mark.asyncio
async def test_list_and_search(worker):
    await worker.execute(_req("create_note", name="b", content="Buy tomatoes at the market"))
    await worker.execute(_req("create_note", name="a", content="Call the plumber"))

    listed = await worker.execute(_req("list_notes"))
    found = await worker.execute(_req("search_notes", query="TOMATOES"))

    assert listed.data == {"notes": ["a", "b"], "count": 2}
    assert found.data["count"] == 1
    assert found.data["matches"][0]["name"] == "b"
    assert "tomatoes" in found.data["matches"][0]["preview"]
    assert found.data["matches"][0]["preview"].startswith("...")


def test_sanitize_name():
    assert NotesWorker.sanitize_name("../etc/passwd") == "___etc_passwd"
    assert len(NotesWorker.sanitize_name("x" * 300)) == 100


@pytest.mark.asyncio
async def test_unknown_operation(worker):
    result = await worker.execute(_req("delete_note", name="a"))
    assert result.error == "Unknown operation: delete_note"
