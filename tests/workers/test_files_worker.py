import pytest

from agentpilot.core.types import ActionRequest
from agentpilot.workers.files import FilesWorker


def _req(operation, **params):
    return ActionRequest(
        type="files",
        operation=operation,
        params=params,
        session_id="s1",
        channel_type="cli",
        channel_id="direct",
        user_id="me",
    )


@pytest.mark.asyncio
async def test_write_read_list_move_delete(tmp_path):
    worker = FilesWorker(tmp_path)

    written = await worker.execute(_req("write_file", path="docs/a.txt", content="hello"))
    assert written.success is True
    assert (tmp_path / "docs" / "a.txt").read_text(encoding="utf-8") == "hello"

    read = await worker.execute(_req("read_file", path="docs/a.txt"))
    assert read.data["content"] == "hello"
    assert read.data["truncated"] is False

    listed = await worker.execute(_req("list_files", path="docs"))
    assert listed.data["entries"] == [{"name": "a.txt", "type": "file"}]

    moved = await worker.execute(_req("move_file", source="docs/a.txt", destination="b.txt"))
    assert moved.success is True
    assert (tmp_path / "b.txt").exists()

    deleted = await worker.execute(_req("delete_file", path="b.txt"))
    assert deleted.data["deleted"] is True
    assert not (tmp_path / "b.txt").exists()


@pytest.mark.asyncio
async def test_missing_files(tmp_path):
    worker = FilesWorker(tmp_path)

    assert (await worker.execute(_req("read_file", path="nope.txt"))).error == "File not found: nope.txt"
    assert (await worker.execute(_req("delete_file", path="nope.txt"))).error == "File not found: nope.txt"
    assert (await worker.execute(_req("read_file"))).error == "Missing path"


@pytest.mark.asyncio
async def test_refuses_to_delete_directories(tmp_path):
    (tmp_path / "sub").mkdir()
    worker = FilesWorker(tmp_path)

    result = await worker.execute(_req("delete_file", path="sub"))

    assert result.error == "Refusing to delete directory: sub"
    assert (tmp_path / "sub").is_dir()


@pytest.mark.asyncio
async def test_workspace_restriction(tmp_path):
    workspace = tmp_path / "ws"
    outside = tmp_path / "secret.txt"
    outside.write_text("top secret", encoding="utf-8")
    worker = FilesWorker(workspace, restrict_to_workspace=True)

    absolute = await worker.execute(_req("read_file", path=str(outside)))
    traversal = await worker.execute(_req("read_file", path="../secret.txt"))

    assert absolute.success is False
    assert "outside the workspace" in absolute.error
    assert traversal.success is False
    assert "outside the workspace" in traversal.error
