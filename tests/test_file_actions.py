import os
from pathlib import Path

import pytest

from relay_automation.actions.file import ReadFileAction, WriteFileAction, parse_mode
from relay_automation.context import ExecutionContext
from relay_automation.errors import ActionError
from relay_automation.executors import LocalExecutor
from relay_automation.parameters import action_output
from relay_automation.store import ResultStore


def test_write_then_read_through_store(tmp_path: Path):
    target = tmp_path / "conf" / "app.ini"
    store = ResultStore()
    ctx = ExecutionContext(store=store)

    writer = WriteFileAction({"path": str(target), "content": "port=80\n", "mode": "0640"}, executor=LocalExecutor())
    written = writer.execute(ctx)
    assert written["changed"] is True
    assert os.stat(target).st_mode & 0o777 == 0o640

    reader = ReadFileAction({"path": action_output(writer.id, "path")}, executor=LocalExecutor())
    read = reader.execute(ctx)
    assert read["content"] == "port=80\n"
    assert store.get_action_output(reader.id)[0]["size"] == 8


def test_write_is_idempotent(tmp_path: Path):
    target = tmp_path / "motd"
    target.write_text("hello")
    output = WriteFileAction({"path": str(target), "content": "hello"}, executor=LocalExecutor()).execute()
    assert output["changed"] is False
    assert output["detail"] == "noop"


def test_write_dry_run_leaves_disk_alone(tmp_path: Path):
    target = tmp_path / "motd"
    output = WriteFileAction({"path": str(target), "content": "x"}, executor=LocalExecutor(dry_run=True)).execute()
    assert output["changed"] is True
    assert not target.exists()


def test_read_missing_file_fails(tmp_path: Path):
    with pytest.raises(ActionError, match="does not exist"):
        ReadFileAction({"path": str(tmp_path / "absent")}, executor=LocalExecutor()).execute()


def test_parse_mode():
    assert parse_mode("0644") == 0o644
    assert parse_mode(420) == 420
    assert parse_mode(None) is None
    assert parse_mode("") is None
