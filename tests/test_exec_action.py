from pathlib import Path
from typing import Optional

import pytest

from relay_automation.actions.exec import ExecAction
from relay_automation.errors import ActionError, CommandError
from relay_automation.executors import CommandResult, Executor


class RecordingExecutor(Executor):
    def __init__(self, results: Optional[dict[str, CommandResult]] = None, *, dry_run: bool = False):
        super().__init__(dry_run=dry_run)
        self.results = results or {}
        self.calls: list[tuple[list[str], bool, object]] = []

    def run(self, command, *, cwd=None, ctx=None, check=True, mutable=True, env=None):  # noqa: ARG002
        self.calls.append((list(command), mutable, cwd))
        return super().run(command, cwd=cwd, ctx=ctx, check=check, mutable=mutable, env=env)

    def _execute(self, command, *, cwd, ctx, env):  # noqa: ARG002
        key = command[-1]
        if key in self.results:
            return self.results[key]
        return CommandResult(command, "", "", 0)


def test_exec_runs_shell_command():
    executor = RecordingExecutor({"echo hi": CommandResult(["sh"], "hi\n", "", 0)})
    output = ExecAction({"command": "echo hi"}, executor=executor).execute()

    assert executor.calls == [(["sh", "-c", "echo hi"], True, None)]
    assert output["returncode"] == 0
    assert output["stdout"] == "hi"
    assert output["skipped"] is False


def test_exec_skips_when_creates_exists(tmp_path: Path):
    marker = tmp_path / "done"
    marker.write_text("x")
    executor = RecordingExecutor()
    output = ExecAction({"command": "touch done", "creates": "done", "cwd": str(tmp_path)}, executor=executor).execute()

    assert executor.calls == []
    assert output["skipped"] is True
    assert "creates" in output["reason"]


def test_exec_only_if_guard_blocks_run():
    executor = RecordingExecutor({"test -f /nope": CommandResult(["sh"], "", "", 1)})
    output = ExecAction({"command": "rm -rf /tmp/x", "only_if": "test -f /nope"}, executor=executor).execute()

    assert output["skipped"] is True
    assert output["reason"] == "only_if rc=1"
    assert executor.calls[0][1] is False
    assert len(executor.calls) == 1


def test_exec_unless_guard_blocks_run():
    executor = RecordingExecutor()
    output = ExecAction({"command": ["make", "install"], "unless": ["true"]}, executor=executor).execute()
    assert output["reason"] == "unless rc=0"


def test_exec_unexpected_returncode_fails():
    executor = RecordingExecutor({"false": CommandResult(["sh"], "", "bad things\nmore", 3)})
    with pytest.raises(ActionError) as info:
        ExecAction({"command": "false"}, executor=executor).execute()
    cause = info.value.__cause__
    assert isinstance(cause, CommandError)
    assert cause.returncode == 3
    assert cause.output == "bad things"


def test_exec_allows_listed_returncodes():
    executor = RecordingExecutor({"grep": CommandResult(["grep"], "", "", 1)})
    output = ExecAction({"command": ["grep"], "returns": [0, 1]}, executor=executor).execute()
    assert output["returncode"] == 1


def test_exec_env_list_is_parsed():
    assert ExecAction._normalize_env(["A=1", "B=x=y"]) == {"A": "1", "B": "x=y"}
    with pytest.raises(ValueError):
        ExecAction._normalize_env(["broken"])


def test_exec_default_id_uses_program_name():
    action = ExecAction({"command": ["/usr/bin/make", "install"]}, executor=RecordingExecutor())
    assert action.id == "exec-make-action"
