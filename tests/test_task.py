import pytest

from relay_automation.actions.base import Action, ActionState, ParameterSpec
from relay_automation.actions.utility import PrerequisiteCheckAction
from relay_automation.context import ExecutionContext
from relay_automation.errors import (
    BuildError,
    ExecutionCancelled,
    OutputNotFoundError,
    OutputNotMappingError,
    PrerequisiteNotMet,
    TaskAborted,
    TaskError,
)
from relay_automation.executors import Executor
from relay_automation.parameters import action_output, task_output
from relay_automation.store import ResultStore
from relay_automation.task import Task


class NullExecutor(Executor):
    def _execute(self, command, *, cwd, ctx, env):  # noqa: ARG002
        raise AssertionError("no commands expected")


class PrepareAction(Action):
    """Publishes a working directory for later actions."""

    type_name = "prepare"
    PARAMETERS = (ParameterSpec("dir", "string", required=True),)

    def run(self, ctx):  # noqa: ARG002
        return {"workingDir": self.resolved["dir"]}


class UseDirAction(Action):
    type_name = "use_dir"
    PARAMETERS = (ParameterSpec("working_dir", "string", required=True),)

    def run(self, ctx):  # noqa: ARG002
        return {"used": self.resolved["working_dir"]}


class BareOutputAction(Action):
    type_name = "bare"

    def build_output(self, fields=None):  # noqa: ARG002
        return "just text"

    def run(self, ctx):  # noqa: ARG002
        return None


class TimeBoxedAction(Action):
    type_name = "boxed"

    def run(self, ctx):
        ctx.child(timeout=0.01).wait(5)
        return {}


def make(cls, params, action_id):
    return cls(params, action_id=action_id, executor=NullExecutor())


def test_second_action_reads_first_actions_output():
    store = ResultStore()
    first = make(PrepareAction, {"dir": "/tmp/x"}, "prepare")
    second = make(UseDirAction, {"working_dir": action_output("prepare", "workingDir")}, "use")
    task = Task("deploy", "Deploy", [first, second])

    output = task.run(ExecutionContext(store=store))

    assert second.resolved["working_dir"] == "/tmp/x"
    assert output["success"] is True
    assert output["completed_actions"] == 2
    assert output["action_outputs"]["use"]["used"] == "/tmp/x"
    assert store.get_task_output("deploy")[0] is output
    assert store.get_action_output("prepare")[0]["workingDir"] == "/tmp/x"


def test_missing_reference_fails_task_without_publishing():
    store = ResultStore()
    action = make(UseDirAction, {"working_dir": action_output("ghost", "workingDir")}, "use")
    task = Task("deploy", actions=[action])

    with pytest.raises(TaskError) as info:
        task.run(ExecutionContext(store=store))

    assert "ghost" in str(info.value)
    assert "not found" in str(info.value)
    assert isinstance(info.value.__cause__, OutputNotFoundError)
    assert info.value.action_id == "use"
    assert store.snapshot() == {}
    assert task.output is None


def test_non_mapping_output_cannot_be_projected_later():
    store = ResultStore()
    bare = make(BareOutputAction, {}, "bare")
    reader = make(UseDirAction, {"working_dir": action_output("bare", "dir")}, "reader")

    with pytest.raises(TaskError) as info:
        Task("t", actions=[bare, reader]).run(ExecutionContext(store=store))

    assert isinstance(info.value.__cause__, OutputNotMappingError)
    assert "output is not a map" in str(info.value)
    assert store.get_action_output("bare") == ("just text", True)


def test_failure_stops_remaining_actions():
    failing = make(UseDirAction, {"working_dir": action_output("ghost", "x")}, "first")
    never = make(PrepareAction, {"dir": "/tmp"}, "second")
    task = Task("t", actions=[failing, never])

    with pytest.raises(TaskError):
        task.run()

    assert failing.state == ActionState.FAILED
    assert never.state == ActionState.UNRESOLVED
    assert task.completed_actions == 0


def test_result_builder_is_merged_into_task_output():
    def builder(ctx, outputs):  # noqa: ARG001
        return {"workingDir": outputs["prepare"]["workingDir"]}

    store = ResultStore()
    task = Task("setup", actions=[make(PrepareAction, {"dir": "/srv"}, "prepare")], result_builder=builder)
    task.run(ExecutionContext(store=store))

    assert task_output("setup", "workingDir").resolve(store) == "/srv"


def test_cancelled_context_raises_unmodified():
    ctx = ExecutionContext(store=ResultStore())
    ctx.cancel()
    task = Task("t", actions=[make(PrepareAction, {"dir": "/srv"}, "prepare")])
    with pytest.raises(ExecutionCancelled):
        task.run(ctx)
    assert ctx.store.snapshot() == {}


def test_context_without_store_gets_one():
    task = Task("t", actions=[make(PrepareAction, {"dir": "/srv"}, "prepare")])
    output = task.run(ExecutionContext())
    assert output["action_outputs"]["prepare"]["workingDir"] == "/srv"


def test_progress_hook_sees_each_action():
    seen = []
    actions = [make(PrepareAction, {"dir": "/a"}, "a"), make(PrepareAction, {"dir": "/b"}, "b")]
    Task("t", actions=actions, on_action_start=lambda task, action: seen.append((task.id, action.id))).run()
    assert seen == [("t", "a"), ("t", "b")]


def test_task_requires_identifier():
    with pytest.raises(BuildError):
        Task("")


def test_add_action_appends_in_order():
    task = Task("build").add_action(make(PrepareAction, {"dir": "/srv"}, "prepare"))
    task.add_action(make(UseDirAction, {"working_dir": action_output("prepare", "workingDir")}, "use"))

    output = task.run()

    assert [a.id for a in task.actions] == ["prepare", "use"]
    assert output["completed_actions"] == 2
    assert output["action_outputs"]["use"]["used"] == "/srv"


def test_action_deadline_fails_task_instead_of_cancelling_it():
    store = ResultStore()
    task = Task("t", actions=[make(TimeBoxedAction, {}, "boxed"), make(PrepareAction, {"dir": "/srv"}, "after")])

    with pytest.raises(TaskError) as info:
        task.run(ExecutionContext(store=store))

    assert isinstance(info.value.__cause__, ExecutionCancelled)
    assert info.value.__cause__.deadline_exceeded
    assert info.value.action_id == "boxed"
    assert not store.has("task", "t")


def test_unmet_prerequisite_aborts_task():
    store = ResultStore()
    gate = make(PrerequisiteCheckAction, {"description": "disk mounted", "check": lambda ctx: False}, "gate")
    after = make(PrepareAction, {"dir": "/srv"}, "after")
    task = Task("t", actions=[make(PrepareAction, {"dir": "/tmp"}, "before"), gate, after])

    with pytest.raises(TaskAborted) as info:
        task.run(ExecutionContext(store=store))

    assert isinstance(info.value, TaskError)
    assert isinstance(info.value.__cause__, PrerequisiteNotMet)
    assert str(info.value) == "task 't' aborted: prerequisite not met in action 'gate'"
    assert task.completed_actions == 1
    assert after.state == ActionState.UNRESOLVED
    assert not store.has("task", "t")
    assert not store.has("action", "gate")
    assert store.has("action", "before")


def test_met_prerequisite_lets_task_continue():
    seen = []

    def check(ctx):
        seen.append(ctx.task_id)
        return True

    gate = make(PrerequisiteCheckAction, {"description": "always", "check": check}, "gate")
    output = Task("t", actions=[gate, make(PrepareAction, {"dir": "/srv"}, "after")]).run()

    assert seen == ["t"]
    assert output["completed_actions"] == 2
    assert output["action_outputs"]["gate"]["met"] is True
    assert "check" not in output["action_outputs"]["gate"]


def test_prerequisite_check_error_is_a_failure_not_an_abort():
    def check(ctx):  # noqa: ARG001
        raise RuntimeError("sensor offline")

    gate = make(PrerequisiteCheckAction, {"description": "flaky", "check": check}, "gate")
    with pytest.raises(TaskError) as info:
        Task("t", actions=[gate]).run()
    assert not isinstance(info.value, TaskAborted)
    assert "sensor offline" in str(info.value)
