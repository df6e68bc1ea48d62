import pytest

from relay_automation.actions.system import ManageServiceAction, ServiceStatusAction, parse_show_output
from relay_automation.errors import ActionError
from relay_automation.executors import CommandResult, Executor


class FakeSystemCtl:
    def __init__(self, enabled: bool = False, active: bool = False):
        self.enabled = enabled
        self.active = active
        self.actions: list[str] = []

    def is_enabled(self, executor, service: str, ctx=None) -> bool:  # noqa: ARG002
        return self.enabled

    def is_active(self, executor, service: str, ctx=None) -> bool:  # noqa: ARG002
        return self.active

    def change(self, executor, verb: str, service: str, ctx=None) -> None:  # noqa: ARG002
        self.actions.append(verb)


class DummyExecutor(Executor):
    def __init__(self, responses=None):
        super().__init__()
        self.responses = responses or {}
        self.calls: list[list[str]] = []

    def _execute(self, command, *, cwd, ctx, env):  # noqa: ARG002
        self.calls.append(command)
        stdout, rc = self.responses.get(command[-1], ("", 0))
        return CommandResult(command, stdout, "", rc)


def test_service_enable_and_start():
    action = ManageServiceAction({"service": "sshd", "enabled": True, "state": "running"}, executor=DummyExecutor())
    fake = FakeSystemCtl(enabled=False, active=False)
    action.systemctl = fake
    output = action.execute()

    assert output["changed"] is True
    assert output["changes"] == ["enabled", "started"]
    assert fake.actions == ["enable", "start"]
    assert action.id == "service-sshd-action"


def test_service_restart_only():
    action = ManageServiceAction({"service": "cron", "restart": "true"}, executor=DummyExecutor())
    fake = FakeSystemCtl(enabled=True, active=True)
    action.systemctl = fake
    output = action.execute()

    assert output["changes"] == ["restarted"]
    assert fake.actions == ["restart"]


def test_service_no_changes_returns_noop():
    action = ManageServiceAction({"service": "sshd", "enabled": True, "state": "running"}, executor=DummyExecutor())
    action.systemctl = FakeSystemCtl(enabled=True, active=True)
    output = action.execute()

    assert output["changed"] is False
    assert output["changes"] == []


def test_service_rejects_unknown_state():
    action = ManageServiceAction({"service": "sshd", "state": "paused"}, executor=DummyExecutor())
    action.systemctl = FakeSystemCtl()
    with pytest.raises(ActionError, match="running' or 'stopped"):
        action.execute()


def test_service_status_parses_show_output():
    show = "\n".join(
        [
            "LoadState=loaded",
            "ActiveState=active",
            "SubState=running",
            "Description=OpenSSH server daemon",
            "FragmentPath=/usr/lib/systemd/system/sshd.service",
            "Vendor=",
            "UnitFileState=enabled",
        ]
    )
    executor = DummyExecutor({"sshd": (show, 0), "ghost": ("LoadState=not-found\n", 0)})
    output = ServiceStatusAction({"services": "sshd ghost"}, executor=executor).execute()

    assert output["count"] == 2
    sshd, ghost = output["statuses"]
    assert sshd["exists"] is True
    assert sshd["active"] == "active"
    assert sshd["enabled"] == "enabled"
    assert ghost == {"name": "ghost", "exists": False}
    assert executor.calls[0][:2] == ["systemctl", "show"]


def test_parse_show_output_keeps_equals_in_values():
    assert parse_show_output("Description=a=b\nnoise\n") == {"Description": "a=b"}
