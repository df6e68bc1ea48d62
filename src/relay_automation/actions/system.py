from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .base import Action, ParameterSpec
from ..context import ExecutionContext
from ..executors import Executor
from ..ids import build_action_id

logger = logging.getLogger(__name__)

STATUS_PROPERTIES = (
    "LoadState",
    "ActiveState",
    "SubState",
    "Description",
    "FragmentPath",
    "Vendor",
    "UnitFileState",
)


@dataclass
class SystemCtl:
    executable: str = "systemctl"

    def is_enabled(self, executor: Executor, service: str, ctx: Optional[ExecutionContext] = None) -> bool:
        result = executor.run([self.executable, "is-enabled", service], ctx=ctx, check=False, mutable=False)
        return result.returncode == 0

    def is_active(self, executor: Executor, service: str, ctx: Optional[ExecutionContext] = None) -> bool:
        result = executor.run([self.executable, "is-active", service], ctx=ctx, check=False, mutable=False)
        return result.returncode == 0

    def change(self, executor: Executor, verb: str, service: str, ctx: Optional[ExecutionContext] = None) -> None:
        executor.run([self.executable, verb, service], ctx=ctx)

    def show(self, executor: Executor, service: str, ctx: Optional[ExecutionContext] = None) -> dict[str, str]:
        result = executor.run(
            [self.executable, "show", "--property=" + ",".join(STATUS_PROPERTIES), service],
            ctx=ctx,
            check=False,
            mutable=False,
        )
        if result.returncode != 0:
            return {}
        return parse_show_output(result.stdout)


def parse_show_output(text: str) -> dict[str, str]:
    properties: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep:
            properties[key] = value
    return properties


class ManageServiceAction(Action):
    """Converge a systemd service's enablement and run state."""

    type_name = "service"
    display_name = "Manage Service"
    PARAMETERS = (
        ParameterSpec("service", "string", required=True),
        ParameterSpec("enabled", "bool"),
        ParameterSpec("state", "string"),
        ParameterSpec("restart", "bool", default=False),
    )

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.systemctl = SystemCtl()

    def default_id(self) -> str:
        service = self.static_value("service")
        return build_action_id("service", service if isinstance(service, str) else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        service = self.resolved["service"]
        if not service:
            raise ValueError("service action requires a service name")
        state = self.resolved["state"]
        if state not in {None, "running", "stopped"}:
            raise ValueError("service state must be 'running' or 'stopped'")

        changes: list[str] = []
        enabled = self.resolved["enabled"]
        if enabled is not None:
            currently_enabled = self.systemctl.is_enabled(self.executor, service, ctx)
            if enabled and not currently_enabled:
                logger.debug("service=%s enabling", service)
                self.systemctl.change(self.executor, "enable", service, ctx)
                changes.append("enabled")
            elif not enabled and currently_enabled:
                logger.debug("service=%s disabling", service)
                self.systemctl.change(self.executor, "disable", service, ctx)
                changes.append("disabled")

        if state is not None:
            active = self.systemctl.is_active(self.executor, service, ctx)
            if state == "running" and not active:
                logger.debug("service=%s starting", service)
                self.systemctl.change(self.executor, "start", service, ctx)
                changes.append("started")
            elif state == "stopped" and active:
                logger.debug("service=%s stopping", service)
                self.systemctl.change(self.executor, "stop", service, ctx)
                changes.append("stopped")

        if self.resolved["restart"]:
            logger.debug("service=%s restarting", service)
            self.systemctl.change(self.executor, "restart", service, ctx)
            changes.append("restarted")

        return {"changed": bool(changes), "changes": changes}


class ServiceStatusAction(Action):
    type_name = "service_status"
    display_name = "Service Status"
    PARAMETERS = (ParameterSpec("services", "string_list", required=True),)

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.systemctl = SystemCtl()

    def default_id(self) -> str:
        return "service-status-action"

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        names = self.resolved["services"]
        if not names:
            raise ValueError("service status requires at least one service name")
        statuses = [self._status(name, ctx) for name in names]
        return {"statuses": statuses, "count": len(statuses)}

    def _status(self, name: str, ctx: ExecutionContext) -> dict[str, Any]:
        props = self.systemctl.show(self.executor, name, ctx)
        load_state = props.get("LoadState", "")
        if not props or load_state == "not-found":
            logger.warning("service=%s not found", name)
            return {"name": name, "exists": False}
        return {
            "name": name,
            "exists": True,
            "loaded": load_state,
            "active": props.get("ActiveState", ""),
            "sub": props.get("SubState", ""),
            "description": props.get("Description", ""),
            "path": props.get("FragmentPath", ""),
            "vendor": props.get("Vendor", ""),
            "enabled": props.get("UnitFileState", ""),
        }
