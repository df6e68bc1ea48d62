from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .base import Action, ParameterSpec
from ..context import ExecutionContext
from ..ids import build_action_id, digest_parts

logger = logging.getLogger(__name__)

DOCKER = "docker"


def _working_dir(value: Optional[str]) -> Optional[str]:
    return value or None


def parse_json_records(text: str) -> list[dict[str, Any]]:
    """Parse ``--format json`` output: a JSON array or one object per line."""

    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        payload = json.loads(stripped)
        return [item for item in payload if isinstance(item, dict)]
    records: list[dict[str, Any]] = []
    for line in stripped.splitlines():
        line = line.strip()
        if not line:
            continue
        item = json.loads(line)
        if isinstance(item, dict):
            records.append(item)
    return records


class ComposeUpAction(Action):
    """Start compose services in the background."""

    type_name = "docker_compose_up"
    display_name = "Docker Compose Up"
    PARAMETERS = (
        ParameterSpec("services", "string_list", default=[]),
        ParameterSpec("working_dir", "string", default=""),
    )

    def default_id(self) -> str:
        services = self.static_value("services")
        if services is None and "services" in self.parameters:
            # Late-bound service list; identity comes from the reference itself.
            return build_action_id("docker-compose-up", digest_parts([repr(self.parameters["services"])]))
        if isinstance(services, str):
            services = services.replace(",", " ").split()
        if not services:
            return "docker-compose-up-all-action"
        return build_action_id("docker-compose-up", digest_parts(services))

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        services = self.resolved["services"]
        workdir = _working_dir(self.resolved["working_dir"])
        logger.info("compose=up services=%s cwd=%s", ",".join(services) or "all", workdir or ".")
        result = self.executor.run([DOCKER, "compose", "up", "-d", *services], cwd=workdir, ctx=ctx)
        return {"output": result.output}


class ComposeDownAction(Action):
    type_name = "docker_compose_down"
    display_name = "Docker Compose Down"
    PARAMETERS = (
        ParameterSpec("services", "string_list", default=[]),
        ParameterSpec("working_dir", "string", default=""),
        ParameterSpec("remove_volumes", "bool", default=False),
    )

    def default_id(self) -> str:
        services = self.static_value("services")
        if services is None and "services" in self.parameters:
            return build_action_id("docker-compose-down", digest_parts([repr(self.parameters["services"])]))
        if isinstance(services, str):
            services = services.replace(",", " ").split()
        if not services:
            return build_action_id("docker-compose-down", "all")
        return build_action_id("docker-compose-down", digest_parts(services))

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        command = [DOCKER, "compose", "down"]
        if self.resolved["remove_volumes"]:
            command.append("--volumes")
        command.extend(self.resolved["services"])
        result = self.executor.run(command, cwd=_working_dir(self.resolved["working_dir"]), ctx=ctx)
        return {"output": result.output}


class ComposePsAction(Action):
    """List compose containers, parsed from the JSON formatter."""

    type_name = "docker_compose_ps"
    display_name = "Docker Compose PS"
    PARAMETERS = (
        ParameterSpec("services", "string_list", default=[]),
        ParameterSpec("all", "bool", default=False),
        ParameterSpec("working_dir", "string", default=""),
    )

    def default_id(self) -> str:
        return "docker-compose-ps-action"

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        command = [DOCKER, "compose", "ps", "--format", "json"]
        if self.resolved["all"]:
            command.append("--all")
        command.extend(self.resolved["services"])
        result = self.executor.run(
            command, cwd=_working_dir(self.resolved["working_dir"]), ctx=ctx, mutable=False
        )
        containers = [
            {
                "name": record.get("Name", ""),
                "image": record.get("Image", ""),
                "service": record.get("Service", ""),
                "state": record.get("State", ""),
                "status": record.get("Status", ""),
                "ports": record.get("Ports", ""),
            }
            for record in parse_json_records(result.stdout)
        ]
        return {
            "containers": containers,
            "count": len(containers),
            "running": sorted(c["service"] for c in containers if c["state"] == "running"),
            "output": result.output,
        }


class ComposeLsAction(Action):
    type_name = "docker_compose_ls"
    display_name = "Docker Compose LS"
    PARAMETERS = (
        ParameterSpec("all", "bool", default=False),
        ParameterSpec("filter", "string", default=""),
        ParameterSpec("working_dir", "string", default=""),
    )

    def default_id(self) -> str:
        return "docker-compose-ls-action"

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        command = [DOCKER, "compose", "ls", "--format", "json"]
        if self.resolved["all"]:
            command.append("--all")
        if self.resolved["filter"]:
            command.extend(["--filter", self.resolved["filter"]])
        result = self.executor.run(
            command, cwd=_working_dir(self.resolved["working_dir"]), ctx=ctx, mutable=False
        )
        stacks = [
            {
                "name": record.get("Name", ""),
                "status": record.get("Status", ""),
                "config_files": record.get("ConfigFiles", ""),
            }
            for record in parse_json_records(result.stdout)
        ]
        return {"stacks": stacks, "count": len(stacks), "output": result.output}


class ComposeExecAction(Action):
    """Run a command inside a compose service container."""

    type_name = "docker_compose_exec"
    display_name = "Docker Compose Exec"
    PARAMETERS = (
        ParameterSpec("service", "string", required=True),
        ParameterSpec("command", "string_list", required=True),
        ParameterSpec("working_dir", "string", default=""),
    )

    def default_id(self) -> str:
        service = self.static_value("service")
        return build_action_id("docker-compose-exec", service if isinstance(service, str) else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        service = self.resolved["service"]
        if not service:
            raise ValueError("compose exec requires a service name")
        if not self.resolved["command"]:
            raise ValueError("compose exec requires a command")
        command = [DOCKER, "compose", "exec", "-T", service, *self.resolved["command"]]
        result = self.executor.run(command, cwd=_working_dir(self.resolved["working_dir"]), ctx=ctx)
        return {"output": result.output, "returncode": result.returncode}
