from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from .base import Action, ParameterSpec
from .exec import normalize_command
from ..context import ExecutionContext
from ..errors import BuildError, CommandError, PrerequisiteNotMet
from ..ids import build_action_id

logger = logging.getLogger(__name__)


class WaitAction(Action):
    """Pause for a duration; wakes early on cancellation or deadline."""

    type_name = "wait"
    display_name = "Wait"
    PARAMETERS = (ParameterSpec("duration", "duration", required=True),)

    def default_id(self) -> str:
        duration = self.static_value("duration")
        return build_action_id("wait", str(duration) if duration is not None else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        seconds = self.resolved["duration"]
        logger.debug("action=%s waiting=%.3fs", self.id, seconds)
        ctx.wait(seconds)
        return {"waited": seconds}


class PrerequisiteCheckAction(Action):
    """Abort the enclosing task, without failing it, when a prerequisite does not hold.

    The prerequisite is either a ``command`` (exit status 0 means it holds) or,
    for actions built in code, a ``check`` callable that receives the execution
    context and returns ``True`` when it holds. An error raised by the check
    itself is an ordinary action failure.
    """

    type_name = "prerequisite_check"
    display_name = "Prerequisite Check"
    PARAMETERS = (
        ParameterSpec("description", "string", required=True),
        ParameterSpec("command", "any"),
        ParameterSpec("check", "any"),
        ParameterSpec("cwd", "string"),
    )

    @classmethod
    def _validate_parameters(cls, raw: dict[str, Any]):
        parameters = super()._validate_parameters(raw)
        if ("command" in parameters) == ("check" in parameters):
            raise BuildError(f"{cls.type_name} requires exactly one of: command, check")
        return parameters

    def default_id(self) -> str:
        description = self.static_value("description")
        return build_action_id("prerequisite-check", description if isinstance(description, str) else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        description = self.resolved["description"]
        logger.info("action=%s checking prerequisite: %s", self.id, description)
        if self._holds(ctx):
            logger.info("action=%s prerequisite met: %s", self.id, description)
            return {"met": True}
        logger.warning("action=%s prerequisite not met: %s", self.id, description)
        raise PrerequisiteNotMet(description)

    def _holds(self, ctx: ExecutionContext) -> bool:
        check = self.resolved["check"]
        if check is not None:
            if not callable(check):
                raise TypeError(f"check parameter is not callable, got {type(check).__name__}")
            return bool(check(ctx))
        cwd: Optional[Path] = Path(self.resolved["cwd"]) if self.resolved["cwd"] else None
        command = normalize_command(self.resolved["command"])
        try:
            result = self.executor.run(command, cwd=cwd, ctx=ctx, check=False, mutable=False)
        except CommandError as exc:
            logger.debug("action=%s check command could not start: %s", self.id, exc)
            return False
        return result.returncode == 0

    def build_output(self, fields=None) -> dict[str, Any]:
        output = super().build_output(fields)
        output.pop("check", None)
        return output
