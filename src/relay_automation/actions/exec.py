from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .base import Action, ParameterSpec
from ..context import ExecutionContext
from ..errors import CommandError
from ..executors import CommandResult
from ..ids import build_action_id


def normalize_command(value: Any) -> list[str]:
    """Strings run through ``sh -c``; sequences are passed as argv."""

    if isinstance(value, str):
        return ["sh", "-c", value]
    if isinstance(value, Sequence) and value:
        return [str(v) for v in value]
    raise ValueError("exec command must be a string or non-empty list")


class ExecAction(Action):
    """Run arbitrary commands with simple guards, mirroring Puppet's exec."""

    type_name = "exec"
    display_name = "Exec"
    PARAMETERS = (
        ParameterSpec("command", "any", required=True),
        ParameterSpec("only_if", "any"),
        ParameterSpec("unless", "any"),
        ParameterSpec("creates", "string"),
        ParameterSpec("cwd", "string"),
        ParameterSpec("env", "any"),
        ParameterSpec("returns", "any", default=[0]),
        ParameterSpec("timeout", "duration"),
    )

    def default_id(self) -> str:
        command = self.static_value("command")
        if isinstance(command, str):
            label = command.split()[0] if command.split() else ""
        elif isinstance(command, Sequence) and command:
            label = Path(str(command[0])).name
        else:
            label = ""
        return build_action_id("exec", label)

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:
        command = normalize_command(self.resolved["command"])
        cwd = Path(self.resolved["cwd"]) if self.resolved["cwd"] else None
        env = self._normalize_env(self.resolved["env"])
        allowed = self._normalize_returns(self.resolved["returns"])
        if self.resolved["timeout"] is not None:
            ctx = ctx.child(timeout=self.resolved["timeout"])

        if self.resolved["creates"]:
            creates_path = self._resolve_path(Path(self.resolved["creates"]), cwd)
            if creates_path.exists():
                return {"skipped": True, "reason": f"creates {creates_path}"}

        if self.resolved["only_if"] is not None:
            guard = self._run_guard(normalize_command(self.resolved["only_if"]), ctx, cwd, env)
            if guard.returncode != 0:
                return {"skipped": True, "reason": f"only_if rc={guard.returncode}"}

        if self.resolved["unless"] is not None:
            guard = self._run_guard(normalize_command(self.resolved["unless"]), ctx, cwd, env)
            if guard.returncode == 0:
                return {"skipped": True, "reason": f"unless rc={guard.returncode}"}

        result = self.executor.run(command, check=False, mutable=True, env=env, cwd=cwd, ctx=ctx)
        if result.returncode not in allowed:
            raise CommandError(command, result.returncode, self._summarize_output(result) or "")

        return {
            "skipped": False,
            "returncode": result.returncode,
            "stdout": result.stdout.strip(),
            "stderr": result.stderr.strip(),
            "output": result.output,
        }

    def _run_guard(
        self,
        command: list[str],
        ctx: ExecutionContext,
        cwd: Optional[Path],
        env: Optional[dict[str, str]],
    ) -> CommandResult:
        return self.executor.run(command, check=False, mutable=False, env=env, cwd=cwd, ctx=ctx)

    @staticmethod
    def _resolve_path(path: Path, cwd: Optional[Path]) -> Path:
        if path.is_absolute() or cwd is None:
            return path
        return cwd / path

    @staticmethod
    def _normalize_env(value: Any) -> Optional[dict[str, str]]:
        if value is None:
            return None
        if isinstance(value, Mapping):
            return {str(k): str(v) for k, v in value.items()}
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            env: dict[str, str] = {}
            for item in value:
                key, sep, val = str(item).partition("=")
                if not sep:
                    raise ValueError("env list entries must be KEY=VALUE")
                env[key] = val
            return env
        raise ValueError("exec env must be a mapping or list of KEY=VALUE strings")

    @staticmethod
    def _normalize_returns(value: Any) -> list[int]:
        if value is None:
            return [0]
        if isinstance(value, int) and not isinstance(value, bool):
            return [value]
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            return [int(v) for v in value]
        raise ValueError("exec returns must be an int or list of ints")

    @staticmethod
    def _summarize_output(result: CommandResult) -> Optional[str]:
        for text in (result.stderr, result.stdout):
            if not text:
                continue
            stripped = text.strip()
            if not stripped:
                continue
            line = stripped.splitlines()[0]
            return (line[:157] + "...") if len(line) > 160 else line
        return None
