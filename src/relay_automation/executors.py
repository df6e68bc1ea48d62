from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence, Union
import logging
import os
import stat
import subprocess

from .errors import CommandError, ExecutionCancelled

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: list[str]
    stdout: str
    stderr: str
    returncode: int

    @property
    def output(self) -> str:
        """Combined, trimmed stdout and stderr."""

        parts = [text.strip() for text in (self.stdout, self.stderr) if text and text.strip()]
        return "\n".join(parts)


class Executor:
    """Base command-execution interface injected into every action."""

    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Union[str, Path]] = None,
        ctx: Optional["ExecutionContext"] = None,
        check: bool = True,
        mutable: bool = True,
        env: Optional[dict[str, str]] = None,
    ) -> CommandResult:
        """Run ``command`` and optionally skip it during dry-runs.

        Raises :class:`CommandError` for a non-zero exit when ``check`` is set
        and :class:`ExecutionCancelled` when ``ctx`` is cancelled or expires
        while the command is running.
        """

        cmd_list = [str(part) for part in command]
        if self.dry_run and mutable:
            return CommandResult(cmd_list, "", "skipped (dry-run)", 0)
        if ctx is not None:
            ctx.check()

        result = self._execute(cmd_list, cwd=cwd, ctx=ctx, env=env)
        if check and result.returncode != 0:
            raise CommandError(cmd_list, result.returncode, result.output)
        return result

    def _execute(
        self,
        command: list[str],
        *,
        cwd: Optional[Union[str, Path]],
        ctx: Optional["ExecutionContext"],
        env: Optional[dict[str, str]],
    ) -> CommandResult:
        raise NotImplementedError

    # File primitives -----------------------------------------------------
    def read_file(self, path: Path) -> Optional[str]:
        raise NotImplementedError

    def write_file(self, path: Path, *, content: str, mode: Optional[int]) -> tuple[bool, str]:
        raise NotImplementedError


class LocalExecutor(Executor):
    """Executor that acts directly on the local host."""

    poll_interval = 0.05

    def _execute(
        self,
        command: list[str],
        *,
        cwd: Optional[Union[str, Path]],
        ctx: Optional["ExecutionContext"],
        env: Optional[dict[str, str]],
    ) -> CommandResult:
        exec_env = None
        if env:
            exec_env = os.environ.copy()
            exec_env.update(env)

        try:
            proc = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=exec_env,
                cwd=str(cwd) if cwd is not None else None,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
            raise CommandError(command, 127, str(exc)) from exc

        if ctx is None:
            stdout, stderr = proc.communicate()
            return CommandResult(command, stdout, stderr, proc.returncode)

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                reason = ctx.reason()
                if reason is None:
                    continue
                logger.debug("killing pid=%s reason=%s cmd=%s", proc.pid, reason, " ".join(command))
                proc.kill()
                stdout, stderr = proc.communicate()
                partial = CommandResult(command, stdout, stderr, proc.returncode)
                raise ExecutionCancelled(reason, output=partial.output) from None
        return CommandResult(command, stdout, stderr, proc.returncode)

    def read_file(self, path: Path) -> Optional[str]:
        try:
            return path.read_text()
        except FileNotFoundError:
            return None

    def write_file(self, path: Path, *, content: str, mode: Optional[int]) -> tuple[bool, str]:
        current = self.read_file(path)
        changed = False
        reasons: list[str] = []

        if current != content:
            changed = True
            reasons.append("content")
            if not self.dry_run:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content)

        if mode is not None:
            existing_mode = self._file_mode(path)
            if existing_mode != mode:
                changed = True
                reasons.append(f"mode->{mode:04o}")
                if not self.dry_run:
                    # ``chmod`` fails if the file is absent, so guard it.
                    if path.exists():
                        os.chmod(path, mode)
        detail = ", ".join(reasons) if reasons else "noop"
        return changed, detail

    @staticmethod
    def _file_mode(path: Path) -> Optional[int]:
        try:
            return stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            return None
