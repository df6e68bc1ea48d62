from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional

from .actions.base import Action
from .context import ExecutionContext
from .errors import BuildError, ExecutionCancelled, PrerequisiteNotMet, TaskAborted, TaskError
from .store import ResultStore

logger = logging.getLogger(__name__)

ResultBuilder = Callable[[ExecutionContext, Mapping[str, Any]], Mapping[str, Any]]


class Task:
    """Ordered actions sharing one result store.

    Actions run in declaration order and each one sees the outputs of the
    siblings before it. The aggregate output is published under the task id
    only after every action succeeded.
    """

    def __init__(
        self,
        task_id: str,
        name: Optional[str] = None,
        actions: Optional[Iterable[Action]] = None,
        *,
        result_builder: Optional[ResultBuilder] = None,
        on_action_start: Optional[Callable[["Task", Action], None]] = None,
    ):
        if not task_id:
            raise BuildError("task identifier cannot be empty")
        self.id = task_id
        self.name = name or task_id
        self.actions: list[Action] = list(actions or [])
        self.result_builder = result_builder
        self.on_action_start = on_action_start
        self.run_id: Optional[str] = None
        self.duration: Optional[float] = None
        self.completed_actions = 0
        self.output: Optional[dict[str, Any]] = None

    def add_action(self, action: Action) -> "Task":
        self.actions.append(action)
        return self

    def run(self, ctx: Optional[ExecutionContext] = None) -> dict[str, Any]:
        if ctx is None:
            ctx = ExecutionContext()
        store = ctx.store
        if store is None:
            store = ResultStore()
        ctx = ctx.with_store(store).child(task_id=self.id)

        self.run_id = str(uuid.uuid4())
        self.completed_actions = 0
        self.output = None
        action_outputs: dict[str, Any] = {}
        started = time.monotonic()
        logger.info("task=%s run=%s actions=%d starting", self.id, self.run_id, len(self.actions))
        try:
            for action in self.actions:
                try:
                    ctx.check()
                    if self.on_action_start is not None:
                        self.on_action_start(self, action)
                    action_outputs[action.id] = action.execute(ctx)
                except ExecutionCancelled as exc:
                    if ctx.reason() is None:
                        # The action's own timeout expired; the task itself is still live.
                        logger.error("task=%s action=%s timed out: %s", self.id, action.id, exc)
                        raise TaskError(
                            self.id, action.id, f"task '{self.id}' failed at action '{action.id}': {exc}"
                        ) from exc
                    logger.warning("task=%s action=%s %s", self.id, action.id, exc)
                    raise
                except PrerequisiteNotMet as exc:
                    logger.warning("task=%s action=%s aborted: %s", self.id, action.id, exc)
                    raise TaskAborted(
                        self.id,
                        action.id,
                        f"task '{self.id}' aborted: prerequisite not met in action '{action.id}'",
                    ) from exc
                except Exception as exc:
                    logger.error("task=%s action=%s failed: %s", self.id, action.id, exc)
                    raise TaskError(
                        self.id, action.id, f"task '{self.id}' failed at action '{action.id}': {exc}"
                    ) from exc
                self.completed_actions += 1
        finally:
            self.duration = time.monotonic() - started

        output: dict[str, Any] = {
            "task_id": self.id,
            "run_id": self.run_id,
            "name": self.name,
            "success": True,
            "duration": self.duration,
            "completed_actions": self.completed_actions,
            "action_outputs": action_outputs,
        }
        if self.result_builder is not None:
            output.update(self.result_builder(ctx, action_outputs))
        store.store_task_output(self.id, output)
        self.output = output
        logger.info("task=%s run=%s completed in %.3fs", self.id, self.run_id, self.duration)
        return output

    def __repr__(self) -> str:
        return f"<Task id={self.id!r} actions={len(self.actions)}>"
