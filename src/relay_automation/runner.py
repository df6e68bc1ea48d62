from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from .actions import ACTION_REGISTRY
from .actions.base import Action, ActionState
from .context import ExecutionContext
from .errors import BuildError, ExecutionCancelled, TaskAborted, TaskError
from .executors import Executor, LocalExecutor
from .store import ResultStore
from .task import Task
from .types import ActionResult, Plan, TaskSpec

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Task, Action], None]


class TaskRunner:
    """Coordinates the execution of a loaded plan.

    Tasks run in declaration order against one result store, so later tasks
    can reference anything an earlier task published.
    """

    def __init__(
        self,
        plan: Plan,
        *,
        store: Optional[ResultStore] = None,
        dry_run: bool = False,
        executor_factory: Optional[Callable[[], Executor]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        fail_fast: bool = False,
        timeout: Optional[float] = None,
    ):
        self.plan = plan
        self.store = store if store is not None else ResultStore()
        self.dry_run = dry_run
        self.executor_factory = executor_factory or (lambda: LocalExecutor(dry_run=dry_run))
        self.progress_callback = progress_callback
        self.fail_fast = fail_fast
        self.ctx = ExecutionContext.with_timeout(timeout, store=self.store)
        self.stop_reason: Optional[str] = None

    def cancel(self) -> None:
        self.ctx.cancel()

    def run(self) -> list[ActionResult]:
        results: list[ActionResult] = []
        for task_spec in self.plan.tasks:
            task_results, succeeded = self._run_task(task_spec)
            results.extend(task_results)
            if self.stop_reason is not None:
                logger.warning("run stopped after task=%s: %s", task_spec.id, self.stop_reason)
                break
            if not succeeded and self.fail_fast:
                logger.warning("task=%s failed; skipping remaining tasks", task_spec.id)
                break
        return results

    def _run_task(self, spec: TaskSpec) -> tuple[list[ActionResult], bool]:
        logger.debug("task=%s actions=%d", spec.id, len(spec.actions))
        executor = self.executor_factory()
        actions: list[Action] = []
        for position, action_spec in enumerate(spec.actions, start=1):
            action_cls = ACTION_REGISTRY.get(action_spec.type)
            if action_cls is None:
                detail = f"unknown action type '{action_spec.type}'"
                logger.warning("task=%s action=%d %s", spec.id, position, detail)
                return [self._failed(spec, action_spec.type, action_spec.id, detail)], False
            try:
                actions.append(
                    action_cls(
                        action_spec.params,
                        action_id=action_spec.id,
                        name=action_spec.name,
                        executor=executor,
                    )
                )
            except BuildError as exc:
                logger.error("task=%s action=%s build failed: %s", spec.id, action_spec.type, exc)
                return [self._failed(spec, action_spec.type, action_spec.id, str(exc))], False

        task = Task(spec.id, spec.name, actions, on_action_start=self.progress_callback)
        error: Optional[BaseException] = None
        aborted = False
        try:
            task.run(self.ctx)
        except ExecutionCancelled as exc:
            error = exc
            if self.ctx.reason() is not None:
                self.stop_reason = exc.reason
            else:
                logger.error("task=%s cancelled: %s", spec.id, exc)
        except TaskAborted as exc:
            aborted = True
            error = exc.__cause__ or exc
            logger.warning("task=%s %s", spec.id, exc)
        except TaskError as exc:
            error = exc.__cause__ or exc
            logger.error("task=%s failed: %s", spec.id, exc, exc_info=True)

        results: list[ActionResult] = []
        for action in actions:
            if action.state == ActionState.COMPLETED:
                results.append(
                    ActionResult(
                        task=spec.id,
                        action=action.type_name,
                        details=_describe(action.output or {}),
                        action_id=action.id,
                        output=action.output,
                    )
                )
            elif aborted and action.state != ActionState.UNRESOLVED:
                results.append(
                    ActionResult(
                        task=spec.id,
                        action=action.type_name,
                        details=str(error),
                        aborted=True,
                        action_id=action.id,
                    )
                )
            elif action.state != ActionState.UNRESOLVED:
                results.append(self._failed(spec, action.type_name, action.id, str(error)))
        return results, error is None or aborted

    @staticmethod
    def _failed(spec: TaskSpec, action: str, action_id: Optional[str], detail: str) -> ActionResult:
        return ActionResult(task=spec.id, action=action, details=detail, failed=True, action_id=action_id)


def _describe(output: Mapping[str, Any]) -> str:
    if output.get("skipped"):
        return f"skipped ({output.get('reason', '')})"
    changes = output.get("changes")
    if isinstance(changes, list):
        return ", ".join(changes) if changes else "noop"
    detail = output.get("detail")
    if detail:
        return str(detail)
    if "count" in output:
        return f"count={output['count']}"
    return "done"
