from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from .context import ExecutionContext
from .errors import TaskAborted
from .store import ResultStore
from .task import Task

logger = logging.getLogger(__name__)


class TaskManager:
    """Runs registered tasks on background threads against one shared store.

    Tasks started by the same manager can reference each other's published
    outputs. Each run gets its own cancellable context.
    """

    def __init__(self, store: Optional[ResultStore] = None):
        self._store = store if store is not None else ResultStore()
        self._lock = threading.Lock()
        self._tasks: dict[str, Task] = {}
        self._running: dict[str, tuple[threading.Thread, ExecutionContext]] = {}
        self.errors: dict[str, BaseException] = {}

    @property
    def store(self) -> ResultStore:
        return self._store

    @property
    def tasks(self) -> dict[str, Task]:
        with self._lock:
            return dict(self._tasks)

    def add_task(self, task: Task) -> None:
        with self._lock:
            if task.id in self._running:
                raise RuntimeError(f"task '{task.id}' is running and cannot be replaced")
            self._tasks[task.id] = task
        logger.info("task=%s added", task.id)

    def _lookup(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise KeyError(f"task '{task_id}' not found") from None

    def run_task(self, task_id: str, *, timeout: Optional[float] = None) -> threading.Thread:
        with self._lock:
            task = self._lookup(task_id)
            if task_id in self._running:
                raise RuntimeError(f"task '{task_id}' is already running")
            ctx = ExecutionContext.with_timeout(timeout, store=self._store)
            thread = threading.Thread(
                target=self._run, args=(task, ctx), name=f"relay-task-{task_id}", daemon=True
            )
            self._running[task_id] = (thread, ctx)
            self.errors.pop(task_id, None)
        thread.start()
        return thread

    def run_task_sync(self, task_id: str, *, timeout: Optional[float] = None) -> dict[str, Any]:
        """Run a task in the calling thread; errors are recorded and re-raised."""

        with self._lock:
            task = self._lookup(task_id)
            self.errors.pop(task_id, None)
        ctx = ExecutionContext.with_timeout(timeout, store=self._store)
        try:
            return task.run(ctx)
        except Exception as exc:
            with self._lock:
                self.errors[task_id] = exc
            raise

    def _run(self, task: Task, ctx: ExecutionContext) -> None:
        try:
            task.run(ctx)
        except Exception as exc:  # noqa: BLE001
            if ctx.cancelled:
                logger.info("task=%s cancelled: %s", task.id, exc)
            elif isinstance(exc, TaskAborted):
                logger.warning("task=%s %s", task.id, exc)
            else:
                logger.error("task=%s failed: %s", task.id, exc)
            with self._lock:
                self.errors[task.id] = exc
        else:
            logger.info("task=%s completed", task.id)
        finally:
            with self._lock:
                entry = self._running.get(task.id)
                if entry is not None and entry[1] is ctx:
                    del self._running[task.id]

    def stop_task(self, task_id: str) -> None:
        with self._lock:
            entry = self._running.get(task_id)
            if entry is None:
                raise KeyError(f"task '{task_id}' is not running")
            entry[1].cancel()
        logger.info("task=%s stop requested", task_id)

    def stop_all(self) -> list[str]:
        with self._lock:
            stopped = list(self._running)
            for _, ctx in self._running.values():
                ctx.cancel()
        for task_id in stopped:
            logger.info("task=%s stop requested", task_id)
        return stopped

    def running_tasks(self) -> list[str]:
        with self._lock:
            return sorted(self._running)

    def is_running(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._running

    def wait_for_all(self, timeout: Optional[float] = None) -> None:
        """Block until every running task finished; raise ``TimeoutError`` otherwise."""

        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            with self._lock:
                threads = [thread for thread, _ in self._running.values()]
            if not threads:
                return
            for thread in threads:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                thread.join(remaining)
            if deadline is not None and time.monotonic() >= deadline:
                with self._lock:
                    count = len(self._running)
                if count:
                    raise TimeoutError(f"timeout waiting for {count} tasks to complete")
                return

    def reset_store(self) -> ResultStore:
        """Swap in a fresh store; only allowed while nothing is running."""

        with self._lock:
            if self._running:
                raise RuntimeError("cannot reset the result store while tasks are running")
            self._store = ResultStore(strict=self._store.strict)
            return self._store
