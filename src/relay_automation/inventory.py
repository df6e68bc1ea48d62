from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .parameters import parameter_from_config
from .types import ActionSpec, Plan, TaskSpec

_RESERVED_ACTION_KEYS = {"type", "id", "name", "params"}


class PlanLoader:
    """Loads plan definitions from TOML or JSON files.

    Action parameters may be given under ``params`` or inline next to
    ``type``; each value is a parameter literal (see
    :func:`~relay_automation.parameters.parameter_from_config`).
    """

    def load(self, path: Path) -> Plan:
        path = Path(path)
        text = path.read_text()
        if path.suffix.lower() == ".json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{exc.lineno}:{exc.colno} {exc.msg}") from None
        else:
            try:
                data = tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                raise ValueError(f"{path}: {exc}") from None
        try:
            return self.parse(data)
        except ValueError as exc:
            raise ValueError(f"{path}: {exc}") from None

    def parse(self, data: Any) -> Plan:
        if not isinstance(data, Mapping):
            raise ValueError("plan must be a table/object")
        raw_tasks = data.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise ValueError("plan 'tasks' must be a list")
        tasks = [self._parse_task(task, index) for index, task in enumerate(raw_tasks, start=1)]
        seen: set[str] = set()
        for task in tasks:
            if task.id in seen:
                raise ValueError(f"duplicate task id '{task.id}'")
            seen.add(task.id)
        return Plan(tasks=tasks)

    @staticmethod
    def _parse_task(task: Any, index: int) -> TaskSpec:
        if not isinstance(task, Mapping):
            raise ValueError(f"task {index} must be a table/object")
        task_id = str(task.get("id") or task.get("name") or f"task-{index}")
        name = str(task.get("name") or task_id)
        raw_actions = task.get("actions", [])
        if not isinstance(raw_actions, list):
            raise ValueError(f"task '{task_id}' actions must be a list")
        actions = [
            PlanLoader._parse_action(action, task_id, position)
            for position, action in enumerate(raw_actions, start=1)
        ]
        return TaskSpec(id=task_id, name=name, actions=actions)

    @staticmethod
    def _parse_action(action: Any, task_id: str, position: int) -> ActionSpec:
        if not isinstance(action, Mapping):
            raise ValueError(f"task '{task_id}' action {position} must be a table/object")
        action_type = action.get("type")
        if not action_type:
            raise ValueError(f"task '{task_id}' action {position} is missing a type")
        raw_params = action.get("params")
        if raw_params is None:
            raw_params = {k: v for k, v in action.items() if k not in _RESERVED_ACTION_KEYS}
        if not isinstance(raw_params, Mapping):
            raise ValueError(f"task '{task_id}' action {position} params must be a table/object")
        try:
            params = {str(key): parameter_from_config(value) for key, value in raw_params.items()}
        except ValueError as exc:
            raise ValueError(f"task '{task_id}' action {position}: {exc}") from None
        action_id = action.get("id")
        name = action.get("name")
        return ActionSpec(
            type=str(action_type),
            params=params,
            id=str(action_id) if action_id else None,
            name=str(name) if name else None,
        )
