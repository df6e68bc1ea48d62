"""Relay task automation toolkit."""

from .context import ExecutionContext
from .inventory import PlanLoader
from .manager import TaskManager
from .parameters import (
    ActionOutputParameter,
    EntityOutputParameter,
    Parameter,
    StaticParameter,
    TaskOutputParameter,
    action_output,
    entity_output,
    static,
    task_output,
)
from .runner import TaskRunner
from .store import ResultStore
from .task import Task

__all__ = [
    "ExecutionContext",
    "PlanLoader",
    "TaskManager",
    "TaskRunner",
    "ResultStore",
    "Task",
    "Parameter",
    "StaticParameter",
    "ActionOutputParameter",
    "TaskOutputParameter",
    "EntityOutputParameter",
    "static",
    "action_output",
    "task_output",
    "entity_output",
]
