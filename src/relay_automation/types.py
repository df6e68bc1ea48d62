from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ActionSpec:
    type: str
    params: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class TaskSpec:
    id: str
    name: str
    actions: list[ActionSpec]


@dataclass
class Plan:
    tasks: list[TaskSpec]


@dataclass
class ActionResult:
    task: str
    action: str
    details: str
    failed: bool = False
    aborted: bool = False
    action_id: Optional[str] = None
    output: Optional[dict[str, Any]] = None
