"""Action contract shared by every concrete action.

An action declares its parameters as :class:`ParameterSpec` entries. At
execution time each supplied parameter is resolved against the result store
carried by the :class:`~relay_automation.context.ExecutionContext`, coerced to
its declared kind, and only then is :meth:`Action.run` allowed to touch the
outside world. The output is published under the action id on success only.
"""

from __future__ import annotations

import copy
import enum
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from ..context import ExecutionContext
from ..errors import ActionError, BuildError, ExecutionCancelled, PrerequisiteNotMet
from ..executors import Executor, LocalExecutor
from ..ids import build_action_id
from ..parameters import COERCERS, Parameter, StaticParameter, as_parameter, resolve_as
from ..store import ResultStore

logger = logging.getLogger(__name__)


class ActionState(str, enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: str = "string"
    required: bool = False
    default: Any = None

    def __post_init__(self) -> None:
        if self.kind not in COERCERS:
            raise ValueError(f"unknown parameter kind '{self.kind}'")


class Action(ABC):
    """Base class for runnable actions."""

    type_name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    PARAMETERS: ClassVar[tuple[ParameterSpec, ...]] = ()

    def __init__(
        self,
        parameters: Optional[Mapping[str, Any]] = None,
        *,
        action_id: Optional[str] = None,
        name: Optional[str] = None,
        executor: Optional[Executor] = None,
    ):
        self.parameters = self._validate_parameters(dict(parameters or {}))
        self.executor = executor if executor is not None else LocalExecutor()
        self.id = action_id or self.default_id()
        self.name = name or self.display_name or type(self).__name__
        self.resolved: dict[str, Any] = {}
        self.output: Optional[dict[str, Any]] = None
        self.state = ActionState.UNRESOLVED
        self.run_id: Optional[str] = None
        self.duration: Optional[float] = None

    @classmethod
    def builder(cls) -> "ActionBuilder":
        return ActionBuilder(cls)

    @classmethod
    def _validate_parameters(cls, raw: dict[str, Any]) -> dict[str, Parameter]:
        label = cls.type_name or cls.__name__
        known = {spec.name for spec in cls.PARAMETERS}
        unknown = sorted(name for name in raw if name not in known)
        if unknown:
            raise BuildError(f"{label} got unknown parameter(s): {', '.join(unknown)}")
        missing = [spec.name for spec in cls.PARAMETERS if spec.required and raw.get(spec.name) is None]
        if missing:
            raise BuildError(f"{label} requires parameter(s): {', '.join(missing)}")
        return {name: as_parameter(value) for name, value in raw.items() if value is not None}

    def default_id(self) -> str:
        """Deterministic identifier derived from configuration."""

        return build_action_id(self.type_name or type(self).__name__)

    def static_value(self, name: str, default: Any = None) -> Any:
        """Literal value of parameter ``name``, or ``default`` for references."""

        param = self.parameters.get(name)
        if isinstance(param, StaticParameter):
            return param.value
        return default

    # Lifecycle -------------------------------------------------------------
    def resolve_parameters(self, store: Optional[ResultStore]) -> dict[str, Any]:
        resolved: dict[str, Any] = {}
        for spec in self.PARAMETERS:
            param = self.parameters.get(spec.name)
            if param is None:
                resolved[spec.name] = copy.copy(spec.default)
                continue
            resolved[spec.name] = resolve_as(param, store, spec.kind, spec.name)
        return resolved

    def before_execute(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        return None

    def after_execute(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        return None

    @abstractmethod
    def run(self, ctx: ExecutionContext) -> Optional[Mapping[str, Any]]:
        """Perform the effect using ``self.resolved``; return effect-specific output fields."""

    def build_output(self, fields: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        output: dict[str, Any] = dict(self.resolved)
        if fields:
            output.update(fields)
        output["success"] = True
        return output

    def execute(self, ctx: Optional[ExecutionContext] = None) -> dict[str, Any]:
        """Resolve, validate, run and publish.

        Without ``ctx`` a fresh context with its own store is used. The output
        is only published when the context carries a store.
        """

        if ctx is None:
            ctx = ExecutionContext(store=ResultStore())
        self.run_id = str(uuid.uuid4())
        self.resolved = {}
        self.output = None
        started = time.monotonic()
        try:
            ctx.check()
            self._transition(ActionState.RESOLVING)
            self.resolved = self.resolve_parameters(ctx.store)
            self._transition(ActionState.RESOLVED)
            self.before_execute(ctx)
            self._transition(ActionState.EXECUTING)
            fields = self._run_effect(ctx)
            self.after_execute(ctx)
            output = self.build_output(fields)
            if ctx.store is not None:
                ctx.store.store_action_output(self.id, output)
        except BaseException as exc:
            self.state = ActionState.FAILED
            logger.debug("action=%s run=%s state=failed error=%s", self.id, self.run_id, exc)
            raise
        finally:
            self.duration = time.monotonic() - started
        self.output = output
        self._transition(ActionState.COMPLETED)
        return output

    def _run_effect(self, ctx: ExecutionContext) -> Optional[Mapping[str, Any]]:
        try:
            return self.run(ctx)
        except (ExecutionCancelled, ActionError, PrerequisiteNotMet):
            raise
        except Exception as exc:
            raise ActionError(
                self.id,
                f"{self.name} failed: {exc}",
                output=getattr(exc, "output", "") or "",
            ) from exc

    def _transition(self, state: ActionState) -> None:
        self.state = state
        logger.debug("action=%s run=%s state=%s", self.id, self.run_id, state.value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} state={self.state.value}>"


class ActionBuilder:
    """Fluent construction; :meth:`build` validates like the constructor does."""

    def __init__(self, action_cls: type[Action]):
        self._action_cls = action_cls
        self._parameters: dict[str, Any] = {}
        self._action_id: Optional[str] = None
        self._name: Optional[str] = None
        self._executor: Optional[Executor] = None

    def with_parameters(self, parameters: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "ActionBuilder":
        if parameters:
            self._parameters.update(parameters)
        self._parameters.update(kwargs)
        return self

    def with_parameter(self, name: str, value: Any) -> "ActionBuilder":
        self._parameters[name] = value
        return self

    def with_id(self, action_id: str) -> "ActionBuilder":
        self._action_id = action_id
        return self

    def with_name(self, name: str) -> "ActionBuilder":
        self._name = name
        return self

    def with_executor(self, executor: Executor) -> "ActionBuilder":
        self._executor = executor
        return self

    def build(self) -> Action:
        return self._action_cls(
            self._parameters,
            action_id=self._action_id,
            name=self._name,
            executor=self._executor,
        )
