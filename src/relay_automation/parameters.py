"""Late-bound parameter values.

A parameter is either a literal (:class:`StaticParameter`) or a reference to
an output published earlier in the run. References are resolved against the
:class:`~relay_automation.store.ResultStore` carried by the execution context
at the moment an action executes, never when the action is built.
"""

from __future__ import annotations

import datetime as _dt
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from string import Template
from typing import Any, Callable, Optional

import jinja2

from .errors import (
    EmptyIdentifierError,
    MissingStoreError,
    OutputKeyNotFoundError,
    OutputNotFoundError,
    OutputNotMappingError,
    ParameterTypeError,
    ResolutionError,
)
from .secrets import SecretResolver, default_resolver
from .store import ACTION, TASK, ResultStore


class Parameter(ABC):
    """A value source resolved at execution time."""

    @abstractmethod
    def resolve(self, store: Optional[ResultStore]) -> Any:
        """Return the concrete value, raising :class:`ResolutionError` on failure."""


@dataclass(frozen=True)
class StaticParameter(Parameter):
    value: Any

    def resolve(self, store: Optional[ResultStore] = None) -> Any:
        return self.value


def _project(store: Optional[ResultStore], category: str, identifier: str, key: str) -> Any:
    if not identifier:
        raise EmptyIdentifierError(f"{category} identifier cannot be empty", category=category)
    if store is None:
        raise MissingStoreError(
            f"no result store available to resolve {category} '{identifier}'",
            category=category,
            identifier=identifier,
        )
    output, found = store.get_entity_output(category, identifier)
    if not found:
        raise OutputNotFoundError(
            f"{category} '{identifier}' not found in result store",
            category=category,
            identifier=identifier,
        )
    if not key:
        return output
    if not isinstance(output, Mapping):
        raise OutputNotMappingError(
            f"{category} '{identifier}' output is not a map, cannot extract key '{key}'",
            category=category,
            identifier=identifier,
        )
    if key not in output:
        raise OutputKeyNotFoundError(
            f"output key '{key}' not found in {category} '{identifier}'",
            category=category,
            identifier=identifier,
            key=key,
        )
    return output[key]


@dataclass(frozen=True)
class ActionOutputParameter(Parameter):
    """Value published by another action; an empty ``output_key`` yields the whole output."""

    action_id: str
    output_key: str = ""

    def resolve(self, store: Optional[ResultStore]) -> Any:
        return _project(store, ACTION, self.action_id, self.output_key)


@dataclass(frozen=True)
class TaskOutputParameter(Parameter):
    task_id: str
    output_key: str = ""

    def resolve(self, store: Optional[ResultStore]) -> Any:
        return _project(store, TASK, self.task_id, self.output_key)


@dataclass(frozen=True)
class EntityOutputParameter(Parameter):
    entity_type: str
    entity_id: str
    output_key: str = ""

    def resolve(self, store: Optional[ResultStore]) -> Any:
        if not self.entity_type:
            raise EmptyIdentifierError("entity type cannot be empty")
        return _project(store, self.entity_type, self.entity_id, self.output_key)


@dataclass(frozen=True)
class SecretParameter(Parameter):
    """AWS Secrets Manager value, optionally a key inside a JSON secret."""

    name: str
    key: Optional[str] = None
    resolver: SecretResolver = field(default=default_resolver, compare=False, repr=False)

    def resolve(self, store: Optional[ResultStore]) -> Any:
        if not self.name:
            raise EmptyIdentifierError("secret identifier cannot be empty", category="secret")
        return self.resolver.lookup(self.name, self.key)


@dataclass(frozen=True)
class TemplateParameter(Parameter):
    """String rendered from resolved variables.

    Templates containing ``{{`` or ``{%`` are rendered with Jinja2 and may also
    read published outputs through the ``action`` and ``task`` mappings;
    anything else goes through :class:`string.Template`.
    """

    template: str
    variables: Mapping[str, Parameter] = field(default_factory=dict)

    def resolve(self, store: Optional[ResultStore]) -> Any:
        context = {name: param.resolve(store) for name, param in self.variables.items()}
        if not _looks_like_jinja(self.template):
            return Template(self.template).safe_substitute(context)
        outputs = store.snapshot() if store is not None else {}
        env = jinja2.Environment(undefined=jinja2.StrictUndefined, autoescape=False)
        try:
            return env.from_string(self.template).render(
                action=outputs.get(ACTION, {}), task=outputs.get(TASK, {}), **context
            )
        except jinja2.UndefinedError as exc:
            raise ResolutionError(f"template references an undefined value: {exc}") from exc
        except (jinja2.TemplateError, TypeError, ValueError, ArithmeticError) as exc:
            raise ResolutionError(f"template could not be rendered: {exc}") from exc


def _looks_like_jinja(text: str) -> bool:
    return bool(re.search(r"{[{%]", text))


# Construction helpers ---------------------------------------------------
def static(value: Any) -> StaticParameter:
    return StaticParameter(value)


def action_output(action_id: str, output_key: str = "") -> ActionOutputParameter:
    return ActionOutputParameter(action_id, output_key)


def task_output(task_id: str, output_key: str = "") -> TaskOutputParameter:
    return TaskOutputParameter(task_id, output_key)


def entity_output(entity_type: str, entity_id: str, output_key: str = "") -> EntityOutputParameter:
    return EntityOutputParameter(entity_type, entity_id, output_key)


def as_parameter(value: Any) -> Parameter:
    """Wrap a raw literal in :class:`StaticParameter`; parameters pass through."""

    if isinstance(value, Parameter):
        return value
    return StaticParameter(value)


def _field(raw: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = raw.get(name)
        if value is not None:
            return str(value)
    return ""


def parameter_from_config(raw: Any) -> Parameter:
    """Build a parameter from a configuration literal.

    Mappings carrying a ``kind`` are references (``static``, ``actionOutput``,
    ``taskOutput``, ``entityOutput``, ``secret``, ``template``); any other
    value is a literal.
    """

    if isinstance(raw, Parameter):
        return raw
    if not isinstance(raw, Mapping) or "kind" not in raw:
        return StaticParameter(raw)

    kind = str(raw["kind"]).replace("_", "").lower()
    if kind == "static":
        if "value" not in raw:
            raise ValueError("static parameter requires a value")
        return StaticParameter(raw["value"])
    if kind == "actionoutput":
        return ActionOutputParameter(
            _field(raw, "actionID", "action_id", "actionId"),
            _field(raw, "outputKey", "output_key"),
        )
    if kind == "taskoutput":
        return TaskOutputParameter(
            _field(raw, "taskID", "task_id", "taskId"),
            _field(raw, "outputKey", "output_key"),
        )
    if kind == "entityoutput":
        return EntityOutputParameter(
            _field(raw, "entityType", "entity_type"),
            _field(raw, "entityID", "entity_id", "entityId"),
            _field(raw, "outputKey", "output_key"),
        )
    if kind == "secret":
        key = raw.get("key")
        return SecretParameter(_field(raw, "name", "secret"), str(key) if key is not None else None)
    if kind == "template":
        template = raw.get("template")
        if not isinstance(template, str):
            raise ValueError("template parameter requires a template string")
        variables = raw.get("variables") or {}
        if not isinstance(variables, Mapping):
            raise ValueError("template variables must be a mapping")
        return TemplateParameter(
            template, {str(k): parameter_from_config(v) for k, v in variables.items()}
        )
    raise ValueError(f"unknown parameter kind '{raw['kind']}'")


# Coercion ----------------------------------------------------------------
def kind_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "list"
    if isinstance(value, Mapping):
        return "map"
    return type(value).__name__


def split_string_list(text: str) -> list[str]:
    """Split on commas when present, otherwise on whitespace."""

    stripped = text.strip()
    if not stripped:
        return []
    if "," in stripped:
        return [part.strip() for part in stripped.split(",") if part.strip()]
    return stripped.split()


def coerce_string(value: Any, name: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    raise ParameterTypeError(name, "string", kind_of(value))


def coerce_string_list(value: Any, name: str) -> list[str]:
    if isinstance(value, str):
        return split_string_list(value)
    if isinstance(value, (list, tuple)):
        bad = [item for item in value if not isinstance(item, str)]
        if bad:
            raise ParameterTypeError(name, "string or list of strings", f"list containing {kind_of(bad[0])}")
        return list(value)
    raise ParameterTypeError(name, "string or list of strings", kind_of(value))


_TRUTHY = {"true", "yes", "y", "on", "1"}
_FALSY = {"false", "no", "n", "off", "0"}


def coerce_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ParameterTypeError(name, "bool", f"string '{value}'")
    raise ParameterTypeError(name, "bool", kind_of(value))


def coerce_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ParameterTypeError(name, "int", "bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ParameterTypeError(name, "int", f"string '{value}'") from None
    raise ParameterTypeError(name, "int", kind_of(value))


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(text: str) -> float:
    """Parse ``"90"``, ``"1.5s"``, ``"500ms"`` or ``"1h30m"`` into seconds."""

    stripped = text.strip().lower()
    try:
        return float(stripped)
    except ValueError:
        pass
    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(stripped):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(stripped) or not stripped:
        raise ValueError(f"invalid duration '{text}'")
    return total


def coerce_duration(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ParameterTypeError(name, "duration", "bool")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, _dt.timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, str):
        try:
            seconds = parse_duration(value)
        except ValueError:
            raise ParameterTypeError(name, "duration", f"string '{value}'") from None
    else:
        raise ParameterTypeError(name, "duration", kind_of(value))
    if seconds < 0:
        raise ParameterTypeError(name, "duration", "negative number")
    return seconds


def coerce_mapping(value: Any, name: str) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    raise ParameterTypeError(name, "map", kind_of(value))


def coerce_any(value: Any, name: str) -> Any:  # noqa: ARG001
    return value


COERCERS: dict[str, Callable[[Any, str], Any]] = {
    "string": coerce_string,
    "string_list": coerce_string_list,
    "bool": coerce_bool,
    "int": coerce_int,
    "duration": coerce_duration,
    "mapping": coerce_mapping,
    "any": coerce_any,
}


def resolve_as(param: Parameter, store: Optional[ResultStore], kind: str, name: str) -> Any:
    """Resolve ``param`` and coerce the result to ``kind``.

    Resolution errors propagate unchanged, tagged with the parameter name.
    """

    try:
        coercer = COERCERS[kind]
    except KeyError:
        raise ValueError(f"unknown parameter kind '{kind}'") from None
    try:
        value = param.resolve(store)
    except ResolutionError as exc:
        exc.parameter = name
        raise
    return coercer(value, name)
