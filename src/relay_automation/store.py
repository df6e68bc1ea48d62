from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from .errors import DuplicateOutputError

logger = logging.getLogger(__name__)

ACTION = "action"
TASK = "task"


def _normalize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalize_value(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


class ResultStore:
    """Registry of published action and task outputs for one run.

    Outputs are keyed by ``(category, identifier)``. Categories are free-form;
    ``"action"`` and ``"task"`` are the two the core publishes to. Publishing
    twice under the same key overwrites the earlier output unless the store
    was created with ``strict=True``.
    """

    def __init__(self, *, strict: bool = False):
        self.strict = strict
        self._lock = threading.RLock()
        self._outputs: dict[str, dict[str, Any]] = {}

    # Writers -------------------------------------------------------------
    def store_entity_output(self, entity_type: str, entity_id: str, value: Any) -> None:
        with self._lock:
            bucket = self._outputs.setdefault(entity_type, {})
            if entity_id in bucket:
                if self.strict:
                    raise DuplicateOutputError(entity_type, entity_id)
                logger.debug("overwriting output category=%s id=%s", entity_type, entity_id)
            bucket[entity_id] = value

    def store_action_output(self, action_id: str, value: Any) -> None:
        self.store_entity_output(ACTION, action_id, value)

    def store_task_output(self, task_id: str, value: Any) -> None:
        self.store_entity_output(TASK, task_id, value)

    # Readers -------------------------------------------------------------
    def get_entity_output(self, entity_type: str, entity_id: str) -> tuple[Any, bool]:
        with self._lock:
            bucket = self._outputs.get(entity_type)
            if bucket is None or entity_id not in bucket:
                return None, False
            return bucket[entity_id], True

    def get_action_output(self, action_id: str) -> tuple[Any, bool]:
        return self.get_entity_output(ACTION, action_id)

    def get_task_output(self, task_id: str) -> tuple[Any, bool]:
        return self.get_entity_output(TASK, task_id)

    def has(self, entity_type: str, entity_id: str) -> bool:
        return self.get_entity_output(entity_type, entity_id)[1]

    def categories(self) -> list[str]:
        with self._lock:
            return sorted(self._outputs)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {category: dict(bucket) for category, bucket in self._outputs.items()}

    def clear(self) -> None:
        with self._lock:
            self._outputs.clear()

    # Persistence ---------------------------------------------------------
    def dump(self, path: Path) -> None:
        """Write the current outputs to ``path`` as JSON for later inspection."""

        data = _normalize_value(self.snapshot())
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, sort_keys=True))
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.debug("Unable to chmod results file %s", path, exc_info=True)

