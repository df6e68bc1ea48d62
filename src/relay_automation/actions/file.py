from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from .base import Action, ParameterSpec
from ..context import ExecutionContext
from ..ids import build_action_id


def parse_mode(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("file mode must be an octal string or int")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    base = 8 if text.startswith("0") else 10
    return int(text, base)


class ReadFileAction(Action):
    type_name = "read_file"
    display_name = "Read File"
    PARAMETERS = (ParameterSpec("path", "string", required=True),)

    def default_id(self) -> str:
        path = self.static_value("path")
        return build_action_id("read-file", Path(path).name if isinstance(path, str) else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:  # noqa: ARG002
        path = Path(self.resolved["path"])
        content = self.executor.read_file(path)
        if content is None:
            raise FileNotFoundError(f"{path} does not exist")
        return {"content": content, "size": len(content)}


class WriteFileAction(Action):
    """Write ``content`` to ``path`` when it differs; honours dry-run."""

    type_name = "write_file"
    display_name = "Write File"
    PARAMETERS = (
        ParameterSpec("path", "string", required=True),
        ParameterSpec("content", "string", default=""),
        ParameterSpec("mode", "any"),
    )

    def default_id(self) -> str:
        path = self.static_value("path")
        return build_action_id("write-file", Path(path).name if isinstance(path, str) else "")

    def run(self, ctx: ExecutionContext) -> dict[str, Any]:  # noqa: ARG002
        path = Path(self.resolved["path"])
        mode = parse_mode(self.resolved["mode"])
        changed, detail = self.executor.write_file(path, content=self.resolved["content"], mode=mode)
        return {"changed": changed, "detail": detail}
