from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


DEFAULT_CONFIG = Path("/etc/relay/main.conf")
DEFAULT_PLAN = Path("/etc/relay/plan.toml")


@dataclass
class RelayConfig:
    plan: Path = DEFAULT_PLAN
    results_file: Optional[Path] = None
    strict_outputs: bool = False
    timeout: Optional[float] = None
    fail_fast: bool = False
    aws_region: Optional[str] = None
    aws_profile: Optional[str] = None


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ValueError(f"config key '{key}' must be a boolean")


def load_config(path: Path) -> RelayConfig:
    if not path.exists():
        return RelayConfig()
    data = tomllib.loads(path.read_text())
    defaults = data.get("defaults", {})
    plan = defaults.get("plan", DEFAULT_PLAN)
    results_file = defaults.get("results_file")
    timeout = defaults.get("timeout")
    aws_region = defaults.get("aws_region")
    aws_profile = defaults.get("aws_profile")
    return RelayConfig(
        plan=Path(plan),
        results_file=Path(results_file) if results_file else None,
        strict_outputs=_as_bool(defaults.get("strict_outputs", False), "strict_outputs"),
        timeout=float(timeout) if timeout is not None else None,
        fail_fast=_as_bool(defaults.get("fail_fast", False), "fail_fast"),
        aws_region=str(aws_region) if aws_region else None,
        aws_profile=str(aws_profile) if aws_profile else None,
    )
