from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from .actions.base import Action
from .config import DEFAULT_CONFIG, RelayConfig, load_config
from .inventory import PlanLoader
from .runner import TaskRunner
from .store import ResultStore
from .task import Task
from .types import ActionResult


class Ansi:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    ORANGE = "\033[38;5;208m"
    RESET = "\033[0m"


def colorize(text: str, color: Optional[str]) -> str:
    if not color:
        return text
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{color}{text}{Ansi.RESET}"

_last_progress_len = 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Relay automation runner")
    parser.add_argument(
        "plan",
        nargs="?",
        default=None,
        type=Path,
        help="Path to a TOML or JSON plan (default from config or /etc/relay/plan.toml)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Path to relay config file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--results-file",
        type=Path,
        help="Write every published output to this JSON file after the run",
    )
    parser.add_argument("--dry-run", action="store_true", help="Resolve parameters without running mutating commands")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject a second output published under the same identifier",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Deadline in seconds for the whole run")
    parser.add_argument("--fail-fast", action="store_true", help="Stop after the first failed task")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s - %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        cfg = load_config(args.config)
    except ValueError as exc:
        print(colorize(f"Invalid config {args.config}: {exc}", Ansi.RED), file=sys.stderr)
        return 1
    _apply_aws_env(cfg)
    plan_path = args.plan or cfg.plan
    try:
        plan = PlanLoader().load(plan_path)
    except (OSError, ValueError) as exc:
        _clear_progress()
        print(colorize(f"Plan validation failed: {exc}", Ansi.RED), file=sys.stderr)
        return 1

    store = ResultStore(strict=args.strict or cfg.strict_outputs)
    runner = TaskRunner(
        plan,
        store=store,
        dry_run=args.dry_run,
        progress_callback=print_progress,
        fail_fast=args.fail_fast or cfg.fail_fast,
        timeout=args.timeout if args.timeout is not None else cfg.timeout,
    )
    try:
        results = runner.run()
    except KeyboardInterrupt:
        runner.cancel()
        _clear_progress()
        print(colorize("Interrupted", Ansi.RED), file=sys.stderr)
        return 130

    effective_level = logging.getLogger().getEffectiveLevel()
    summary = Summary()
    for result in results:
        _clear_progress()
        summary.add(result)
        if not should_display_result(result, effective_level):
            continue
        print(format_result(result))

    _clear_progress()
    print(summary.render())

    results_file = args.results_file or cfg.results_file
    if results_file and not args.dry_run:
        store.dump(results_file)

    if runner.stop_reason == "cancelled":
        return 130
    if summary.failures or runner.stop_reason is not None:
        return 1
    return 0


def _is_changed(result: ActionResult) -> bool:
    return bool(result.output and result.output.get("changed"))


def format_result(result: ActionResult) -> str:
    status = "changed" if _is_changed(result) else "ok"
    color: Optional[str] = Ansi.GREEN if _is_changed(result) else Ansi.BLUE
    if result.aborted:
        status = "aborted"
        color = Ansi.ORANGE
    elif result.failed:
        if "unknown action type" in result.details.lower():
            status = "unknown"
            color = Ansi.ORANGE
        else:
            status = "failed"
            color = Ansi.RED
    ident = f"[{result.action_id}]" if result.action_id else ""
    line = f"{result.task}::{result.action}{ident} {status} - {result.details}"
    return colorize(line, color)


def should_display_result(result: ActionResult, log_level: int) -> bool:
    if result.failed or result.aborted or _is_changed(result):
        return True
    return log_level <= logging.INFO


def print_progress(task: Task, action: Action) -> None:
    global _last_progress_len
    _clear_progress()
    line = f"{task.id}::{action.type_name}[{action.id}] pending..."
    _last_progress_len = len(line)
    print(colorize(line, Ansi.YELLOW), end="\r", flush=True)


def _clear_progress() -> None:
    global _last_progress_len
    if _last_progress_len:
        print(" " * _last_progress_len, end="\r", flush=True)
        _last_progress_len = 0


def _apply_aws_env(cfg: RelayConfig) -> None:
    if cfg.aws_profile and "AWS_PROFILE" not in os.environ:
        os.environ["AWS_PROFILE"] = cfg.aws_profile
    if cfg.aws_region:
        if "AWS_REGION" not in os.environ:
            os.environ["AWS_REGION"] = cfg.aws_region
        if "AWS_DEFAULT_REGION" not in os.environ:
            os.environ["AWS_DEFAULT_REGION"] = cfg.aws_region


class Summary:
    def __init__(self) -> None:
        self.total = 0
        self.changes = 0
        self.failures = 0
        self.aborted = 0

    def add(self, result: ActionResult) -> None:
        self.total += 1
        if result.failed:
            self.failures += 1
        elif result.aborted:
            self.aborted += 1
        elif _is_changed(result):
            self.changes += 1

    def render(self) -> str:
        parts = [
            f"Actions: {self.total}",
            f"Changes: {self.changes}",
            f"Failures: {self.failures}",
        ]
        if self.aborted:
            parts.append(f"Aborted: {self.aborted}")
        text = " | ".join(parts)
        color = Ansi.GREEN if self.failures == 0 else Ansi.RED
        return colorize(text, color)


if __name__ == "__main__":
    raise SystemExit(main())
