from __future__ import annotations

from typing import Optional, Sequence


class RelayError(Exception):
    """Base class for errors raised by the automation core."""


class ResolutionError(RelayError):
    """A parameter could not be turned into a concrete value."""

    def __init__(self, message: str, *, category: Optional[str] = None, identifier: Optional[str] = None):
        super().__init__(message)
        self.category = category
        self.identifier = identifier
        self.parameter: Optional[str] = None


class EmptyIdentifierError(ResolutionError):
    pass


class OutputNotFoundError(ResolutionError):
    pass


class OutputNotMappingError(ResolutionError):
    pass


class OutputKeyNotFoundError(ResolutionError):
    def __init__(self, message: str, *, category: str, identifier: str, key: str):
        super().__init__(message, category=category, identifier=identifier)
        self.key = key


class MissingStoreError(ResolutionError):
    pass


class ParameterTypeError(RelayError, TypeError):
    """A resolved value does not match the kind the action expects."""

    def __init__(self, parameter: str, expected: str, actual: str):
        super().__init__(f"{parameter} parameter is not a {expected}, got {actual}")
        self.parameter = parameter
        self.expected = expected
        self.actual = actual


class BuildError(RelayError, ValueError):
    """An action was configured with missing or unknown parameters."""


class DuplicateOutputError(RelayError):
    def __init__(self, category: str, identifier: str):
        super().__init__(f"{category} '{identifier}' already published an output")
        self.category = category
        self.identifier = identifier


class CommandError(RelayError):
    """An external command exited unsuccessfully."""

    def __init__(self, command: Sequence[str], returncode: int, output: str):
        rendered = " ".join(command)
        message = f"command '{rendered}' failed (rc={returncode})"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.output = output


class ExecutionCancelled(RelayError):
    """Execution stopped because its context was cancelled or timed out."""

    def __init__(self, reason: str = "cancelled", *, output: str = ""):
        super().__init__(f"execution {reason}")
        self.reason = reason
        self.output = output

    @property
    def deadline_exceeded(self) -> bool:
        return self.reason == "deadline exceeded"


class TaskError(RelayError):
    """A task stopped at a failing action; ``__cause__`` holds the action error."""

    def __init__(self, task_id: str, action_id: str, message: str):
        super().__init__(message)
        self.task_id = task_id
        self.action_id = action_id


class ActionError(RelayError):
    """An action's effect failed; ``__cause__`` holds the underlying error."""

    def __init__(self, action_id: str, message: str, *, output: str = ""):
        super().__init__(message)
        self.action_id = action_id
        self.output = output


class PrerequisiteNotMet(RelayError):
    """A prerequisite check failed; the enclosing task stops without failing."""

    def __init__(self, description: str):
        super().__init__(f"prerequisite not met: {description}")
        self.description = description


class TaskAborted(TaskError):
    """A task stopped early because a prerequisite was not met."""
