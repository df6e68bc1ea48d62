from .base import Action, ActionBuilder, ActionState, ParameterSpec
from .docker import ComposeDownAction, ComposeExecAction, ComposeLsAction, ComposePsAction, ComposeUpAction
from .exec import ExecAction
from .file import ReadFileAction, WriteFileAction
from .system import ManageServiceAction, ServiceStatusAction
from .utility import PrerequisiteCheckAction, WaitAction

ACTION_REGISTRY: dict[str, type[Action]] = {
    cls.type_name: cls
    for cls in (
        ComposeUpAction,
        ComposeDownAction,
        ComposePsAction,
        ComposeLsAction,
        ComposeExecAction,
        ManageServiceAction,
        ServiceStatusAction,
        ExecAction,
        ReadFileAction,
        WriteFileAction,
        WaitAction,
        PrerequisiteCheckAction,
    )
}

__all__ = [
    "Action",
    "ActionBuilder",
    "ActionState",
    "ParameterSpec",
    "ComposeUpAction",
    "ComposeDownAction",
    "ComposePsAction",
    "ComposeLsAction",
    "ComposeExecAction",
    "ManageServiceAction",
    "ServiceStatusAction",
    "ExecAction",
    "ReadFileAction",
    "WriteFileAction",
    "WaitAction",
    "PrerequisiteCheckAction",
    "ACTION_REGISTRY",
]
