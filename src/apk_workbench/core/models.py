"""
Data types shared by the pipeline: steps, tool descriptors, run context.
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .errors import InvalidTransition, PipelineStateError


class StepId(enum.IntEnum):
    TOOL_CHECK = 0
    TOOL_PROVISION = 1
    INPUT_SELECTION = 2
    UNPACK = 3
    MANUAL_EDIT = 4
    REPACK = 5
    SIGN = 6
    DONE = 7


class StepStatus(enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED})

ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS}),
    StepStatus.IN_PROGRESS: TERMINAL_STATUSES,
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

STEP_TITLES = {
    StepId.TOOL_CHECK: "Java & tool check",
    StepId.TOOL_PROVISION: "Tool management",
    StepId.INPUT_SELECTION: "APK selection",
    StepId.UNPACK: "Decompile",
    StepId.MANUAL_EDIT: "Edit",
    StepId.REPACK: "Recompile",
    StepId.SIGN: "Sign",
    StepId.DONE: "Complete",
}


@dataclass(frozen=True)
class StepEvent:
    """One change to one field of a step. `field` is status, progress, message or reset."""
    step_id: StepId
    field: str
    value: object


class PipelineStep:

    '''
    One stage of the pipeline.

    Status changes are checked against ALLOWED_TRANSITIONS, progress is
    clamped to [0, 100], and every change is handed to `on_change` so the
    owner can publish it.
    '''

    def __init__(self, step_id: StepId, on_change: Optional[Callable[[StepEvent], None]] = None):
        self.id = step_id
        self.title = STEP_TITLES[step_id]
        self._status = StepStatus.PENDING
        self._progress = 0
        self._message = ""
        self._on_change = on_change

    @property
    def status(self) -> StepStatus:
        return self._status

    @status.setter
    def status(self, value: StepStatus):
        if value not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidTransition(
                f"{self.id.name}: cannot move from {self._status.name} to {value.name}"
            )
        self._status = value
        self._notify("status", value)

    @property
    def progress(self) -> int:
        return self._progress

    @progress.setter
    def progress(self, value: int):
        self._progress = max(0, min(100, int(value)))
        self._notify("progress", self._progress)

    @property
    def message(self) -> str:
        return self._message

    @message.setter
    def message(self, value: str):
        self._message = value
        self._notify("message", value)

    def reset(self):
        self._status = StepStatus.PENDING
        self._progress = 0
        self._message = ""
        self._notify("reset", StepStatus.PENDING)

    def _notify(self, name: str, value):
        if self._on_change is not None:
            self._on_change(StepEvent(self.id, name, value))

    def __repr__(self):
        return f"<PipelineStep {self.id.name} {self._status.name} {self._progress}% {self._message!r}>"


class ToolId(enum.Enum):
    APKTOOL = "apktool"
    UBER_APK_SIGNER = "uber-apk-signer"


@dataclass
class ToolDescriptor:
    tool_id: ToolId
    name: str
    local_path: str
    resolved_version: str = ""
    download_url: str = ""

    @property
    def is_present_locally(self) -> bool:
        return os.path.isfile(self.local_path)


@dataclass(frozen=True)
class ExitOutcome:
    exit_code: Optional[int]
    completed: bool = True

    @property
    def ok(self) -> bool:
        return self.completed and self.exit_code == 0


@dataclass
class RunContext:
    """Per-run state owned by the orchestrator."""
    selected_input_path: Optional[str] = None
    project_name: Optional[str] = None
    recompiled_apk: Optional[str] = None
    signed_apk: Optional[str] = None
    tools: Dict[ToolId, ToolDescriptor] = field(default_factory=dict)

    def select_input(self, path: str):
        if self.selected_input_path is not None:
            raise PipelineStateError(f"Input already selected: {self.selected_input_path}")
        self.selected_input_path = os.path.abspath(path)
        self.project_name = os.path.splitext(os.path.basename(self.selected_input_path))[0]
