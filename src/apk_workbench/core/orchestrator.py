"""
The decompile / edit / recompile / sign pipeline.

Steps run one at a time on a single worker thread. Automatic steps chain on
success; the pipeline stops before input selection and before manual
editing until the caller triggers them.
"""
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .apk_signer import APKSigner
from .apk_tool import APKTool
from .errors import FilesystemError, NetworkError, PipelineBusyError, PipelineStateError, WorkbenchError
from .models import PipelineStep, RunContext, StepEvent, StepId, StepStatus, ToolId
from .tool_provisioner import ToolProvisioner
from .tool_runner import ExternalToolRunner
from .workspace import WorkspaceManager
from apk_workbench.utils import dependencies
from apk_workbench.utils.logger import LogSink

USER_GATED = frozenset({StepId.INPUT_SELECTION, StepId.MANUAL_EDIT})

# progress stays below this until the exit code is known
PROGRESS_CAP = 95

Observer = Callable[[StepEvent], None]
StepHandler = Callable[[PipelineStep], StepStatus]


class PipelineOrchestrator:

    '''
    Owns the eight pipeline steps and the run context.

    Triggers (start, select_input, finish_editing, recompile_project, retry,
    restart) return a Future and never block the caller. Only one trigger
    runs at a time; calling another while busy raises PipelineBusyError.
    A step that fails stops the chain, and triggering it again first resets
    it and every later step to PENDING.

    Subscribers receive a StepEvent for every status, progress and message
    change, on the worker thread.
    '''

    def __init__(
        self,
        workspace: WorkspaceManager,
        provisioner: ToolProvisioner,
        runner: ExternalToolRunner,
        log: LogSink,
        java: str = "java",
        process_timeout: Optional[float] = None,
    ):
        self.workspace = workspace
        self.provisioner = provisioner
        self.runner = runner
        self.log = log
        self.java = java
        self.apktool = APKTool(runner, provisioner.local_path(ToolId.APKTOOL), log, java, process_timeout)
        self.signer = APKSigner(runner, provisioner.local_path(ToolId.UBER_APK_SIGNER), log, java, process_timeout)

        self._observers: List[Observer] = []
        self._observers_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._busy = False
        self._last_input: Optional[str] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pipeline")

        self.steps: Dict[StepId, PipelineStep] = {sid: PipelineStep(sid, self._publish) for sid in StepId}
        self.context = RunContext()
        self.current_step = StepId.TOOL_CHECK
        self.status_message = "Ready"

        self._handlers: Dict[StepId, StepHandler] = {
            StepId.TOOL_CHECK: self._check_tools,
            StepId.TOOL_PROVISION: self._provision_tools,
            StepId.INPUT_SELECTION: lambda step: self._select_input(step, self._last_input),
            StepId.UNPACK: self._unpack,
            StepId.MANUAL_EDIT: self._finish_editing,
            StepId.REPACK: self._repack,
            StepId.SIGN: self._sign,
            StepId.DONE: self._finish,
        }

    # ---------- State ----------

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_complete(self) -> bool:
        return self.steps[StepId.DONE].status is StepStatus.COMPLETED

    def step(self, step_id: StepId) -> PipelineStep:
        return self.steps[step_id]

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register `observer` for step events; returns a function that unsubscribes it."""
        with self._observers_lock:
            self._observers.append(observer)

        def unsubscribe():
            with self._observers_lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # ---------- Triggers ----------

    def start(self) -> Future:
        """Run the tool check and provisioning, then stop at input selection."""
        return self._trigger(StepId.TOOL_CHECK, self._run_chain, StepId.TOOL_CHECK)

    def select_input(self, path: str) -> Future:
        """Pick the APK to work on; unpacking follows automatically."""
        def run():
            self._last_input = path
            self._run_chain(StepId.INPUT_SELECTION)
        return self._trigger(StepId.INPUT_SELECTION, run)

    def finish_editing(self) -> Future:
        """Signal that manual edits are done; repack, sign and finish follow."""
        return self._trigger(StepId.MANUAL_EDIT, self._run_chain, StepId.MANUAL_EDIT)

    def recompile_project(self, project_name: str) -> Future:
        """
        Repack and sign a project already in the workspace, without unpacking.

        Available whenever the tools are ready and nothing is running. Any
        run in progress past tool provisioning is discarded.
        """
        with self._state_lock:
            if self._busy:
                raise PipelineBusyError("A step is already running")
            for sid in (StepId.TOOL_CHECK, StepId.TOOL_PROVISION):
                if self.steps[sid].status not in (StepStatus.COMPLETED, StepStatus.SKIPPED):
                    raise PipelineStateError(f"Recompiling is not available until {self.steps[sid].title} has finished")
            if project_name not in self.workspace.list_completed_projects():
                raise PipelineStateError(f"No decompiled project named {project_name!r} in the workspace")
            self._busy = True
        return self._submit(self._recompile_existing, project_name)

    def retry(self) -> Future:
        """Run the failed current step again."""
        with self._state_lock:
            if self._busy:
                raise PipelineBusyError("A step is already running")
            step = self.steps[self.current_step]
            if step.status is not StepStatus.FAILED:
                raise PipelineStateError(f"Nothing to retry: {step.title} is {step.status.value}")
            self._busy = True
        return self._submit(self._run_chain, step.id)

    def restart(self) -> Future:
        """Throw away the current run and start again from the tool check."""
        with self._state_lock:
            if self._busy:
                raise PipelineBusyError("A step is already running")
            self._busy = True
        return self._submit(self._restart)

    def close(self):
        self._executor.shutdown(wait=True)
        self.provisioner.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ---------- Sequencing ----------

    def _trigger(self, step_id: StepId, fn, *args) -> Future:
        with self._state_lock:
            if self._busy:
                raise PipelineBusyError("A step is already running")
            self._ensure_ready(step_id)
            self._busy = True
        return self._submit(fn, *args)

    def _submit(self, fn, *args) -> Future:
        def job():
            try:
                fn(*args)
            finally:
                with self._state_lock:
                    self._busy = False

        try:
            return self._executor.submit(job)
        except RuntimeError:
            with self._state_lock:
                self._busy = False
            raise

    def _ensure_ready(self, step_id: StepId):
        step = self.steps[step_id]
        for earlier in StepId:
            if earlier >= step_id:
                break
            if self.steps[earlier].status not in (StepStatus.COMPLETED, StepStatus.SKIPPED):
                raise PipelineStateError(
                    f"{step.title} is not available until {self.steps[earlier].title} has finished"
                )
        if step.status in (StepStatus.PENDING, StepStatus.FAILED):
            return
        if step.status is StepStatus.IN_PROGRESS and step_id in USER_GATED:
            return
        raise PipelineStateError(f"{step.title} is already {step.status.value}")

    def _run_chain(self, step_id: StepId):
        while True:
            result = self._execute(step_id, self._handlers[step_id])
            if result is StepStatus.FAILED or step_id is StepId.DONE:
                return
            step_id = StepId(step_id + 1)
            if step_id in USER_GATED:
                self._await_user(step_id)
                return

    def _execute(self, step_id: StepId, handler: StepHandler) -> StepStatus:
        step = self.steps[step_id]
        if step.status is StepStatus.FAILED:
            self._reset_from(step_id)
        self.current_step = step_id
        if step.status is StepStatus.PENDING:
            step.status = StepStatus.IN_PROGRESS
        step.progress = 0
        self.log.info(f"Step started: {step.title}")

        try:
            result = handler(step)
        except (WorkbenchError, OSError) as e:
            self.log.error(f"{step.title} failed: {e}")
            return self._fail(step, str(e))
        except Exception as e:
            self.log.exception(f"Unexpected error during {step.title}")
            return self._fail(step, f"Unexpected error: {e}")

        if result is StepStatus.COMPLETED:
            step.progress = 100
        step.status = result
        self.log.info(f"Step {result.value}: {step.title}")
        return result

    def _fail(self, step: PipelineStep, message: str) -> StepStatus:
        step.message = message
        step.status = StepStatus.FAILED
        return StepStatus.FAILED

    def _reset_from(self, step_id: StepId):
        for sid in StepId:
            if sid >= step_id:
                self.steps[sid].reset()

    def _await_user(self, step_id: StepId):
        self.current_step = step_id
        step = self.steps[step_id]
        if step_id is StepId.MANUAL_EDIT:
            step.status = StepStatus.IN_PROGRESS
            step.message = f"Ready for editing: {self.workspace.project_dir(self.context.project_name)}"
        else:
            step.message = "Ready to select an APK"

    def _restart(self):
        self.log.info("Restarting pipeline")
        for step in self.steps.values():
            step.reset()
        self.context = RunContext()
        self._last_input = None
        self.current_step = StepId.TOOL_CHECK
        self._run_chain(StepId.TOOL_CHECK)

    def _recompile_existing(self, project_name: str):
        self.log.info(f"Recompiling existing project: {project_name}")
        self._reset_from(StepId.INPUT_SELECTION)
        self.context = RunContext(project_name=project_name, tools=self.context.tools)
        self._last_input = None
        for sid in (StepId.INPUT_SELECTION, StepId.UNPACK):
            step = self.steps[sid]
            self.current_step = sid
            step.status = StepStatus.IN_PROGRESS
            step.message = f"Using existing project: {project_name}"
            step.status = StepStatus.SKIPPED
        self._run_chain(StepId.MANUAL_EDIT)

    def _publish(self, event: StepEvent):
        if event.field == "message":
            self.status_message = event.value
        with self._observers_lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(event)
            except Exception:
                self.log.exception(f"Observer failed on {event.step_id.name} {event.field}")

    @staticmethod
    def _line_reporter(step: PipelineStep, increment: int):
        def report(line: str):
            step.message = line
            step.progress = min(step.progress + increment, PROGRESS_CAP)
        return report

    # ---------- Steps ----------

    def _check_tools(self, step: PipelineStep) -> StepStatus:
        step.message = "Checking Java installation..."
        version = dependencies.checkJava(self.runner, self.java)
        self.log.info(f"Java found: {version}")
        step.message = f"Java found: {version}"
        step.progress = 30

        for tool_id in ToolId:
            descriptor = self.provisioner.ensure(tool_id)
            self.context.tools[tool_id] = descriptor
            state = "installed" if descriptor.is_present_locally else "missing"
            step.message = f"{descriptor.name} {descriptor.resolved_version}: {state}"
            step.progress = min(step.progress + 30, PROGRESS_CAP)
        return StepStatus.COMPLETED

    def _provision_tools(self, step: PipelineStep) -> StepStatus:
        tool_ids = list(ToolId)
        span = 100 // len(tool_ids)
        missing = [self.context.tools[t] for t in tool_ids if not self.context.tools[t].is_present_locally]
        if not missing:
            step.message = "All tools ready"
            return StepStatus.SKIPPED

        for descriptor in missing:
            base = tool_ids.index(descriptor.tool_id) * span
            step.message = f"Downloading {descriptor.name} {descriptor.resolved_version}..."

            def on_progress(percent, base=base):
                step.progress = min(base + percent * span // 100, PROGRESS_CAP)

            if not self.provisioner.download(descriptor, on_progress):
                raise NetworkError(f"Failed to download {descriptor.name} from {descriptor.download_url}")

        step.message = "All tools ready"
        return StepStatus.COMPLETED

    def _select_input(self, step: PipelineStep, path: Optional[str]) -> StepStatus:
        if not path or not os.path.isfile(path):
            raise FilesystemError(f"APK file not found: {path}")
        self.context.select_input(path)
        self.log.info(f"Selected APK: {self.context.selected_input_path}")
        step.message = f"Selected APK file: {os.path.basename(path)}"
        return StepStatus.COMPLETED

    def _unpack(self, step: PipelineStep) -> StepStatus:
        step.message = "Starting decompilation..."
        self.workspace.reset_workspace()
        target = self.workspace.prepare_workspace_for(self.context.project_name)
        self.apktool.decompile(self.context.selected_input_path, target,
                               self.workspace.workspace_dir(), self._line_reporter(step, 5))
        step.message = "Decompilation completed"
        return StepStatus.COMPLETED

    def _finish_editing(self, step: PipelineStep) -> StepStatus:
        if self.context.project_name not in self.workspace.list_completed_projects():
            raise FilesystemError("No decompiled project found in the workspace")
        step.message = "Editing completed"
        return StepStatus.COMPLETED

    def _repack(self, step: PipelineStep) -> StepStatus:
        project = self.context.project_name
        output_apk = self.workspace.recompiled_apk_path(project)
        self.workspace.remove_artifact(output_apk)
        step.message = "Starting recompilation..."
        self.apktool.recompile(self.workspace.project_dir(project), output_apk,
                               self.workspace.workspace_dir(), self._line_reporter(step, 5))
        self.context.recompiled_apk = output_apk
        step.message = "Recompilation completed"
        return StepStatus.COMPLETED

    def _sign(self, step: PipelineStep) -> StepStatus:
        apk = self.context.recompiled_apk
        signed = self.workspace.signed_apk_path(apk)
        self.workspace.remove_artifact(signed)
        step.message = "Starting APK signing..."
        self.signer.sign(apk, signed, self._line_reporter(step, 10))
        self.context.signed_apk = signed
        step.message = "APK signed successfully"
        return StepStatus.COMPLETED

    def _finish(self, step: PipelineStep) -> StepStatus:
        step.message = "Process completed successfully"
        return StepStatus.COMPLETED
