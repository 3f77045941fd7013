"""
Error types raised by the workbench.

Everything a step can fail with derives from WorkbenchError so the
orchestrator can turn it into a failed step with a readable message.
"""


class WorkbenchError(RuntimeError): pass


class LaunchError(WorkbenchError):
    """The external process could not be started at all."""


class ExitFailure(WorkbenchError):

    def __init__(self, tool: str, exit_code, message: str = None):
        self.tool = tool
        self.exit_code = exit_code
        super().__init__(message or f"{tool} failed with exit code: {exit_code}")


class ToolTimeout(ExitFailure):

    def __init__(self, tool: str, timeout: float):
        self.timeout = timeout
        super().__init__(tool, None, f"{tool} did not finish within {timeout:g} seconds and was killed")


class ArtifactMissing(WorkbenchError):

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Expected output was not produced: {path}")


class NetworkError(WorkbenchError): pass


class FilesystemError(WorkbenchError): pass


# orchestrator state errors, raised to the caller of a trigger

class PipelineStateError(WorkbenchError): pass


class PipelineBusyError(PipelineStateError): pass


class InvalidTransition(PipelineStateError): pass
