''' ApkTool related functions '''

import os
from typing import Callable, List, Optional

from packaging.version import InvalidVersion, Version, parse as parse_version

from .errors import ArtifactMissing, ExitFailure, ToolTimeout
from .tool_runner import ExternalToolRunner
from apk_workbench.utils.logger import LogSink

ProgressCallback = Optional[Callable[[str], None]]


class APKTool:

    '''
    Drives apktool through `java -jar apktool.jar`.

    Every output line goes to the log and to the caller's progress callback;
    stderr lines are reported with an "Error: " prefix. Failures raise
    ExitFailure (or ToolTimeout / ArtifactMissing) so the caller can fail
    the step with the message.

    Examples:
        >>> APKTool(runner, "tools/apktool.jar", log).decompile("app.apk", "workspace/app", "workspace")
    '''

    def __init__(self, runner: ExternalToolRunner, jar_path: str, log: LogSink,
                 java: str = "java", timeout: Optional[float] = None):
        self.runner = runner
        self.jar_path = os.path.abspath(jar_path)
        self.log = log
        self.java = java
        self.timeout = timeout

    def decompile(self, apk_path: str, output_dir: str, working_dir: str, progress: ProgressCallback = None) -> str:
        self.log.info(f"Decompiling APK: {apk_path} to {output_dir}")
        self._run(["d", apk_path, "-o", output_dir, "-f"], working_dir, progress, "APKTool")
        self.log.info(f"Successfully decompiled APK to {output_dir}")
        return output_dir

    def recompile(self, project_dir: str, output_apk: str, working_dir: str, progress: ProgressCallback = None) -> str:
        """apktool b -> path of the rebuilt APK, which must exist afterwards."""
        self.log.info(f"Recompiling project: {project_dir} to {output_apk}")
        self._run(["b", project_dir, "-o", output_apk], working_dir, progress, "APKTool Build")
        if not os.path.isfile(output_apk):
            self.log.error(f"APKTool build exited cleanly but {output_apk} is missing")
            raise ArtifactMissing(output_apk)
        self.log.info(f"Successfully recompiled APK to {output_apk}")
        return output_apk

    def version(self) -> Version:
        lines: List[str] = []
        outcome = self.runner.run(self.java, ["-jar", self.jar_path, "--version"],
                                  on_output_line=lines.append, timeout=self.timeout)
        if not outcome.ok or not lines:
            raise ExitFailure("APKTool", outcome.exit_code)
        version_str = lines[0].strip().split("-")[0].strip()
        try:
            return parse_version(version_str)
        except InvalidVersion as e:
            raise ExitFailure("APKTool", outcome.exit_code, f"Unrecognised apktool version: {lines[0]!r}") from e

    def _run(self, args: List[str], working_dir: str, progress: ProgressCallback, label: str):
        def on_output(line):
            self.log.info(f"{label} Output: {line}")
            if progress:
                progress(line)

        def on_error(line):
            self.log.error(f"{label} Error: {line}")
            if progress:
                progress(f"Error: {line}")

        outcome = self.runner.run(self.java, ["-jar", self.jar_path, *args], working_dir,
                                  on_output, on_error, timeout=self.timeout)
        if not outcome.completed:
            self.log.error(f"{label} timed out after {self.timeout} seconds")
            raise ToolTimeout("APKTool", self.timeout)
        if outcome.exit_code != 0:
            self.log.error(f"{label} failed with exit code: {outcome.exit_code}")
            raise ExitFailure("APKTool", outcome.exit_code)
