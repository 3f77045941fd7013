"""
APK signing module, wrapping uber-apk-signer.
"""
import os
from typing import Callable, Optional

from .errors import ExitFailure, ToolTimeout
from .tool_runner import ExternalToolRunner
from apk_workbench.utils.logger import LogSink


class APKSigner:
    """Signs a rebuilt APK with the uber-apk-signer debug key."""

    def __init__(self, runner: ExternalToolRunner, jar_path: str, log: LogSink,
                 java: str = "java", timeout: Optional[float] = None):
        self.runner = runner
        self.jar_path = os.path.abspath(jar_path)
        self.log = log
        self.java = java
        self.timeout = timeout

    def sign(self, apk_path: str, expected_output: str, progress: Optional[Callable[[str], None]] = None) -> str:
        out_dir = os.path.dirname(os.path.abspath(apk_path))
        self.log.info(f"Signing APK: {apk_path}")

        def on_output(line):
            self.log.info(f"UberSigner Output: {line}")
            if progress:
                progress(line)

        # uber-apk-signer reports normal progress on stderr
        def on_error(line):
            self.log.info(f"UberSigner Info: {line}")
            if progress:
                progress(f"Signing: {line}")

        outcome = self.runner.run(self.java, ["-jar", self.jar_path, "--apks", apk_path, "--out", out_dir],
                                  out_dir, on_output, on_error, timeout=self.timeout)
        if not outcome.completed:
            self.log.error(f"UberSigner timed out after {self.timeout} seconds")
            raise ToolTimeout("UberSigner", self.timeout)
        if outcome.exit_code != 0:
            self.log.error(f"UberSigner failed with exit code: {outcome.exit_code}")
            raise ExitFailure("UberSigner", outcome.exit_code)

        # exit code 0 is the success criterion here, unlike the apktool build
        if not os.path.isfile(expected_output):
            self.log.warning(f"UberSigner succeeded but {expected_output} was not found")
        self.log.info("Successfully signed APK")
        return expected_output
