import os
import shutil
from typing import List

from apk_workbench.core.errors import ExitFailure, LaunchError
from apk_workbench.core.tool_runner import ExternalToolRunner

JAVA_DOWNLOAD_URL = "https://www.oracle.com/java/technologies/downloads/"


def checkJava(runner: ExternalToolRunner, java: str = "java") -> str:
    """Make sure a Java runtime can be started and return its version string."""
    if os.sep not in java and shutil.which(java) is None:
        raise LaunchError(f"Java was not found on the PATH. Install it from {JAVA_DOWNLOAD_URL}")

    # java -version writes to stderr
    lines: List[str] = []
    outcome = runner.run(java, ["-version"], on_output_line=lines.append, on_error_line=lines.append)
    if not outcome.ok:
        raise ExitFailure("java -version", outcome.exit_code)

    output = "\n".join(lines)
    if "version" not in output:
        raise LaunchError(f"'{java} -version' did not report a version. Install Java from {JAVA_DOWNLOAD_URL}")
    return parseJavaVersion(output)


def parseJavaVersion(output: str) -> str:
    # e.g. openjdk version "17.0.9" 2023-10-17
    first = output.strip().split("\n")[0]
    start = first.find('"') + 1
    end = first.rfind('"')
    if start > 0 and end > start:
        return first[start:end]
    return "Unknown"
