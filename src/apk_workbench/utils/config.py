"""
Runtime configuration, built once from the command line and passed down.
"""
import os
from dataclasses import dataclass
from typing import Optional

HOME_ENV = "APK_WORKBENCH_HOME"


def defaultBaseDir() -> str:
    return os.environ.get(HOME_ENV) or os.path.join(os.path.expanduser("~"), ".apk-workbench")


@dataclass
class WorkbenchConfig:
    base_dir: str
    java: str = "java"
    process_timeout: Optional[float] = None
    offline: bool = False
    user_agent: str = "APK-Workbench/1.0"
    http_timeout: float = 30
    verbose: bool = False

    def __post_init__(self):
        self.base_dir = os.path.abspath(os.path.expanduser(self.base_dir))
        if self.process_timeout is not None and self.process_timeout <= 0:
            self.process_timeout = None

    @property
    def tools_dir(self) -> str:
        return os.path.join(self.base_dir, "tools")

    @property
    def log_file(self) -> str:
        return os.path.join(self.base_dir, "logs", "app.log")

    @classmethod
    def from_args(cls, args) -> "WorkbenchConfig":
        return cls(
            base_dir=args.base_dir or defaultBaseDir(),
            java=args.java,
            process_timeout=args.timeout,
            offline=args.offline,
            verbose=args.verbose,
        )
