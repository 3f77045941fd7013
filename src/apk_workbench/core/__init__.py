"""Core package for the APK processing pipeline."""

from .apk_signer import APKSigner
from .apk_tool import APKTool
from .orchestrator import PipelineOrchestrator
from .tool_provisioner import ToolProvisioner
from .tool_runner import ExternalToolRunner
from .workspace import WorkspaceManager

__all__ = [
    "APKSigner",
    "APKTool",
    "ExternalToolRunner",
    "PipelineOrchestrator",
    "ToolProvisioner",
    "WorkspaceManager",
]
