"""
Filesystem layout for unpacked projects and built packages.

    <base>/workspace/<project>/                 apktool output, edited by the user
    <base>/output/<project>_recompiled.apk      apktool build
    <base>/output/<project>_recompiled_signed.apk
"""
import os
import shutil
from typing import List, Optional

from apk_workbench.core.errors import FilesystemError
from apk_workbench.utils.logger import LogSink


class WorkspaceManager:

    def __init__(self, base_dir: str, log: Optional[LogSink] = None):
        self.base_dir = os.path.abspath(base_dir)
        self.log = log

    def workspace_dir(self) -> str:
        return self._ensure_dir(os.path.join(self.base_dir, "workspace"))

    def output_dir(self) -> str:
        return self._ensure_dir(os.path.join(self.base_dir, "output"))

    def reset_workspace(self) -> str:
        """Delete everything under the workspace and recreate it empty."""
        path = os.path.join(self.base_dir, "workspace")
        self._remove_tree(path)
        return self._ensure_dir(path)

    def prepare_workspace_for(self, input_name: str) -> str:
        """Return workspace/<input_name>, removing whatever a previous unpack left there."""
        separators = [s for s in (os.sep, os.altsep) if s]
        if not input_name or input_name in (".", "..") or any(s in input_name for s in separators):
            raise FilesystemError(f"Invalid project name: {input_name!r}")
        path = os.path.join(self.workspace_dir(), input_name)
        self._remove_tree(path)
        return path

    def list_completed_projects(self) -> List[str]:
        # order follows the filesystem; callers wanting a stable pick must sort
        workspace = self.workspace_dir()
        try:
            with os.scandir(workspace) as entries:
                return [e.name for e in entries if e.name and e.is_dir()]
        except OSError as e:
            raise FilesystemError(f"Failed to list projects in {workspace}: {e}") from e

    def project_dir(self, project_name: str) -> str:
        return os.path.join(self.workspace_dir(), project_name)

    def recompiled_apk_path(self, project_name: str) -> str:
        return os.path.join(self.output_dir(), f"{project_name}_recompiled.apk")

    @staticmethod
    def signed_apk_path(apk_path: str) -> str:
        apk_name = os.path.splitext(os.path.basename(apk_path))[0]
        return os.path.join(os.path.dirname(apk_path), f"{apk_name}_signed.apk")

    def remove_artifact(self, path: str):
        """Delete a stale build output so a new one is not mistaken for it."""
        self._remove_tree(path)

    # ---------- Internals ----------

    def _ensure_dir(self, path: str) -> str:
        if not os.path.isdir(path):
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"Failed to create directory {path}: {e}") from e
            if self.log:
                self.log.info(f"Created directory: {path}")
        return path

    def _remove_tree(self, path: str):
        if not os.path.lexists(path):
            return
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError as e:
            raise FilesystemError(f"Failed to delete {path}: {e}") from e
        if self.log:
            self.log.info(f"Removed previous contents: {path}")
