from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests
from packaging.version import InvalidVersion, Version

from .errors import NetworkError
from .models import ToolDescriptor, ToolId
from apk_workbench.utils.logger import LogSink


@dataclass(frozen=True)
class ToolSource:
    name: str
    file_name: str
    latest_url: str
    fallback_version: str
    fallback_url: str
    skip_sources_jar: bool = False

    def accepts(self, asset_name: str) -> bool:
        if not asset_name.endswith(".jar"):
            return False
        return not (self.skip_sources_jar and "sources" in asset_name)


# Last known good releases, used whenever the GitHub API cannot be reached
TOOL_SOURCES: Dict[ToolId, ToolSource] = {
    ToolId.APKTOOL: ToolSource(
        name="APKTool",
        file_name="apktool.jar",
        latest_url="https://api.github.com/repos/iBotPeaches/Apktool/releases/latest",
        fallback_version="2.9.3",
        fallback_url="https://github.com/iBotPeaches/Apktool/releases/download/v2.9.3/apktool_2.9.3.jar",
        skip_sources_jar=True,
    ),
    ToolId.UBER_APK_SIGNER: ToolSource(
        name="Uber APK Signer",
        file_name="uber-apk-signer.jar",
        latest_url="https://api.github.com/repos/patrickfav/uber-apk-signer/releases/latest",
        fallback_version="1.3.0",
        fallback_url="https://github.com/patrickfav/uber-apk-signer/releases/download/v1.3.0/uber-apk-signer-1.3.0.jar",
    ),
}


class ToolProvisioner:

    '''
    Locates the tool jars under `tools_dir` and downloads the missing ones.

    The release lookup is best effort: when GitHub is unreachable or answers
    with something unusable, the pinned fallback release is used instead.
    The HTTP session belongs to the provisioner unless one is passed in.
    '''

    CHUNK_SIZE = 1024 * 64
    # sent with the release lookup only, not with jar downloads
    API_HEADERS = {"Accept": "application/vnd.github+json"}

    def __init__(
        self,
        tools_dir: str,
        log: LogSink,
        session: Optional[requests.Session] = None,
        user_agent: str = "apk-workbench",
        timeout: float = 30,
        offline: bool = False,
    ):
        self.tools_dir = os.path.abspath(tools_dir)
        self.log = log
        self.timeout = timeout
        self.offline = offline
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        os.makedirs(self.tools_dir, exist_ok=True)

    # ---------- Public API ----------

    def local_path(self, tool_id: ToolId) -> str:
        return os.path.join(self.tools_dir, TOOL_SOURCES[tool_id].file_name)

    def ensure(self, tool_id: ToolId) -> ToolDescriptor:
        """
        Describe a tool: where it lives, whether it is there, and where to get it.

        Never raises for lookup failures.
        """
        source = TOOL_SOURCES[tool_id]
        descriptor = ToolDescriptor(
            tool_id=tool_id,
            name=source.name,
            local_path=self.local_path(tool_id),
            resolved_version=source.fallback_version,
            download_url=source.fallback_url,
        )

        if self.offline:
            self.log.info(f"Offline mode, using pinned {source.name} {source.fallback_version}")
            return descriptor

        try:
            version, url = self._resolve_latest(source)
        except NetworkError as e:
            self.log.warning(f"GitHub API failed for {source.name}, using fallback: {e}")
        else:
            descriptor.resolved_version = version
            descriptor.download_url = url

        return descriptor

    def download(self, descriptor: ToolDescriptor, on_progress: Optional[Callable[[int], None]] = None) -> bool:
        """
        Stream `descriptor.download_url` into `descriptor.local_path`.

        `on_progress` gets a percentage after each chunk when the server sends
        a Content-Length; without it no progress is reported. The file only
        appears at its final path once complete.
        """
        self.log.info(f"Downloading {descriptor.name} from {descriptor.download_url}")
        partial = descriptor.local_path + ".part"
        try:
            with self.session.get(descriptor.download_url, stream=True, timeout=self.timeout) as r:
                r.raise_for_status()
                total = int(r.headers.get("Content-Length") or 0)
                received = 0
                with open(partial, "wb") as f:
                    for chunk in r.iter_content(chunk_size=self.CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        received += len(chunk)
                        if total > 0 and on_progress is not None:
                            on_progress(min(100, received * 100 // total))
            os.replace(partial, descriptor.local_path)
        except (requests.RequestException, OSError, ValueError) as e:
            self.log.error(f"Failed to download {descriptor.name}: {e}")
            self._discard(partial)
            return False

        self.log.info(f"Successfully downloaded {descriptor.name} to {descriptor.local_path}")
        return True

    def close(self):
        if self._owns_session:
            self.session.close()

    # ---------- Internals ----------

    def _resolve_latest(self, source: ToolSource):
        try:
            r = self.session.get(source.latest_url, headers=self.API_HEADERS, timeout=self.timeout)
            r.raise_for_status()
            release = r.json()
        except (requests.RequestException, ValueError) as e:
            raise NetworkError(str(e)) from e

        if not isinstance(release, dict):
            raise NetworkError(f"unexpected release document from {source.latest_url}")

        assets = release.get("assets") or []
        if not isinstance(assets, list):
            raise NetworkError(f"unexpected assets list in release from {source.latest_url}")

        tag = str(release.get("tag_name") or "").lstrip("v")
        asset = next(
            (a for a in assets if isinstance(a, dict) and source.accepts(str(a.get("name", "")))),
            None,
        )
        if not tag or asset is None or not asset.get("browser_download_url"):
            raise NetworkError(f"no usable jar asset in release '{tag or '?'}'")

        return self._normalize_version(tag), asset["browser_download_url"]

    @staticmethod
    def _normalize_version(tag: str) -> str:
        try:
            return str(Version(tag))
        except InvalidVersion:
            return tag

    @staticmethod
    def _discard(path: str):
        try:
            os.remove(path)
        except OSError:
            pass
