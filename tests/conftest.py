"""Pytest configuration and shared fixtures."""

import sys

import pytest

from apk_workbench.core.orchestrator import PipelineOrchestrator
from apk_workbench.core.tool_provisioner import TOOL_SOURCES, ToolProvisioner
from apk_workbench.core.workspace import WorkspaceManager
from apk_workbench.utils.cli_tools import getArgs
from apk_workbench.utils.logger import LogSink
from tests.helpers import FakeRunner, FakeSession


@pytest.fixture(autouse=True)
def reset_cli_args():
    """getArgs caches the first parse; every test starts without it."""
    if hasattr(getArgs, "parsed_args"):
        del getArgs.parsed_args
    yield
    if hasattr(getArgs, "parsed_args"):
        del getArgs.parsed_args


@pytest.fixture
def log(tmp_path):
    sink = LogSink(str(tmp_path / "logs" / "app.log"))
    yield sink
    sink.close()


@pytest.fixture
def workspace(tmp_path, log):
    return WorkspaceManager(str(tmp_path), log)


@pytest.fixture
def tools_dir(tmp_path):
    path = tmp_path / "tools"
    path.mkdir()
    return path


@pytest.fixture
def install_tools(tools_dir):
    def install():
        for source in TOOL_SOURCES.values():
            (tools_dir / source.file_name).write_bytes(b"PK\x03\x04jar")
    return install


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def make_pipeline(workspace, tools_dir, log, runner, session):
    created = []

    def make(offline=True, timeout=None):
        provisioner = ToolProvisioner(str(tools_dir), log, session=session, offline=offline)
        # an absolute path skips the PATH lookup; FakeRunner answers -version
        pipeline = PipelineOrchestrator(workspace, provisioner, runner, log,
                                        java=sys.executable, process_timeout=timeout)
        created.append(pipeline)
        return pipeline

    yield make
    for pipeline in created:
        pipeline.close()


@pytest.fixture
def sample_apk(tmp_path):
    path = tmp_path / "inputs" / "sample.apk"
    path.parent.mkdir()
    path.write_bytes(b"PK\x03\x04sample")
    return str(path)
