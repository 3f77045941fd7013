"""Workspace and output directory handling."""

import os

import pytest

from apk_workbench.core.errors import FilesystemError
from apk_workbench.core.workspace import WorkspaceManager


def test_directories_are_created_on_first_access(tmp_path):
    ws = WorkspaceManager(str(tmp_path / "base"))
    assert not (tmp_path / "base").exists()

    assert ws.workspace_dir() == str(tmp_path / "base" / "workspace")
    assert ws.output_dir() == str(tmp_path / "base" / "output")
    assert (tmp_path / "base" / "workspace").is_dir()
    assert (tmp_path / "base" / "output").is_dir()


def test_existing_directories_are_reused(workspace):
    marker = os.path.join(workspace.workspace_dir(), "keep.txt")
    with open(marker, "w") as f:
        f.write("x")
    workspace.workspace_dir()
    assert os.path.exists(marker)


def test_empty_workspace_lists_nothing(workspace):
    assert workspace.list_completed_projects() == []


def test_only_directories_are_projects(workspace):
    root = workspace.workspace_dir()
    os.makedirs(os.path.join(root, "alpha", "smali"))
    os.makedirs(os.path.join(root, "beta"))
    with open(os.path.join(root, "notes.txt"), "w") as f:
        f.write("not a project")

    assert sorted(workspace.list_completed_projects()) == ["alpha", "beta"]


def test_prepare_replaces_previous_project(workspace):
    old = os.path.join(workspace.workspace_dir(), "sample")
    os.makedirs(os.path.join(old, "res", "values"))
    stale = os.path.join(old, "res", "values", "strings.xml")
    with open(stale, "w") as f:
        f.write("<resources/>")

    path = workspace.prepare_workspace_for("sample")

    assert path == old
    assert not os.path.exists(path)
    assert not os.path.exists(stale)


def test_prepare_leaves_other_projects_alone(workspace):
    other = os.path.join(workspace.workspace_dir(), "other")
    os.makedirs(other)
    workspace.prepare_workspace_for("sample")
    assert os.path.isdir(other)


@pytest.mark.parametrize("name", ["", ".", "..", os.path.join("a", "b")])
def test_prepare_rejects_bad_names(workspace, name):
    with pytest.raises(FilesystemError):
        workspace.prepare_workspace_for(name)


def test_reset_workspace_wipes_everything(workspace):
    root = workspace.workspace_dir()
    os.makedirs(os.path.join(root, "old-project", "smali"))
    workspace.reset_workspace()
    assert os.path.isdir(root)
    assert workspace.list_completed_projects() == []


def test_artifact_paths(workspace):
    recompiled = workspace.recompiled_apk_path("sample")
    assert recompiled == os.path.join(workspace.output_dir(), "sample_recompiled.apk")
    assert workspace.signed_apk_path(recompiled) == os.path.join(
        workspace.output_dir(), "sample_recompiled_signed.apk")


def test_remove_artifact(workspace):
    apk = workspace.recompiled_apk_path("sample")
    with open(apk, "wb") as f:
        f.write(b"old")
    workspace.remove_artifact(apk)
    assert not os.path.exists(apk)
    # missing files are fine
    workspace.remove_artifact(apk)


def test_creation_failure_is_a_filesystem_error(tmp_path):
    blocker = tmp_path / "base"
    blocker.write_text("a file where a directory should be")
    ws = WorkspaceManager(str(blocker))
    with pytest.raises(FilesystemError):
        ws.workspace_dir()


def test_prepare_rejects_the_alternate_separator(workspace, monkeypatch):
    # Windows treats "/" as a separator too
    monkeypatch.setattr(os, "altsep", "/")
    with pytest.raises(FilesystemError):
        workspace.prepare_workspace_for("a/b")
