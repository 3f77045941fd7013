"""ExternalToolRunner against real child processes (the current interpreter)."""

import os
import sys
import time

import pytest

from apk_workbench.core.errors import LaunchError
from apk_workbench.core.tool_runner import ExternalToolRunner

PY = sys.executable


def run_py(code, **kwargs):
    return ExternalToolRunner().run(PY, ["-c", code], **kwargs)


def test_stdout_and_stderr_go_to_their_own_callbacks():
    out, err = [], []
    outcome = run_py(
        "import sys\n"
        "print('one'); print('two')\n"
        "print('oops', file=sys.stderr)\n",
        on_output_line=out.append,
        on_error_line=err.append,
    )
    assert outcome.exit_code == 0
    assert outcome.completed
    assert out == ["one", "two"]
    assert err == ["oops"]


def test_nonzero_exit_code_is_returned():
    outcome = run_py("import sys; sys.exit(3)")
    assert outcome.exit_code == 3
    assert outcome.completed
    assert not outcome.ok


def test_lines_arrive_while_the_process_runs(tmp_path):
    marker = tmp_path / "seen"
    code = (
        "import os, sys, time\n"
        "print('ready', flush=True)\n"
        f"marker = {str(marker)!r}\n"
        "deadline = time.time() + 10\n"
        "while not os.path.exists(marker):\n"
        "    if time.time() > deadline:\n"
        "        sys.exit(1)\n"
        "    time.sleep(0.05)\n"
    )

    def on_line(line):
        if line == "ready":
            marker.write_text("x")

    outcome = run_py(code, on_output_line=on_line)
    assert outcome.exit_code == 0


def test_blank_lines_are_dropped():
    out = []
    run_py("print('a'); print(); print('b')", on_output_line=out.append)
    assert out == ["a", "b"]


def test_working_directory_is_used(tmp_path):
    out = []
    run_py("import os; print(os.getcwd())", working_dir=str(tmp_path), on_output_line=out.append)
    assert os.path.samefile(out[0], tmp_path)


def test_missing_executable_raises_launch_error(tmp_path):
    with pytest.raises(LaunchError):
        ExternalToolRunner().run(str(tmp_path / "no-such-java"), ["-version"])


def test_timeout_kills_the_process():
    start = time.monotonic()
    outcome = run_py("import time; time.sleep(30)", timeout=0.5)
    assert not outcome.completed
    assert not outcome.ok
    assert time.monotonic() - start < 20


def test_callback_errors_surface_after_exit():
    def explode(line):
        raise ValueError(line)

    with pytest.raises(ValueError, match="boom"):
        run_py("print('boom'); print('more')", on_output_line=explode)


def test_output_without_callbacks_is_drained():
    # more than a pipe buffer's worth, with nobody listening
    outcome = run_py("import sys\nfor i in range(20000): print('x' * 20); print('y' * 20, file=sys.stderr)")
    assert outcome.exit_code == 0
