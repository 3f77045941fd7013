''' Spawning external tools and streaming their output '''

import subprocess
import threading
from typing import Callable, List, Optional

from .errors import LaunchError
from .models import ExitOutcome

LineCallback = Optional[Callable[[str], None]]

# keep java from flashing a console window on Windows
_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)


class ExternalToolRunner:

    '''
    Runs one external process per call.

    Both stdout and stderr are piped and read on their own threads, so each
    line reaches its callback while the process is still running. Lines keep
    their order within a stream; the two streams are not ordered relative to
    each other.

    The runner keeps no state between calls.

    Examples:
        >>> ExternalToolRunner().run("java", ["-version"], on_error_line=print)
        ExitOutcome(exit_code=0, completed=True)
    '''

    def run(
        self,
        executable: str,
        args: List[str],
        working_dir: Optional[str] = None,
        on_output_line: LineCallback = None,
        on_error_line: LineCallback = None,
        timeout: Optional[float] = None,
    ) -> ExitOutcome:
        """
        Block until the process exits and return its outcome.

        With `timeout` set the process is killed once it expires and the
        outcome comes back with completed=False. Raises LaunchError when the
        process cannot be started.
        """
        cmd = [executable, *args]
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=working_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                creationflags=_NO_WINDOW,
            )
        except OSError as e:
            raise LaunchError(f"Failed to start {' '.join(cmd)}: {e}") from e

        callback_errors: List[BaseException] = []
        readers = [
            self._start_reader(proc.stdout, on_output_line, callback_errors),
            self._start_reader(proc.stderr, on_error_line, callback_errors),
        ]

        completed = True
        try:
            exit_code = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            exit_code = proc.wait()
            completed = False
        finally:
            for reader in readers:
                reader.join()

        if callback_errors:
            raise callback_errors[0]
        return ExitOutcome(exit_code=exit_code, completed=completed)

    @staticmethod
    def _start_reader(stream, callback: LineCallback, errors: List[BaseException]) -> threading.Thread:
        def pump():
            with stream:
                for raw in stream:
                    line = raw.rstrip("\r\n")
                    # the pipe is drained even after a callback fails, otherwise the child blocks
                    if not line or callback is None or errors:
                        continue
                    try:
                        callback(line)
                    except Exception as e:
                        errors.append(e)

        thread = threading.Thread(target=pump, daemon=True)
        thread.start()
        return thread
