"""
Command-line interface argument handling and console output.
"""

import argparse
import sys

from progress.bar import Bar
from termcolor import colored

from apk_workbench.core.models import StepEvent, StepId, StepStatus, STEP_TITLES


def getArgs(argv=None):
    # Only parse args once
    if not hasattr(getArgs, "parsed_args"):
        parser = argparse.ArgumentParser(
            prog="apk-workbench",
            description="apk-workbench - Decompile an APK with apktool, edit it, then recompile and sign it."
        )
        parser.add_argument("apk", nargs="?", help="The APK file to decompile.")
        parser.add_argument("--base-dir", help="Directory holding tools/, workspace/, output/ and logs/ (default: $APK_WORKBENCH_HOME or ~/.apk-workbench).")
        parser.add_argument("--java", default="java", help="Java executable used to run apktool and uber-apk-signer.")
        parser.add_argument("--timeout", type=float, default=None, help="Kill apktool/uber-apk-signer after this many seconds (default: wait forever).")
        parser.add_argument("--offline", help="Do not query GitHub for the latest tool releases; use the pinned versions.", action="store_true")
        parser.add_argument("--no-edit", help="Do not pause for manual editing between decompiling and recompiling.", action="store_true")
        parser.add_argument("--list-projects", help="List the decompiled projects in the workspace and exit.", action="store_true")
        parser.add_argument("--recompile", metavar="PROJECT", help="Recompile and sign a project already in the workspace, without decompiling an APK.")
        parser.add_argument("--clear-logs", help="Empty the log file before running.", action="store_true")
        parser.add_argument("-v", "--verbose", help="Enable verbose output.", action="store_true")

        # Store the parsed args
        getArgs.parsed_args = parser.parse_args(argv)

    # Return the parsed command line args
    return getArgs.parsed_args


def abort(msg):
    print(colored(msg, "red"))
    sys.exit(1)


def verbosePrint(msg):
    if getArgs().verbose:
        for line in msg.split("\n"):
            print(colored("    " + line, "light_grey"))


####################
# Warning print
####################
def warningPrint(msg):
    print(colored(msg, "yellow"))


def successPrint(msg):
    print(colored(msg, "green"))


class ConsoleObserver:

    '''
    Renders pipeline events: a progress bar while a step runs and one
    coloured line when it ends. Tool output is only shown with --verbose.
    '''

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._bar = None

    def __call__(self, event: StepEvent):
        title = STEP_TITLES[event.step_id]
        if event.field == "status":
            self._on_status(event.step_id, title, event.value)
        elif event.field == "progress" and self._bar is not None:
            self._bar.goto(event.value)
        elif event.field == "message" and self.verbose and event.value:
            if self._bar is not None:
                # keep the bar on its own line
                print()
            print(colored("    " + str(event.value), "light_grey"))

    def _on_status(self, step_id: StepId, title: str, status: StepStatus):
        if status is StepStatus.IN_PROGRESS:
            self._close_bar()
            if step_id is not StepId.MANUAL_EDIT:
                self._bar = Bar(f"[+] {title}", max=100)
            return
        self._close_bar()
        if status is StepStatus.COMPLETED:
            print(f"[+] {title}: " + colored("done", "green"))
        elif status is StepStatus.SKIPPED:
            warningPrint(f"[~] {title}: skipped")
        elif status is StepStatus.FAILED:
            print(colored(f"[!] {title}: failed", "red"))

    def _close_bar(self):
        if self._bar is not None:
            self._bar.finish()
            self._bar = None
