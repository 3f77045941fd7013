"""
Main entry point for the apk-workbench tool.
"""
import sys

from termcolor import colored

#   core imports

from apk_workbench.core.errors import PipelineStateError, WorkbenchError
from apk_workbench.core.models import StepStatus
from apk_workbench.core.orchestrator import PipelineOrchestrator
from apk_workbench.core.tool_provisioner import ToolProvisioner
from apk_workbench.core.tool_runner import ExternalToolRunner
from apk_workbench.core.workspace import WorkspaceManager

#   utility imports

from apk_workbench.utils.cli_tools import ConsoleObserver, abort, getArgs, successPrint, verbosePrint, warningPrint
from apk_workbench.utils.config import WorkbenchConfig
from apk_workbench.utils.logger import LogSink, setup_logger


def abortIfFailed(pipeline, log):
    step = pipeline.step(pipeline.current_step)
    if step.status is StepStatus.FAILED:
        abort(f"Error: {step.title} failed: {step.message}\nSee {log.path} for details.")


def main(argv=None):
    # Grab argz
    args = getArgs(argv)
    config = WorkbenchConfig.from_args(args)

    setup_logger(config.verbose)
    log = LogSink(config.log_file)
    if args.clear_logs:
        log.clear()

    workspace = WorkspaceManager(config.base_dir, log)

    # Listing only
    if args.list_projects:
        projects = sorted(workspace.list_completed_projects())
        if not projects:
            warningPrint("[!] No decompiled projects in " + workspace.workspace_dir())
        for name in projects:
            print(name)
        log.close()
        return

    if not args.apk and not args.recompile:
        log.close()
        abort("Error: no APK given. Run with --help for usage.")

    provisioner = ToolProvisioner(config.tools_dir, log, user_agent=config.user_agent,
                                  timeout=config.http_timeout, offline=config.offline)

    try:
        with PipelineOrchestrator(workspace, provisioner, ExternalToolRunner(), log,
                                  java=config.java, process_timeout=config.process_timeout) as pipeline:
            pipeline.subscribe(ConsoleObserver(config.verbose))

            # Java, apktool and uber-apk-signer
            pipeline.start().result()
            abortIfFailed(pipeline, log)
            try:
                print(f"Using apktool v{pipeline.apktool.version()}")
            except WorkbenchError as e:
                warningPrint(f"[!] Could not determine the apktool version: {e}")

            if args.recompile:
                # Existing project, straight to recompile and sign
                try:
                    pipeline.recompile_project(args.recompile).result()
                except PipelineStateError as e:
                    abort(f"Error: {e}. Use --list-projects to see what is available.")
                abortIfFailed(pipeline, log)
            else:
                # Decompile
                pipeline.select_input(args.apk).result()
                abortIfFailed(pipeline, log)

                project_dir = workspace.project_dir(pipeline.context.project_name)
                if not args.no_edit:
                    print(f"[+] Project decompiled to {colored(project_dir, 'green')}")
                    try:
                        input("[?] Edit the project, then press Enter to recompile and sign... ")
                    except EOFError:
                        print()
                else:
                    verbosePrint(f"Skipping manual edit of {project_dir}")

                # Recompile, sign
                pipeline.finish_editing().result()
                abortIfFailed(pipeline, log)

            successPrint(f"[+] Recompiled APK: {pipeline.context.recompiled_apk}")
            successPrint(f"[+] Signed APK: {pipeline.context.signed_apk}")
            print("[+] Done")
    except KeyboardInterrupt:
        sys.exit(130)
    finally:
        log.close()


if __name__ == '__main__':
    main()
