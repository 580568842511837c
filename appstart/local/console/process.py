import sys
import logging
from pathlib import Path
from typing import List
from appstart.local.global_config import BuildInfo
from appstart.local.external import run_upgrade
from appstart.local.console.handler import print_help, print_version, run_supervisor

log = logging.getLogger(__name__)

VERSION_COMMANDS = ("version", "-v", "--version")
HELP_COMMANDS = ("help", "-h", "--help")


def execute_command(command: str, args: List[str], build_info: BuildInfo, root_dir: Path) -> int:
    """
    Executes a single command from the command line.

    :param command: The subcommand (e.g., 'upgrade', 'version'), or '' to run the app.
    :param args: The arguments following the subcommand.
    :param build_info: The build configuration of this executable.
    :param root_dir: The installation root.
    :return int: The process exit status.
    """
    log.debug(f"Executing command: {command!r}, args: {args}")

    if command == "":
        return run_supervisor(build_info, root_dir)

    if command == "upgrade":
        return run_upgrade(root_dir, args)

    if command in VERSION_COMMANDS:
        print_version(build_info)
        return 0

    if command in HELP_COMMANDS:
        print_help()
        return 0

    print(f"Unknown command: {command}\n", file=sys.stderr)
    print_help()
    return 1
