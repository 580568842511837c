import os
import sys
import logging
import setproctitle
from pathlib import Path
from appstart.log import set_console_level
from appstart.local.global_config import BuildInfo
from appstart.local.supervisor import Supervisor

log = logging.getLogger(__name__)


def run_supervisor(build_info: BuildInfo, root_dir: Path) -> int:
    """
    Handles the default command: runs the frontend and backend until interrupted.

    :return: The process exit status.
    """
    setproctitle.setproctitle(f"{build_info.name} - Supervisor")
    log.debug(f"Supervisor {build_info.describe()} starting in {root_dir} (PID {os.getpid()}).")
    return Supervisor(build_info, root_dir).run()


def print_version(build_info: BuildInfo) -> None:
    print(build_info.describe())


def enable_verbose_logging() -> None:
    """Switches console output to DEBUG level."""
    set_console_level(logging.DEBUG)
    log.debug("Verbose logging enabled.")


def print_help() -> None:
    """Prints the usage text."""
    prog = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "appstart"
    print(f"Usage: {prog} [command]\n")
    print("Commands:")
    print("  (none)    Start the application (default)")
    print("  upgrade   Upgrade base template to latest version")
    print("  version   Show version information")
    print("  help      Show this help message")
    print("")
    print("Options:")
    print("  --dry-run    Preview upgrade changes without applying")
    print("  --verbose    Show debug output")
