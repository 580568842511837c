import sys
import logging
from typing import List, Optional

import appstart.settings as default_settings
import appstart.local.console as console
from appstart.log import setup_logging
from appstart.local import load_build_info, resolve_root_dir

log = logging.getLogger("console")


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the command-line application."""
    args = list(sys.argv[1:] if argv is None else argv)

    setup_logging(logging.INFO)
    if "--verbose" in args or default_settings.VERBOSE_LOGGING:
        console.enable_verbose_logging()
        args = [a for a in args if a != "--verbose"]

    build_info = load_build_info()
    root_dir = resolve_root_dir()
    log.debug(f"Installation root: {root_dir}")

    if not args:
        return console.execute_command("", [], build_info, root_dir)

    command, rest = args[0], args[1:]
    return console.execute_command(command, rest, build_info, root_dir)


if __name__ == "__main__":
    sys.exit(main())
