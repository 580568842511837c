import os
import sys
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Mapping, Optional
import appstart
import appstart.settings as default_settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildInfo:
    """
    Immutable description of this build of the supervisor.

    Constructed once at process start and handed to every component that
    needs the product name, version or run mode.
    """
    name: str
    version: str
    env: str

    @property
    def is_production(self) -> bool:
        return self.env == "prod"

    def describe(self) -> str:
        """Returns the one-line version banner."""
        return f"{self.name} version {self.version} (env: {self.env})"


def load_build_info() -> BuildInfo:
    """Builds the BuildInfo from the settings module and package version."""
    return BuildInfo(
        name=default_settings.APP_NAME,
        version=appstart.__version__,
        env=default_settings.APP_ENV,
    )


def resolve_root_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolves the installation root that holds the `apps` directory.

    Precedence: the APPSTART_ROOT variable, the directory of a frozen
    executable, the directory of the launching script when it holds the
    apps directory, then the current working directory.

    :param environ: Environment mapping to read; defaults to os.environ.
    :return: The absolute installation root.
    """
    environ = os.environ if environ is None else environ
    override = environ.get(default_settings.ROOT_DIR_ENV_VAR)
    if override:
        root = Path(override).expanduser().resolve()
        log.debug(f"Installation root taken from {default_settings.ROOT_DIR_ENV_VAR}: {root}")
        return root

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent

    if sys.argv and sys.argv[0]:
        script_dir = Path(sys.argv[0]).resolve().parent
        if (script_dir / default_settings.APPS_DIR_NAME).is_dir():
            return script_dir

    return Path.cwd().resolve()
