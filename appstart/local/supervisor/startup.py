import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple
import appstart.settings as default_settings
from appstart.local.ports import LaunchConfig
from appstart.local.errors import BuildError, LayoutError, StartError
from appstart.local.supervisor.process_utils import Role

if TYPE_CHECKING:
    from .process_utils import ManagedProcess, ProcessGroupController

log = logging.getLogger(__name__)


def validate_layout(root_dir: Path) -> Tuple[Path, Path]:
    """
    Checks that the installation root contains the apps directory.

    :param root_dir: The installation root.
    :return: The apps directory and the (possibly missing) frontend directory.
    :raises LayoutError: If the apps directory does not exist.
    """
    apps_dir = root_dir / default_settings.APPS_DIR_NAME
    if not apps_dir.is_dir():
        raise LayoutError(f"apps directory not found at {apps_dir}")
    return apps_dir, apps_dir / default_settings.FRONTEND_DIR_NAME


#* --- Command Lines ---
def frontend_install_command() -> List[str]:
    return [default_settings.FRONTEND_TOOL, "install"]


def frontend_build_command() -> List[str]:
    return [default_settings.FRONTEND_TOOL, "run", "build"]


def frontend_dev_command(port: int) -> List[str]:
    """The dev server command; npm needs '--' before script arguments."""
    command = [default_settings.FRONTEND_TOOL, "run", "dev"]
    if default_settings.FRONTEND_TOOL == "npm":
        command.append("--")
    return command + ["--port", str(port)]


def backend_command(launch: LaunchConfig, production: bool) -> List[str]:
    command = [default_settings.BACKEND_EXECUTABLE, "run"]
    if production:
        command += ["--env", default_settings.BACKEND_PRODUCTION_ENV]
    return command + ["--port", str(launch.backend_port), "--browser=never"]


#* --- Frontend Build ---
def _run_blocking(command: List[str], cwd: Path, env: Dict[str, str], step: str) -> None:
    """Runs a toolchain step to completion with the parent's stdio."""
    try:
        subprocess.run(command, cwd=str(cwd), env=env, check=True)
    except FileNotFoundError as e:
        raise BuildError(f"{step} failed: '{command[0]}' was not found") from e
    except subprocess.CalledProcessError as e:
        raise BuildError(f"{step} failed with exit code {e.returncode}") from e
    except OSError as e:
        raise BuildError(f"{step} failed: {e}") from e


def ensure_frontend_dependencies(frontend_dir: Path, env: Dict[str, str]) -> bool:
    """
    Installs frontend dependencies when node_modules is missing.

    :return: True if an install was run, False if it was not needed.
    :raises BuildError: If the install step fails.
    """
    if (frontend_dir / default_settings.NODE_MODULES_DIR_NAME).exists():
        return False

    print("Installing frontend dependencies...")
    command = frontend_install_command()
    _run_blocking(command, frontend_dir, env, " ".join(command))
    return True


def build_frontend(frontend_dir: Path, env: Dict[str, str]) -> None:
    """
    BLOCKING: Installs dependencies if needed and builds the frontend bundle.

    :raises BuildError: If the frontend directory is missing or a step fails.
    """
    if not frontend_dir.is_dir():
        raise BuildError(f"frontend directory not found at {frontend_dir}")

    ensure_frontend_dependencies(frontend_dir, env)
    command = frontend_build_command()
    _run_blocking(command, frontend_dir, env, " ".join(command))


#* --- Child Startup ---
def start_frontend_dev_server(
    controller: "ProcessGroupController",
    frontend_dir: Path,
    port: int,
    env: Dict[str, str],
) -> Optional["ManagedProcess"]:
    """
    Starts the frontend dev server in the background.

    Any failure is logged as a warning and the run continues backend-only.

    :return: The running frontend, or None if it could not be started.
    """
    try:
        if not frontend_dir.is_dir():
            raise StartError(f"frontend directory not found at {frontend_dir}")
        ensure_frontend_dependencies(frontend_dir, env)
        process = controller.start(frontend_dev_command(port), frontend_dir, env, Role.FRONTEND)
    except (BuildError, StartError) as e:
        log.warning(f"Failed to start frontend dev server: {e}")
        return None

    print(f"Frontend dev server started on port {port} (PID: {process.pid})")
    return process


def start_backend(
    controller: "ProcessGroupController",
    apps_dir: Path,
    launch: LaunchConfig,
    env: Dict[str, str],
    production: bool,
) -> "ManagedProcess":
    """
    Starts the backend runtime in the apps directory.

    :raises StartError: If the backend executable cannot be spawned.
    """
    return controller.start(backend_command(launch, production), apps_dir, env, Role.BACKEND)
