import os
import logging
from pathlib import Path
from typing import Mapping, Optional
import appstart.settings as default_settings
from appstart.local.errors import AppStartError, PortCleanupError
from appstart.local.global_config import BuildInfo
from appstart.local.ports import LaunchConfig, allocate_ports, current_identity
from appstart.local.environment import backend_environment, compose, frontend_environment, load_env_file
from appstart.local.supervisor.process_utils import ManagedProcess, ProcessGroupController, get_process_controller
from appstart.local.supervisor.shutdown import ShutdownToken, kill_port_occupants, teardown_children
from appstart.local.supervisor.startup import build_frontend, start_backend, start_frontend_dev_server, validate_layout

log = logging.getLogger(__name__)


class Supervisor:
    """
    Runs one frontend/backend pair for the lifetime of this process.

    Sequence: validate the layout, allocate ports, load the .env overrides,
    clear stale port owners, arm the shutdown token, start (dev) or build
    (prod) the frontend, start the backend, block until a signal arrives,
    then tear both children down.
    """

    def __init__(
        self,
        build_info: BuildInfo,
        root_dir: Path,
        controller: Optional[ProcessGroupController] = None,
        environ: Optional[Mapping[str, str]] = None,
        identity: Optional[str] = None,
    ) -> None:
        self.build_info = build_info
        self.root_dir = Path(root_dir)
        self.controller = controller or get_process_controller()
        self.environ = dict(os.environ if environ is None else environ)
        self.identity = identity if identity is not None else current_identity(self.environ)
        self.shutdown_token = ShutdownToken()

        self.launch: Optional[LaunchConfig] = None
        self.frontend: Optional[ManagedProcess] = None
        self.backend: Optional[ManagedProcess] = None

    def run(self) -> int:
        """
        Starts both children and blocks until SIGINT/SIGTERM.

        :return: The process exit status: 0 after a clean shutdown, 1 on a fatal startup error.
        """
        try:
            self.start_children()
        except AppStartError as e:
            log.critical(f"Error: {e}")
            self.controller.shutdown(self.frontend)
            self.shutdown_token.disarm()
            return 1

        try:
            self.shutdown_token.wait()
            print("\nShutting down...")
            teardown_children(self.controller, self.frontend, self.backend)
        finally:
            self.shutdown_token.disarm()
        return 0

    def start_children(self) -> None:
        """
        Performs every startup step up to and including the backend launch.

        :raises AppStartError: On any fatal startup failure.
        """
        apps_dir, frontend_dir = validate_layout(self.root_dir)
        self.launch = allocate_ports(self.identity, self.root_dir, self.environ)
        env_file = load_env_file(self.root_dir / default_settings.ENV_FILE_NAME)

        self._clear_stale_ports()

        # Armed before any child exists so an early signal is never lost.
        self.shutdown_token.arm()

        name = self.build_info.name
        production = self.build_info.is_production
        if production:
            print(f"Building {name} frontend app...")
            build_frontend(frontend_dir, compose(self.environ, env_file))
            print(f"Starting {name} in production mode (port {self.launch.backend_port})...")
        else:
            print(f"Starting {name} in development mode:")
            print(f"  Frontend: http://localhost:{self.launch.frontend_port}")
            print(f"  API:      http://localhost:{self.launch.backend_port}")
            self.frontend = start_frontend_dev_server(
                self.controller,
                frontend_dir,
                self.launch.frontend_port,
                frontend_environment(self.environ, env_file, self.launch),
            )

        self.backend = start_backend(
            self.controller,
            apps_dir,
            self.launch,
            backend_environment(self.environ, env_file, self.launch),
            production,
        )
        log.info(f"Backend started with PID {self.backend.pid}.")

    def _clear_stale_ports(self) -> None:
        """Best effort: a failure here only produces a warning."""
        ports = {self.launch.frontend_port, self.launch.backend_port}
        try:
            stopped = kill_port_occupants(ports)
        except PortCleanupError as e:
            log.warning(f"Failed to kill existing processes: {e}")
            return
        if stopped:
            log.info(f"Stopped {len(stopped)} stale process(es) on ports {sorted(ports)}.")
