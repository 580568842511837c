import os
import sys
import time
import signal
import psutil
import logging
import threading
from typing import TYPE_CHECKING, Iterable, List, Optional, Set, Tuple
import appstart.settings as default_settings
from appstart.local.errors import PortCleanupError

if TYPE_CHECKING:
    from .process_utils import ManagedProcess, ProcessGroupController

log = logging.getLogger(__name__)


class ShutdownToken:
    """
    A cancellation token tripped by the first SIGINT/SIGTERM.

    Arm it before starting any child so a signal arriving during startup
    is never lost. Every waiter is released once the token is cancelled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._previous_handlers = {}
        self.received_signal: Optional[int] = None

    @staticmethod
    def _signals() -> List[int]:
        sigs = [signal.SIGINT, signal.SIGTERM]
        if sys.platform == "win32" and hasattr(signal, "SIGBREAK"):
            sigs.append(signal.SIGBREAK)
        return sigs

    def arm(self) -> None:
        """Installs the signal handlers. Must be called from the main thread."""
        for sig in self._signals():
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)
        log.debug("Shutdown signal handlers armed.")

    def disarm(self) -> None:
        """Restores the handlers that were active before arm()."""
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame) -> None:
        if self._event.is_set():
            return
        self.received_signal = signum
        self.cancel()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, poll_interval: float = default_settings.SHUTDOWN_POLL_INTERVAL) -> None:
        """Blocks until the token is cancelled."""
        # Short timed waits keep the main thread free to run signal handlers.
        while not self._event.wait(poll_interval):
            pass


#* --- Stale Port Occupants ---
def find_port_occupants(ports: Set[int]) -> Tuple[List[psutil.Process], Set[int]]:
    """
    Finds processes listening on any of `ports`.

    :param ports: The TCP ports to inspect.
    :return: The listening processes (excluding this one) and the ports whose
             owner could not be identified.
    :raises PortCleanupError: If the connection table cannot be read.
    """
    try:
        connections = psutil.net_connections(kind="inet")
    except psutil.AccessDenied as e:
        raise PortCleanupError(f"Not permitted to list network connections: {e}") from e

    own_pid = os.getpid()
    occupants = {}
    unknown_ports: Set[int] = set()
    for conn in connections:
        if not conn.laddr or conn.laddr.port not in ports or conn.status != psutil.CONN_LISTEN:
            continue
        if conn.pid is None:
            unknown_ports.add(conn.laddr.port)
            continue
        if conn.pid == own_pid or conn.pid in occupants:
            continue
        try:
            occupants[conn.pid] = psutil.Process(conn.pid)
        except psutil.NoSuchProcess:
            continue
    return list(occupants.values()), unknown_ports


def _terminate_occupants(processes: List[psutil.Process], failures: List[str]) -> List[psutil.Process]:
    """Sends SIGTERM to each occupant, returning the ones that were signalled."""
    signalled = []
    for proc in processes:
        try:
            log.warning(f"Stopping stale process {proc.name()} (PID {proc.pid}) holding an allocated port.")
            proc.terminate()
            signalled.append(proc)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            failures.append(f"access denied stopping PID {proc.pid}")
    return signalled


def _forceful_kill(processes: List[psutil.Process], failures: List[str]) -> None:
    """Forcefully kills occupants that ignored the termination request."""
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            failures.append(f"access denied killing PID {proc.pid}")


def kill_port_occupants(ports: Iterable[int], timeout: float = default_settings.PORT_CLEANUP_TIMEOUT) -> List[int]:
    """
    Stops whatever a previous unclean run left listening on our ports.

    :param ports: The allocated frontend and backend ports.
    :param timeout: Seconds to wait for terminated processes before killing them.
    :return: PIDs of the processes that were stopped.
    :raises PortCleanupError: If any occupant could not be identified or stopped.
    """
    port_set = set(ports)
    occupants, unknown_ports = find_port_occupants(port_set)
    failures = [f"port {port} is held by a process that cannot be inspected" for port in sorted(unknown_ports)]

    signalled = _terminate_occupants(occupants, failures)
    if signalled:
        _, alive = psutil.wait_procs(signalled, timeout=timeout)
        if alive:
            _forceful_kill(alive, failures)
            psutil.wait_procs(alive, timeout=timeout)

    if failures:
        raise PortCleanupError("; ".join(failures))
    return [proc.pid for proc in signalled]


#* --- Teardown ---
def teardown_children(
    controller: "ProcessGroupController",
    frontend: Optional["ManagedProcess"],
    backend: Optional["ManagedProcess"],
    grace_period: float = default_settings.GRACEFUL_SHUTDOWN_TIMEOUT,
    settle_delay: float = default_settings.PORT_RELEASE_DELAY,
) -> None:
    """Stops the frontend, then the backend, then lets the OS release the ports."""
    controller.shutdown(frontend, grace_period)
    controller.shutdown(backend, grace_period)
    time.sleep(settle_delay)
    log.debug("Teardown complete.")
