import os
import sys
import signal
import psutil
import logging
import subprocess
from enum import Enum
from pathlib import Path
from dataclasses import dataclass
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import appstart.settings as default_settings
from appstart.local.errors import StartError

log = logging.getLogger(__name__)


class Role(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"


class ProcessState(Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    EXITED = "exited"          # left on its own before shutdown was requested
    TERMINATED = "terminated"  # exited after the graceful signal
    KILLED = "killed"          # needed the forceful kill

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessState.EXITED, ProcessState.TERMINATED, ProcessState.KILLED)


@dataclass
class ManagedProcess:
    """A child started by a ProcessGroupController and owned by the Supervisor."""
    role: Role
    popen: Optional[subprocess.Popen] = None
    group_id: Optional[int] = None
    state: ProcessState = ProcessState.UNSTARTED

    @property
    def pid(self) -> Optional[int]:
        return self.popen.pid if self.popen is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.returncode if self.popen is not None else None


class ProcessGroupController(ABC):
    """
    Starts children in their own process group and tears the whole group down.

    Subclasses supply the platform-specific Popen flags and signalling; the
    start/shutdown sequencing lives here so callers never branch on platform.
    """

    def start(self, command: List[str], cwd: Path, env: Dict[str, str], role: Role) -> ManagedProcess:
        """
        Launches `command` in a new process group with the parent's stdio.

        :param command: The argv of the child.
        :param cwd: Working directory for the child.
        :param env: The complete environment for the child.
        :param role: Whether this is the frontend or the backend.
        :return: A running ManagedProcess.
        :raises StartError: If the executable cannot be found or spawned.
        """
        log.debug(f"Starting {role.value}: {' '.join(command)} (cwd: {cwd})")
        try:
            popen = subprocess.Popen(command, cwd=str(cwd), env=env, **self._popen_kwargs())
        except OSError as e:
            raise StartError(f"Failed to start {role.value} process '{command[0]}': {e}") from e

        process = ManagedProcess(role=role, popen=popen, group_id=self._group_id(popen), state=ProcessState.RUNNING)
        log.debug(f"{role.value.capitalize()} started with PID {popen.pid} (group {process.group_id}).")
        return process

    def shutdown(self, process: Optional[ManagedProcess], grace_period: float = default_settings.GRACEFUL_SHUTDOWN_TIMEOUT) -> None:
        """
        Stops a child and everything in its process group.

        Sends one graceful request to the group, waits up to `grace_period`
        seconds, then force-kills the group and reaps the child.

        :param process: The process to stop; None or never-started processes are ignored.
        :param grace_period: Seconds to wait before escalating.
        """
        if process is None or process.popen is None or process.state is not ProcessState.RUNNING:
            return

        if process.popen.poll() is not None:
            log.info(f"{process.role.value.capitalize()} (PID {process.pid}) already exited with code {process.returncode}.")
            process.state = ProcessState.EXITED
            return

        log.debug(f"Sending graceful stop to {process.role.value} (PID {process.pid}).")
        self._terminate(process)
        try:
            process.popen.wait(timeout=grace_period)
            process.state = ProcessState.TERMINATED
            return
        except subprocess.TimeoutExpired:
            log.warning(
                f"{process.role.value.capitalize()} (PID {process.pid}) did not exit within "
                f"{grace_period}s. Killing its process group."
            )

        self._kill(process)
        process.popen.wait()
        process.state = ProcessState.KILLED

    @abstractmethod
    def _popen_kwargs(self) -> Dict[str, Any]:
        """Platform-specific keyword arguments that put the child in its own group."""

    @abstractmethod
    def _group_id(self, popen: subprocess.Popen) -> Optional[int]:
        """Identifier of the group the child was placed in."""

    @abstractmethod
    def _terminate(self, process: ManagedProcess) -> None:
        """Sends the graceful stop request."""

    @abstractmethod
    def _kill(self, process: ManagedProcess) -> None:
        """Sends the forceful kill."""


class PosixProcessGroupController(ProcessGroupController):
    """Uses a new session per child and signals the negative process group."""

    def _popen_kwargs(self) -> Dict[str, Any]:
        return {"start_new_session": True}

    def _group_id(self, popen: subprocess.Popen) -> Optional[int]:
        try:
            return os.getpgid(popen.pid)
        except OSError:
            return None

    def _terminate(self, process: ManagedProcess) -> None:
        self._signal_group(process, signal.SIGTERM)

    def _kill(self, process: ManagedProcess) -> None:
        self._signal_group(process, signal.SIGKILL)

    def _signal_group(self, process: ManagedProcess, sig: int) -> None:
        try:
            pgid = os.getpgid(process.pid)
        except OSError:
            pgid = None

        # Never signal our own group; fall back to the single child instead.
        if pgid is not None and pgid != os.getpgrp():
            try:
                os.killpg(pgid, sig)
                return
            except ProcessLookupError:
                return
            except OSError as e:
                log.debug(f"Could not signal process group {pgid}: {e}")

        try:
            process.popen.send_signal(sig)
        except ProcessLookupError:
            pass


class WindowsProcessGroupController(ProcessGroupController):
    """Uses CREATE_NEW_PROCESS_GROUP, CTRL_BREAK_EVENT and a psutil tree kill."""

    def _popen_kwargs(self) -> Dict[str, Any]:
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}

    def _group_id(self, popen: subprocess.Popen) -> Optional[int]:
        return popen.pid

    def _terminate(self, process: ManagedProcess) -> None:
        ctrl_break = getattr(signal, "CTRL_BREAK_EVENT", None)
        try:
            if ctrl_break is not None:
                process.popen.send_signal(ctrl_break)
            else:
                process.popen.terminate()
        except OSError as e:
            log.debug(f"Could not send stop request to PID {process.pid}: {e}")

    def _kill(self, process: ManagedProcess) -> None:
        try:
            parent = psutil.Process(process.pid)
            tree = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return
        for proc in tree:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue


def get_process_controller() -> ProcessGroupController:
    """Returns the controller for the running platform."""
    if sys.platform == "win32":
        return WindowsProcessGroupController()
    return PosixProcessGroupController()
