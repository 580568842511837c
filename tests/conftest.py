"""Shared fixtures for the supervisor tests.

Provides a throwaway installation root, BuildInfo instances for both run
modes, and a recording process controller that never spawns anything.
"""

import sys
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from appstart.local.errors import StartError
from appstart.local.global_config import BuildInfo
from appstart.local.supervisor.process_utils import ManagedProcess, ProcessGroupController, ProcessState, Role


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put the originals back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Build info and installation layout
# ---------------------------------------------------------------------------

@pytest.fixture
def dev_build():
    return BuildInfo(name="demo", version="1.2.3", env="dev")


@pytest.fixture
def prod_build():
    return BuildInfo(name="demo", version="1.2.3", env="prod")


@pytest.fixture
def install_root(tmp_path):
    """An installation root with apps/ and apps/frontend/node_modules/."""
    frontend = tmp_path / "apps" / "frontend"
    (frontend / "node_modules").mkdir(parents=True)
    return tmp_path


# ---------------------------------------------------------------------------
# Recording controller
# ---------------------------------------------------------------------------

class FakeController(ProcessGroupController):
    """Records start/shutdown calls instead of touching real processes."""

    def __init__(self, fail_roles: Optional[Set[Role]] = None, events: Optional[List[str]] = None):
        self.fail_roles = fail_roles or set()
        self.events = events if events is not None else []
        self.started: Dict[Role, dict] = {}
        self.shutdown_order: List[Role] = []

    def start(self, command, cwd, env, role):
        self.events.append(f"start:{role.value}")
        if role in self.fail_roles:
            raise StartError(f"Failed to start {role.value} process '{command[0]}': not found")
        self.started[role] = {"command": list(command), "cwd": Path(cwd), "env": dict(env)}
        return ManagedProcess(role=role, state=ProcessState.RUNNING)

    def shutdown(self, process, grace_period=2.0):
        if process is None:
            return
        self.events.append(f"shutdown:{process.role.value}")
        self.shutdown_order.append(process.role)
        process.state = ProcessState.TERMINATED

    def _popen_kwargs(self):
        return {}

    def _group_id(self, popen):
        return None

    def _terminate(self, process):
        pass

    def _kill(self, process):
        pass


@pytest.fixture
def fake_controller():
    return FakeController()
