import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Mapping, Optional, Union
import appstart.settings as default_settings

log = logging.getLogger(__name__)

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193


@dataclass(frozen=True)
class LaunchConfig:
    """The pair of ports shared by the frontend and backend for one run."""
    frontend_port: int
    backend_port: int


def fnv1a_32(data: bytes) -> int:
    """Computes the 32-bit FNV-1a hash of `data`."""
    h = FNV32_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV32_PRIME) & 0xFFFFFFFF
    return h


def current_identity(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Returns the identity token of the invoking user.

    The numeric user id where the platform has one, otherwise the
    USERNAME variable (empty when unset).
    """
    if hasattr(os, "getuid"):
        return str(os.getuid())
    environ = os.environ if environ is None else environ
    return environ.get(default_settings.IDENTITY_FALLBACK_VAR, "")


def port_offset(identity: str, root_dir: Union[str, Path]) -> int:
    """
    Derives a stable offset in [0, PORT_OFFSET_RANGE) for this user and installation.

    :param identity: The user identity token (see current_identity).
    :param root_dir: The installation root.
    :return: The offset added to both base ports.
    """
    data = identity.encode("utf-8") + str(root_dir).encode("utf-8")
    return fnv1a_32(data) % default_settings.PORT_OFFSET_RANGE


def _parse_port_override(name: str, environ: Mapping[str, str]) -> Optional[int]:
    """Reads a port override, returning None when absent or not a positive integer."""
    raw = environ.get(name)
    if raw is None or raw == "":
        return None
    # Plain ASCII decimal only; int() would also take spaces and underscores.
    if not (raw.isascii() and raw.isdigit()):
        log.warning(f"Ignoring {name}={raw!r}: not a positive integer.")
        return None
    port = int(raw)
    if port <= 0:
        log.warning(f"Ignoring {name}={raw!r}: not a positive integer.")
        return None
    return port


def allocate_ports(
    identity: str,
    root_dir: Union[str, Path],
    environ: Optional[Mapping[str, str]] = None,
) -> LaunchConfig:
    """
    Computes the frontend and backend ports for a run.

    Both ports share the offset derived from (identity, root_dir). The
    FRONTEND_PORT and ENCORE_PORT variables replace the computed values
    independently.

    :param identity: The user identity token.
    :param root_dir: The installation root.
    :param environ: Environment mapping to read overrides from; defaults to os.environ.
    :return: The LaunchConfig for this run.
    """
    environ = os.environ if environ is None else environ
    offset = port_offset(identity, root_dir)

    frontend_port = default_settings.BASE_FRONTEND_PORT + offset
    backend_port = default_settings.BASE_BACKEND_PORT + offset

    override = _parse_port_override(default_settings.FRONTEND_PORT_VAR, environ)
    if override is not None:
        frontend_port = override
    override = _parse_port_override(default_settings.BACKEND_PORT_VAR, environ)
    if override is not None:
        backend_port = override

    log.debug(f"Port offset {offset}: frontend={frontend_port}, backend={backend_port}")
    return LaunchConfig(frontend_port=frontend_port, backend_port=backend_port)
