import logging
from pathlib import Path
from dotenv import dotenv_values
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union
import appstart.settings as default_settings
from appstart.local.ports import LaunchConfig

log = logging.getLogger(__name__)

ExtraVars = Union[Mapping[str, object], Iterable[Tuple[str, object]]]


def load_env_file(env_path: Path) -> Optional[Dict[str, str]]:
    """
    Reads the optional KEY=VALUE file at the installation root.

    Parsing is delegated to python-dotenv with interpolation disabled, and
    values follow dotenv quoting rules: single-quoted values are literal,
    double-quoted values have backslash escapes processed, and an unquoted
    value ends at an inline ' #' comment. Keys without an '=' are dropped.

    :param env_path: Path of the .env file.
    :return: The parsed variables, or None when the file is absent or unreadable.
    """
    if not env_path.is_file():
        return None

    try:
        parsed = dotenv_values(env_path, interpolate=False)
    except (OSError, UnicodeDecodeError) as e:
        log.error(f"Failed to read environment file '{env_path}': {e}")
        return None

    env_map = {key: value for key, value in parsed.items() if key and value is not None}
    if env_map:
        log.info(f"Loaded {len(env_map)} environment variables from {env_path}")
    return env_map


def compose(
    base: Mapping[str, str],
    overrides: Optional[Mapping[str, str]] = None,
    extra: ExtraVars = (),
) -> Dict[str, str]:
    """
    Merges environment sources into the environment for one child.

    Precedence, low to high: base < overrides < extra. Keys are matched
    exactly and never removed.

    :param base: Usually the parent process environment.
    :param overrides: Optional file-sourced variables.
    :param extra: Per-run values as a mapping or ordered (key, value) pairs.
    :return: A new dictionary; the inputs are not modified.
    """
    result: Dict[str, str] = dict(base)
    if overrides:
        result.update(overrides)

    pairs = extra.items() if isinstance(extra, Mapping) else extra
    for key, value in pairs:
        result[key] = str(value)
    return result


def backend_environment(
    base: Mapping[str, str],
    overrides: Optional[Mapping[str, str]],
    launch: LaunchConfig,
) -> Dict[str, str]:
    """The backend learns both ports so it can proxy to the frontend."""
    return compose(base, overrides, [
        (default_settings.FRONTEND_PORT_VAR, launch.frontend_port),
        (default_settings.BACKEND_PORT_VAR, launch.backend_port),
    ])


def frontend_environment(
    base: Mapping[str, str],
    overrides: Optional[Mapping[str, str]],
    launch: LaunchConfig,
) -> Dict[str, str]:
    """The frontend learns the backend port for its live-reload proxy."""
    return compose(base, overrides, [
        (default_settings.BACKEND_PORT_VAR, launch.backend_port),
    ])
