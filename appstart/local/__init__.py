"""
Local package for the appstart supervisor.

This package provides the immutable build configuration, port allocation,
environment composition and the supervisor itself.
"""

from .global_config import BuildInfo, load_build_info, resolve_root_dir

__all__ = ["BuildInfo", "load_build_info", "resolve_root_dir"]
