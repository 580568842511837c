"""
Logging module for the application.
This module provides the console logging setup shared by every command.
"""

from .setup import setup_logging, set_console_level

__all__ = ["setup_logging", "set_console_level"]
