"""
The Supervisor package.
Manages the lifecycle of the frontend and backend child processes.

This package contains the Supervisor class and its helper modules, which
together handle port cleanup, process group startup, signal handling and
the graceful-then-forceful teardown of both children.
"""
from .supervisor import Supervisor

__all__ = ['Supervisor']
