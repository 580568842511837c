"""
appstart: a local supervisor for a frontend dev server and a backend runtime.

Starts both children on deterministic ports, forwards the port configuration
between them, and tears the whole process tree down on SIGINT/SIGTERM.
"""

__version__ = "1.0.0"
