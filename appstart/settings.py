"""
This module contains the configuration settings for the appstart supervisor.
It defines port bases, directory layout, child process commands, shutdown
timings and the upgrade source. Components read these through
`appstart.local.global_config` rather than reaching for ambient globals.
"""

import os

#* --- Build Information ---
# 'prod' selects production mode (build frontend, then serve from the backend).
APP_ENV = os.getenv("APPSTART_ENV", "dev").lower()
APP_NAME = os.getenv("APPSTART_NAME", "appstart")

#* --- Installation Layout ---
ROOT_DIR_ENV_VAR = "APPSTART_ROOT"
APPS_DIR_NAME = "apps"
FRONTEND_DIR_NAME = "frontend"
ENV_FILE_NAME = ".env"
NODE_MODULES_DIR_NAME = "node_modules"

#* --- Port Allocation ---
BASE_FRONTEND_PORT = 5173
BASE_BACKEND_PORT = 4000
PORT_OFFSET_RANGE = 1000
FRONTEND_PORT_VAR = "FRONTEND_PORT"
BACKEND_PORT_VAR = "ENCORE_PORT"
# Used as the identity token when no numeric user id exists (Windows).
IDENTITY_FALLBACK_VAR = "USERNAME"

#* --- Child Processes ---
FRONTEND_TOOL = os.getenv("APPSTART_FRONTEND_TOOL", "bun")
BACKEND_EXECUTABLE = os.getenv("APPSTART_BACKEND_BIN", "encore")
BACKEND_PRODUCTION_ENV = "production"

#* --- Supervisor Settings ---
GRACEFUL_SHUTDOWN_TIMEOUT = 2.0  # seconds before force-killing a process group
PORT_RELEASE_DELAY = 0.5         # seconds to let sockets close before exiting
SHUTDOWN_POLL_INTERVAL = 0.5     # seconds between checks of the shutdown token
PORT_CLEANUP_TIMEOUT = 3.0       # seconds to wait for stale port owners to exit

#* --- Upgrade ---
TEMPLATE_URL = os.getenv("APPSTART_TEMPLATE_URL", "")
TEMPLATE_VERSION_FILE = ".template-version"
TEMPLATE_DOWNLOAD_TIMEOUT = 30
UPGRADE_EXCLUDED_NAMES = {".env", ".git", "node_modules", ".old", ".temp", TEMPLATE_VERSION_FILE}

#* --- Logging ---
VERBOSE_LOGGING = os.getenv("APPSTART_VERBOSE", "False").lower() in ('true', '1', 't')
