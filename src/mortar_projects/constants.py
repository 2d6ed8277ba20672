import os
import re
from pathlib import Path

"""Global constants and path definitions for the Mortar projects client.

This module defines the filesystem layout (adhering to XDG standards where applicable),
the names used for git remotes, the remote status vocabulary, and the fixed messages
shared by the provisioning workflows.
"""

# --- Identity ---
APP_NAME = "mortar"
"""str: The human-readable application name, also the logger name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "mortar"
"""Path: The directory for runtime state data (logs, embedded mirrors)."""

LOG_FILE = STATE_DIR / "mortar.log"
"""Path: The file path for the client log."""

MIRROR_DIR = STATE_DIR / "mirrors"
"""Path: Default root for the mirror clones that back embedded projects."""

CONFIG_DIR: Path = Path.home() / ".config/mortar"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "mortar.toml"
"""str: Per-project configuration file name."""

# --- Remote service ---
DEFAULT_API_URL = "https://api.mortardata.com/v2"

STATUS_PENDING = "PENDING"
STATUS_CREATING = "CREATING"
STATUS_ACTIVE = "ACTIVE"
STATUS_ERROR = "ERROR"

# --- Git ---
REMOTE_NAME = "mortar"
"""str: The git remote bound to the project's repository."""

BASE_REMOTE_NAME = "base"
"""str: In a fork, the remote pointing at the project being forked from."""

DEFAULT_BRANCH = "master"

SCAFFOLD_COMMIT_MESSAGE = "Mortar project scaffolding"
EMBEDDED_COMMIT_MESSAGE = "Mortar project sync"

EMBEDDED_REMOTE_FILE = ".mortar-project-remote"
"""str: Marker file recording the git URL an embedded project syncs to."""

# --- Scaffolding ---
PROJECT_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")

TEMPLATE_MARKER = re.compile(r"<%.*%>")
"""Pattern: Any template marker. Rendered output must never match it."""

PROJECT_NAME_TOKEN = re.compile(r"<%=\s*project_name\s*%>")

EMBEDDED_REQUIRED_DIRS = ["pigscripts", "macros", "udfs"]
"""list[str]: Directories an embedded project must contain to be registered."""

# --- Messages ---
PUBLIC_PROJECT_PROMPT = (
    "Public projects allow anyone to view and fork the code in this "
    "project's repository. Are you sure?"
)
NOT_REGISTERED_MESSAGE = "Mortar project was not registered"
READY_MESSAGE = (
    "Your project is ready for use.  "
    "Type 'mortar help' to see the commands you can perform on the project."
)
