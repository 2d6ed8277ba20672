import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    BASE_REMOTE_NAME,
    CONFIG_FILE,
    DEFAULT_API_URL,
    DEFAULT_BRANCH,
    LOCAL_CONFIG_NAME,
    MIRROR_DIR,
    REMOTE_NAME,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '30m', '0.5s') to seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)?s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2) or "s"
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return num * multiplier[unit]


@dataclass
class CoreConfig:
    """Git remote naming.

    Attributes:
        remote_name (str): The remote bound to the project's repository.
        base_remote_name (str): The remote a fork keeps for its source project.
        default_branch (str): The branch pushed as the remote's default.
    """

    remote_name: str = REMOTE_NAME
    base_remote_name: str = BASE_REMOTE_NAME
    default_branch: str = DEFAULT_BRANCH


@dataclass
class ApiConfig:
    """Remote project service settings.

    Attributes:
        url (str): Base URL of the project API.
        email (str | None): Account email used for basic auth.
        api_key (str | None): Account API key used for basic auth.
        timeout (float): Per-request timeout in seconds.
    """

    url: str = DEFAULT_API_URL
    email: str | None = None
    api_key: str | None = None
    timeout: float = 30.0


@dataclass
class PollingConfig:
    """Status polling settings.

    Attributes:
        interval (float): Seconds to sleep between status fetches.
        timeout (float): Seconds before a non-terminal status is given up on.
    """

    interval: float = 1.0
    timeout: float = 30 * 60.0


@dataclass
class EmbeddedConfig:
    """Embedded project settings.

    Attributes:
        mirror_dir (Path): Root directory for per-project mirror clones.
    """

    mirror_dir: Path = MIRROR_DIR


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for the log file before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Git remote naming.
        api (ApiConfig): Remote service settings.
        polling (PollingConfig): Status polling settings.
        embedded (EmbeddedConfig): Embedded project settings.
        limits (LimitsConfig): Resource limits.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    embedded: EmbeddedConfig = field(default_factory=EmbeddedConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the base global configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, project_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, local and env sources.

        Args:
            project_path (Path | None): The directory to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Copy each section so callers can mutate without touching the cache
        base = cls._global_cache
        instance = replace(
            base,
            core=replace(base.core),
            api=replace(base.api),
            polling=replace(base.polling),
            embedded=replace(base.embedded),
            limits=replace(base.limits),
        )

        # 2. Load Local Config (if applicable)
        if project_path:
            local_toml = project_path / LOCAL_CONFIG_NAME
            pyproject = project_path / "pyproject.toml"

            if local_toml.exists():
                instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance._merge_from_file(pyproject, section="tool.mortar")

        # 3. Environment wins over files for credentials and endpoint
        instance._merge_from_env()
        return instance

    def _merge_from_env(self) -> None:
        env_map = {
            "MORTAR_API_URL": "url",
            "MORTAR_EMAIL": "email",
            "MORTAR_API_KEY": "api_key",
        }
        updates = {
            key: os.environ[var] for var, key in env_map.items() if os.environ.get(var)
        }
        if updates:
            self.api = replace(self.api, **updates)

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.mortar').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {})

            if not data:
                return

            for name in ["core", "api", "polling", "embedded", "limits"]:
                if name in data:
                    setattr(
                        self,
                        name,
                        self._update_dataclass(name, getattr(self, name), data[name]),
                    )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                # Route specific keys through our parsers
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["interval", "timeout"]:
                    filtered_updates[k] = parse_time(v)
                elif k == "mirror_dir":
                    filtered_updates[k] = Path(v).expanduser()
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
