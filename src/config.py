# Copyright (c) 2025 Stephen Clau

# This file is part of GameStatus Bot.

# GameStatus Bot is dual-licensed:

# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms

# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com

# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""
Configuration module for GameStatus Bot.

Two layers:
- Process configuration (Config): bot credentials, timings and logging, read
  once at startup from environment variables and Docker secrets.
- Status configuration (StatusConfig): the status channel and server list,
  read from config.yaml at the start of EVERY scheduler tick so edits apply
  without a restart.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any, List
import os
import re
import yaml
import structlog

logger = structlog.get_logger()


def _read_docker_secret(secret_name: str) -> Optional[str]:
    """
    Read a secret from Docker secrets location.

    Docker Swarm/Kubernetes mounts secrets at /run/secrets/{secret_name}.

    Args:
        secret_name: Name of the secret (e.g., 'discord_token')

    Returns:
        Secret value or None if not found
    """
    secret_path = Path(f"/run/secrets/{secret_name}")

    if secret_path.exists():
        try:
            return secret_path.read_text().strip()
        except (IOError, OSError) as e:
            logger.warning("docker_secret_read_error", secret=secret_name, error=str(e))
            return None

    return None


def get_config_value(
    env_var: str,
    secret_name: Optional[str] = None,
    required: bool = False,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get configuration value from Docker secrets or environment variables.

    Tries in order:
    1. Docker secret file at /run/secrets/{secret_name}
    2. Environment variable {env_var}
    3. Default value if provided
    4. Raise error if required and not found

    Example usage:
        token = get_config_value(
            env_var="DISCORD_TOKEN",
            secret_name="discord_token",
            required=True,
        )

    Args:
        env_var: Environment variable name (e.g., 'DISCORD_TOKEN')
        secret_name: Docker secret name. If not provided, uses env_var lowercased
        required: If True, raises ValueError when value not found
        default: Default value if not found in env or secrets

    Returns:
        Configuration value from secret, env var, or default

    Raises:
        ValueError: If required=True and value not found
    """
    if secret_name is None:
        secret_name = env_var.lower()

    secret_value = _read_docker_secret(secret_name)
    if secret_value is not None:
        logger.debug("config_value_loaded_from_secret", source="docker_secret", var=env_var)
        return secret_value

    env_value = os.getenv(env_var)
    if env_value is not None:
        logger.debug("config_value_loaded_from_env", source="environment", var=env_var)
        return env_value

    if default is not None:
        logger.debug("config_value_loaded_from_default", source="default", var=env_var)
        return default

    if required:
        raise ValueError(
            f"Required configuration value not found for '{env_var}'. "
            f"Checked: Docker secret '{secret_name}', environment variable '{env_var}'"
        )

    return None


def _safe_int(value: Any, field_name: str, default: int) -> int:
    """
    Safely convert value to int with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to int: bool")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"Invalid integer for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to int: {type(value).__name__}")


def _safe_float(value: Any, field_name: str, default: float) -> float:
    """
    Safely convert value to float with proper type checking.

    Raises:
        ValueError: If conversion fails
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {field_name} to float: bool")

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValueError(f"Invalid float for {field_name}: {value}")

    raise ValueError(f"Cannot convert {field_name} to float: {type(value).__name__}")


def _safe_bool(value: Optional[str], default: bool) -> bool:
    """Interpret common truthy/falsy strings ('1', 'true', 'yes', 'on')."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_int(value: Optional[str], field_name: str) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return _safe_int(value, field_name, 0)


def _expand_env_vars(value: Any) -> Any:
    """
    Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left as-is.
    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    def replace_var(match: Any) -> str:
        var_name = match.group(1)
        return os.getenv(var_name, match.group(0))

    return re.sub(r'\$\{([^}]+)\}', replace_var, value)


@dataclass(frozen=True)
class ServerConfig:
    """One monitored game server from config.yaml."""

    type: str
    """Game identifier (e.g., 'css', 'rust')."""

    address: str
    """Server address as host[:port]. Also the key of its status message."""

    def __post_init__(self) -> None:
        """Validate and normalize server config after initialization."""
        if not isinstance(self.type, str) or not self.type.strip():
            raise ValueError(f"Server type must be a non-empty string, got {self.type!r}")

        if not isinstance(self.address, str) or not self.address.strip():
            raise ValueError(f"Server address must be a non-empty string, got {self.address!r}")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "type", self.type.strip())
        object.__setattr__(self, "address", self.address.strip())


@dataclass
class StatusConfig:
    """Status channel and the servers to reconcile into it."""

    channel_id: int
    """Discord channel ID that holds one status message per server."""

    servers: List[ServerConfig] = field(default_factory=list)
    """Servers in display order."""

    def __post_init__(self) -> None:
        if self.channel_id <= 0:
            raise ValueError(f"Invalid status channel ID: {self.channel_id}")


@dataclass
class Config:
    """Main application configuration."""

    # Discord configuration
    discord_token: str
    """Discord bot token (required)."""

    application_id: Optional[int] = None
    """Discord application (client) ID."""

    guild_id: Optional[int] = None
    """Guild to register slash commands in. Commands are registered globally when unset."""

    bot_name: str = "GameStatus Bot"
    """Display name used in /check embed footers."""

    # Status scheduler configuration
    status_config_path: Path = field(default_factory=lambda: Path("config.yaml"))
    """YAML file with the status channel and server list (reloaded every tick)."""

    update_interval: float = 600.0
    """Seconds between scheduler tick starts. Default: 600 (10 minutes)."""

    purge_limit: int = 100
    """Maximum number of messages deleted by the first-run channel purge."""

    purge_delay: float = 0.5
    """Seconds to wait after each message deletion during the purge."""

    server_delay: float = 1.0
    """Seconds to wait after each server is processed within one tick."""

    # Query configuration
    query_retries: int = 3
    """Attempts per server query."""

    query_timeout: float = 3.0
    """Per-request A2S timeout in seconds."""

    # Health check configuration
    health_check_enabled: bool = True
    """Serve the /health HTTP endpoint."""

    health_check_host: str = "0.0.0.0"
    """Host to bind health check server to. Default: 0.0.0.0"""

    health_check_port: int = 8080
    """Port to bind health check server to. Default: 8080"""

    # Logging configuration
    log_level: str = "info"
    """Logging level: debug, info, warning, error. Default: info"""

    log_format: str = "console"
    """Logging format: console or json. Default: console"""

    log_file: Optional[Path] = field(default_factory=lambda: Path("backend.log"))
    """Flat log file written alongside the console output. None disables it."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.discord_token:
            raise ValueError("discord_token is REQUIRED")

        if self.update_interval <= 0:
            raise ValueError(f"update_interval must be > 0, got {self.update_interval}")

        if not 1 <= self.purge_limit <= 100:
            raise ValueError(f"purge_limit must be 1-100, got {self.purge_limit}")

        if self.purge_delay < 0 or self.server_delay < 0:
            raise ValueError("purge_delay and server_delay must be >= 0")

        if self.query_retries < 1:
            raise ValueError(f"query_retries must be >= 1, got {self.query_retries}")

        if self.query_timeout <= 0:
            raise ValueError(f"query_timeout must be > 0, got {self.query_timeout}")

        valid_levels = {"debug", "info", "warning", "error"}
        if self.log_level.lower() not in valid_levels:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )

        if not 1 <= self.health_check_port <= 65535:
            raise ValueError(
                f"Invalid health_check_port: {self.health_check_port}. Must be 1-65535"
            )

        valid_formats = {"console", "json"}
        if self.log_format.lower() not in valid_formats:
            raise ValueError(
                f"Invalid log_format '{self.log_format}'. Must be one of: {', '.join(sorted(valid_formats))}"
            )


def load_status_config(path: Path) -> StatusConfig:
    """
    Load the status channel and server list from YAML.

    Expected layout:
        discord:
          serverStatusChannelId: "123456789012345678"
        servers:
          - type: css
            address: 1.2.3.4:27015

    Args:
        path: Path to config.yaml

    Returns:
        Parsed StatusConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required keys are missing or malformed
        yaml.YAMLError: If the file is not valid YAML
    """
    if not path.exists():
        raise FileNotFoundError(f"Status config not found at {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping with 'discord' and 'servers' keys")

    discord_section = data.get("discord") or {}
    if not isinstance(discord_section, dict) or "serverStatusChannelId" not in discord_section:
        raise ValueError(f"{path} must define discord.serverStatusChannelId")

    channel_id = _safe_int(
        _expand_env_vars(discord_section["serverStatusChannelId"]),
        "discord.serverStatusChannelId",
        0,
    )

    raw_servers = data.get("servers") or []
    if not isinstance(raw_servers, list):
        raise ValueError(f"{path}: 'servers' must be a list, got {type(raw_servers).__name__}")

    servers: List[ServerConfig] = []
    for index, entry in enumerate(raw_servers):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: servers[{index}] must be a mapping")
        servers.append(
            ServerConfig(
                type=str(entry.get("type", "")),
                address=str(entry.get("address", "")),
            )
        )

    return StatusConfig(channel_id=channel_id, servers=servers)


def load_config() -> Config:
    """
    Load process configuration from Docker secrets and environment variables.

    Returns:
        Fully populated Config object with validation

    Raises:
        ValueError: If required values are missing or invalid
    """
    discord_token = get_config_value(
        env_var="DISCORD_TOKEN",
        secret_name="discord_token",
        required=True,
    )

    application_id = _optional_int(
        get_config_value(env_var="DISCORD_CLIENT_ID"),
        "DISCORD_CLIENT_ID",
    )

    guild_id = _optional_int(
        get_config_value(env_var="DISCORD_SERVER_ID"),
        "DISCORD_SERVER_ID",
    )

    log_file_value = get_config_value(env_var="LOG_FILE", default="backend.log")

    config = Config(
        discord_token=discord_token or "",
        application_id=application_id,
        guild_id=guild_id,
        bot_name=get_config_value(env_var="BOT_NAME", default="GameStatus Bot") or "GameStatus Bot",
        status_config_path=Path(
            get_config_value(env_var="STATUS_CONFIG_PATH", default="config.yaml") or "config.yaml"
        ),
        update_interval=_safe_float(
            get_config_value(env_var="STATUS_UPDATE_INTERVAL"), "STATUS_UPDATE_INTERVAL", 600.0
        ),
        purge_limit=_safe_int(get_config_value(env_var="PURGE_LIMIT"), "PURGE_LIMIT", 100),
        purge_delay=_safe_float(get_config_value(env_var="PURGE_DELAY"), "PURGE_DELAY", 0.5),
        server_delay=_safe_float(get_config_value(env_var="SERVER_DELAY"), "SERVER_DELAY", 1.0),
        query_retries=_safe_int(get_config_value(env_var="QUERY_RETRIES"), "QUERY_RETRIES", 3),
        query_timeout=_safe_float(get_config_value(env_var="QUERY_TIMEOUT"), "QUERY_TIMEOUT", 3.0),
        health_check_enabled=_safe_bool(get_config_value(env_var="HEALTH_CHECK_ENABLED"), True),
        health_check_host=get_config_value(env_var="HEALTH_CHECK_HOST", default="0.0.0.0") or "0.0.0.0",
        health_check_port=_safe_int(
            get_config_value(env_var="HEALTH_CHECK_PORT"), "HEALTH_CHECK_PORT", 8080
        ),
        log_level=get_config_value(env_var="LOG_LEVEL", default="info") or "info",
        log_format=get_config_value(env_var="LOG_FORMAT", default="console") or "console",
        log_file=Path(log_file_value) if log_file_value else None,
    )

    return config


def validate_config(config: Config) -> bool:
    """
    Check that the status config referenced by a Config is usable right now.

    The scheduler re-reads the file every tick; this is a startup sanity check
    so an obviously broken deployment fails fast.

    Args:
        config: Config object to validate

    Returns:
        True if config is valid, False otherwise
    """
    try:
        if not config.discord_token:
            logger.error("config_validation_failed_no_token")
            return False

        status_config = load_status_config(config.status_config_path)

        if not status_config.servers:
            logger.warning(
                "config_no_servers_configured",
                path=str(config.status_config_path),
            )

        return True

    except Exception as e:
        logger.error(
            "config_validation_error",
            path=str(config.status_config_path),
            error=str(e),
        )
        return False
