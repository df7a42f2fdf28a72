"""Runtime configuration helpers for the exporter."""

import os
import re
from pathlib import Path

from mcexporter.core.env_config import EnvConfig
from mcexporter.state import ExporterContext

CONFIG_ENV_VAR = "MC_EXPORTER_CONFIG"
DEFAULT_PROCESS_PATTERN = r"mohist-1\.20\.1.*\.jar"
DEFAULT_WORLD_DIRS = ("world", "world_nether", "world_the_end")
DEFAULT_PLAYERS_MAX = 20
DEFAULT_MEMORY_MAX_BYTES = 8 * 1024 * 1024 * 1024
MAX_PORT = 65535


class StartupError(Exception):
    """Raised when the exporter cannot start (bad config, port in use, missing tool)."""


def resolve_config_path(explicit_path=None, environ=None, cwd=None):
    """Return the config.env path from CLI, environment, or the deploy/ default."""
    environ = os.environ if environ is None else environ
    if explicit_path:
        return Path(explicit_path)
    from_env = (environ.get(CONFIG_ENV_VAR) or "").strip()
    if from_env:
        return Path(from_env)
    return Path(cwd or os.getcwd()) / "deploy" / "config.env"


def read_server_properties(path):
    """Parse a server.properties file into a dict; missing/unreadable file gives {}."""
    try:
        lines = Path(path).read_text(encoding="utf-8", errors="ignore").splitlines()
    except OSError:
        return {}
    values = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values


def resolve_log_file(cfg):
    """Return the exporter log file path (LOG_FILE, else LOG_DIR/minecraft-exporter.log)."""
    server_dir = cfg.get_path("SERVER_DIR", cfg.base_dir)
    log_dir = cfg.get_path("LOG_DIR", server_dir / "logs", base_dir=server_dir)
    return cfg.get_path("LOG_FILE", log_dir / "minecraft-exporter.log", base_dir=log_dir)


def _checked_port(name, port, minimum):
    if not minimum <= port <= MAX_PORT:
        raise StartupError(f"{name}={port} is outside the valid port range {minimum}-{MAX_PORT}")
    return port


def _compile_process_pattern(pattern):
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise StartupError(f"Invalid PROCESS_PATTERN {pattern!r}: {exc}") from exc


def build_context(cfg, log_action, log_exception, log_sink=None):
    """Resolve every recognized setting from ``cfg`` into an ExporterContext."""
    server_dir = cfg.get_path("SERVER_DIR", cfg.base_dir)
    properties = read_server_properties(server_dir / "server.properties")

    rcon_password = cfg.get_str("RCON_PASSWORD", "")
    rcon_port = cfg.get_int("RCON_PORT", 25575)
    if not rcon_password and properties.get("enable-rcon", "").lower() == "true":
        # Fall back to the server's own RCON settings when none are configured.
        rcon_password = properties.get("rcon.password", "").strip()
        if not cfg.has("RCON_PORT") and properties.get("rcon.port", "").isdigit():
            rcon_port = int(properties["rcon.port"])

    players_max_default = DEFAULT_PLAYERS_MAX
    if cfg.has("PLAYERS_MAX_DEFAULT"):
        players_max_default = cfg.get_int("PLAYERS_MAX_DEFAULT", DEFAULT_PLAYERS_MAX, minimum=0)
    elif properties.get("max-players", "").isdigit():
        players_max_default = int(properties["max-players"])

    return ExporterContext(
        PROMETHEUS_PORT=_checked_port("PROMETHEUS_PORT", cfg.get_int("PROMETHEUS_PORT", 9225), 0),
        BIND_HOST=cfg.get_str("BIND_HOST", "0.0.0.0"),
        SCRAPE_INTERVAL_SECONDS=cfg.get_float("SCRAPE_INTERVAL", 15.0, minimum=0.0),
        DISK_SCAN_INTERVAL_SECONDS=cfg.get_float("DISK_SCAN_INTERVAL", 60.0, minimum=0.0),
        PROCESS_PATTERN=_compile_process_pattern(cfg.get_str("PROCESS_PATTERN", DEFAULT_PROCESS_PATTERN)),
        SERVICE=cfg.get_str("SERVICE", "minecraft.service"),
        RCON_HOST=cfg.get_str("RCON_HOST", "localhost"),
        RCON_PORT=_checked_port("RCON_PORT", rcon_port, 1),
        RCON_PASSWORD=rcon_password,
        RCON_TIMEOUT_SECONDS=cfg.get_float("RCON_TIMEOUT_SECONDS", 5.0, minimum=0.1),
        MCRCON_BIN=cfg.get_str("MCRCON_BIN", ""),
        SYSTEMCTL_TIMEOUT_SECONDS=cfg.get_float("SYSTEMCTL_TIMEOUT_SECONDS", 5.0, minimum=0.1),
        SERVER_DIR=server_dir,
        WORLD_DIRS=cfg.get_list("WORLD_DIRS", DEFAULT_WORLD_DIRS),
        BACKUP_DIR=cfg.get_path("BACKUP_DIR", server_dir / "backups", base_dir=server_dir),
        BACKUP_GLOB=cfg.get_str("BACKUP_GLOB", "backup_*.tar.gz"),
        PLAYERS_MAX_DEFAULT=players_max_default,
        MEMORY_MAX_BYTES=cfg.get_int("MEMORY_MAX_BYTES", DEFAULT_MEMORY_MAX_BYTES, minimum=0),
        REQUEST_TIMEOUT_SECONDS=cfg.get_float("REQUEST_TIMEOUT_SECONDS", 5.0, minimum=0.1),
        SHUTDOWN_GRACE_SECONDS=cfg.get_float("SHUTDOWN_GRACE_SECONDS", 10.0, minimum=0.0),
        GAME_PORT=_checked_port("GAME_PORT", cfg.get_int("GAME_PORT", 25565), 1),
        DISK_WARN_PERCENT=cfg.get_int("DISK_WARN_PERCENT", 90, minimum=1),
        LOG_FILE=resolve_log_file(cfg),
        log_action=log_action,
        log_exception=log_exception,
        log_sink=log_sink,
    )


def load_config(config_path=None, environ=None, cwd=None):
    """Return the EnvConfig for the resolved config file."""
    base_dir = Path(cwd or os.getcwd())
    path = resolve_config_path(config_path, environ=environ, cwd=base_dir)
    return EnvConfig(path, base_dir, environ=environ)
