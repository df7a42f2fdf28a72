"""Minimal KEY=VALUE config loader with typed accessors and env overrides."""

import os
from pathlib import Path


def parse_env_lines(lines):
    """Parse dotenv-style lines into a key/value mapping."""
    values = {}
    for raw in lines:
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        values[key] = value
    return values


class EnvConfig:
    """Read a config.env file, overlay the process environment, expose typed getters."""

    def __init__(self, config_path, base_dir, environ=None):
        self.config_path = Path(config_path)
        self.base_dir = Path(base_dir)
        self.environ = os.environ if environ is None else environ
        self.values = self._load()

    def _load(self):
        """Return file values with matching environment variables taking precedence."""
        try:
            lines = self.config_path.read_text(encoding="utf-8").splitlines()
        except OSError:
            lines = []
        values = parse_env_lines(lines)
        for key, value in self.environ.items():
            if key in values or _is_exporter_key(key):
                values[key] = value
        return values

    def _raw(self, name):
        """Return the stripped value for ``name``, or None when unset or blank."""
        value = self.values.get(name)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def has(self, name):
        return self._raw(name) is not None

    def get_str(self, name, default):
        text = self._raw(name)
        return default if text is None else text

    def _get_number(self, name, default, cast, minimum):
        text = self._raw(name)
        if text is None:
            return default
        try:
            parsed = cast(text)
        except ValueError:
            return default
        if minimum is not None:
            parsed = max(parsed, minimum)
        return parsed

    def get_int(self, name, default, minimum=None):
        """Integer setting; unparsable values give ``default``, low ones clamp to ``minimum``."""
        return self._get_number(name, default, int, minimum)

    def get_float(self, name, default, minimum=None):
        return self._get_number(name, default, float, minimum)

    def get_path(self, name, default, base_dir=None):
        """Path setting; relative values resolve from ``base_dir`` (the config base by default)."""
        text = self._raw(name)
        if text is None:
            return Path(default)
        candidate = Path(text)
        if candidate.is_absolute():
            return candidate
        return Path(base_dir or self.base_dir) / candidate

    def get_list(self, name, default):
        """Comma separated setting as a tuple of non-blank items."""
        text = self._raw(name)
        items = tuple(part.strip() for part in (text or "").split(",") if part.strip())
        return items or tuple(default)


# Keys read from the environment even when the file does not mention them.
EXPORTER_KEYS = frozenset({
    "PROMETHEUS_PORT",
    "BIND_HOST",
    "SCRAPE_INTERVAL",
    "DISK_SCAN_INTERVAL",
    "PROCESS_PATTERN",
    "SERVICE",
    "RCON_HOST",
    "RCON_PORT",
    "RCON_PASSWORD",
    "RCON_TIMEOUT_SECONDS",
    "MCRCON_BIN",
    "SYSTEMCTL_TIMEOUT_SECONDS",
    "SERVER_DIR",
    "WORLD_DIRS",
    "BACKUP_DIR",
    "BACKUP_GLOB",
    "PLAYERS_MAX_DEFAULT",
    "MEMORY_MAX_BYTES",
    "REQUEST_TIMEOUT_SECONDS",
    "SHUTDOWN_GRACE_SECONDS",
    "GAME_PORT",
    "DISK_WARN_PERCENT",
    "LOG_DIR",
    "LOG_FILE",
})


def _is_exporter_key(key):
    return key in EXPORTER_KEYS
