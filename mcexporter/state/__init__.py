"""Typed exporter runtime records."""
import threading
from dataclasses import dataclass, field
from typing import Any


CHECK_NAMES = ("process", "port", "rcon", "disk", "memory")

DEFAULT_TICKS_PER_SECOND = 20.0


@dataclass(frozen=True)
class FactSnapshot:
    """Point-in-time facts about the monitored server; every field is defaulted."""
    healthy: bool = False
    players_online: int = 0
    players_max: int = 0
    ticks_per_second: float = DEFAULT_TICKS_PER_SECOND
    uptime_seconds: int = 0
    memory_used_bytes: int = 0
    memory_max_bytes: int = 0
    disk_usage_percent: int = 0
    disk_available_bytes: int = 0
    world_size_bytes: int = 0
    backup_last_timestamp: int = 0
    backup_size_bytes: int = 0
    scrape_duration_seconds: float = 0.0
    checks: tuple = tuple((name, False) for name in CHECK_NAMES)

    def check_passed(self, name):
        """Return the pass flag recorded for one named check."""
        for check_name, passed in self.checks:
            if check_name == name:
                return passed
        return False

    @property
    def all_checks_passed(self):
        return all(passed for _, passed in self.checks)


@dataclass(frozen=True)
class CacheEntry:
    """Snapshot plus the monotonic time it was captured and its validity window."""
    snapshot: FactSnapshot
    captured_at: float
    ttl_seconds: float

    def is_fresh(self, now):
        """Return whether the entry is still inside its validity window."""
        if self.ttl_seconds <= 0:
            return False
        return (now - self.captured_at) < self.ttl_seconds


@dataclass
class ExporterContext:
    """Resolved settings and loggers shared by probes, routes and the runner."""
    PROMETHEUS_PORT: int
    BIND_HOST: str
    SCRAPE_INTERVAL_SECONDS: float
    DISK_SCAN_INTERVAL_SECONDS: float
    PROCESS_PATTERN: Any
    SERVICE: str
    RCON_HOST: str
    RCON_PORT: int
    RCON_PASSWORD: str
    RCON_TIMEOUT_SECONDS: float
    MCRCON_BIN: str
    SYSTEMCTL_TIMEOUT_SECONDS: float
    SERVER_DIR: Any
    WORLD_DIRS: tuple
    BACKUP_DIR: Any
    BACKUP_GLOB: str
    PLAYERS_MAX_DEFAULT: int
    MEMORY_MAX_BYTES: int
    REQUEST_TIMEOUT_SECONDS: float
    SHUTDOWN_GRACE_SECONDS: float
    GAME_PORT: int
    DISK_WARN_PERCENT: int
    LOG_FILE: Any
    log_action: Any
    log_exception: Any
    log_sink: Any = None
    # Directory walks are cached separately from the scrape cache.
    dir_scan_lock: Any = field(default_factory=threading.Lock)
    dir_scan_cache: dict = field(default_factory=dict)

    @property
    def rcon_enabled(self):
        return bool(self.RCON_PASSWORD)
