import re
import threading
from pathlib import Path

from mcexporter.state import ExporterContext, FactSnapshot


class RecordingLog:
    """Collect log_action/log_exception calls for assertions."""

    def __init__(self):
        self.lock = threading.Lock()
        self.actions = []
        self.exceptions = []

    def log_action(self, action, command=None, rejection_message=None, peer=None):
        with self.lock:
            self.actions.append((action, command, rejection_message))

    def log_exception(self, context, exc):
        with self.lock:
            self.exceptions.append((context, exc))

    def action_names(self):
        with self.lock:
            return [name for name, _, _ in self.actions]


def make_context(server_dir=None, log=None, **overrides):
    log = log or RecordingLog()
    server_dir = Path(server_dir or "/nonexistent-minecraft-server")
    values = dict(
        PROMETHEUS_PORT=0,
        BIND_HOST="127.0.0.1",
        SCRAPE_INTERVAL_SECONDS=15.0,
        DISK_SCAN_INTERVAL_SECONDS=60.0,
        PROCESS_PATTERN=re.compile(r"mohist-1\.20\.1.*\.jar"),
        SERVICE="minecraft.service",
        RCON_HOST="localhost",
        RCON_PORT=25575,
        RCON_PASSWORD="",
        RCON_TIMEOUT_SECONDS=5.0,
        MCRCON_BIN="",
        SYSTEMCTL_TIMEOUT_SECONDS=5.0,
        SERVER_DIR=server_dir,
        WORLD_DIRS=("world", "world_nether", "world_the_end"),
        BACKUP_DIR=server_dir / "backups",
        BACKUP_GLOB="backup_*.tar.gz",
        PLAYERS_MAX_DEFAULT=20,
        MEMORY_MAX_BYTES=8 * 1024 * 1024 * 1024,
        REQUEST_TIMEOUT_SECONDS=5.0,
        SHUTDOWN_GRACE_SECONDS=2.0,
        GAME_PORT=25565,
        DISK_WARN_PERCENT=90,
        LOG_FILE=server_dir / "logs" / "minecraft-exporter.log",
        log_action=log.log_action,
        log_exception=log.log_exception,
    )
    values.update(overrides)
    return ExporterContext(**values), log


class StaticCache:
    """Snapshot cache double returning a fixed snapshot and counting reads."""

    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot or FactSnapshot()
        self.error = error
        self.reads = 0

    def get(self):
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.snapshot
