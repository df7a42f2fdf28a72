"""Fact collection: one defaulted FactSnapshot per call, never raising."""

import socket
import time

from mcexporter.core.filesystem_utils import directory_size_bytes, newest_matching_file
from mcexporter.services import minecraft_runtime
from mcexporter.services import service_status
from mcexporter.services import system_metrics
from mcexporter.state import CHECK_NAMES, DEFAULT_TICKS_PER_SECOND, FactSnapshot


def _safe_probe(ctx, name, probe, default):
    """Run one probe, converting any exception into ``default``."""
    try:
        return probe()
    except Exception as exc:
        ctx.log_exception(f"probe/{name}", exc)
        return default


def probe_liveness(ctx):
    """Return (healthy, pid, unit_active); healthy when a process matches or the unit is active."""
    pids = system_metrics.find_process_pids(ctx.PROCESS_PATTERN)
    pid = pids[0] if pids else None
    unit_active = service_status.is_unit_active(ctx)
    return bool(pid is not None or unit_active), pid, unit_active


def probe_uptime(ctx, pid, unit_active):
    """Prefer the unit's active-enter time; fall back to the process age."""
    if unit_active:
        uptime = service_status.get_unit_uptime_seconds(ctx)
        if uptime > 0:
            return uptime
    if pid is not None:
        return system_metrics.read_process_age_seconds(pid)
    return 0


def probe_game_port(ctx, host="127.0.0.1"):
    """Return whether the game port accepts TCP connections."""
    try:
        with socket.create_connection((host, ctx.GAME_PORT), timeout=ctx.RCON_TIMEOUT_SECONDS):
            return True
    except OSError:
        return False


def get_world_size_bytes(ctx, now=None):
    """Return summed world directory sizes, re-walking at most every DISK_SCAN_INTERVAL."""
    now = time.monotonic() if now is None else now
    with ctx.dir_scan_lock:
        cached = ctx.dir_scan_cache.get("world_size")
        if cached is not None and (now - cached[0]) < ctx.DISK_SCAN_INTERVAL_SECONDS:
            return cached[1]
    total = 0
    for world in ctx.WORLD_DIRS:
        total += directory_size_bytes(ctx.SERVER_DIR / world)
    with ctx.dir_scan_lock:
        ctx.dir_scan_cache["world_size"] = (now, total)
    return total


def get_backup_info(ctx):
    """Return (mtime, size) of the newest backup archive; (0, 0) when none exists."""
    newest = newest_matching_file(ctx.BACKUP_DIR, ctx.BACKUP_GLOB)
    if newest is None:
        return 0, 0
    mtime, size = newest
    return int(mtime), int(size)


def collect(ctx):
    """Return a complete FactSnapshot for the monitored server.

    Every probe is isolated: a failure only resets the fields it owns to
    their defaults. RCON queries run only when the server is live and a
    password is configured, each bounded by RCON_TIMEOUT_SECONDS.
    """
    started = time.monotonic()

    healthy, pid, unit_active = _safe_probe(ctx, "liveness", lambda: probe_liveness(ctx), (False, None, False))

    players_online, players_max, rcon_ok = 0, ctx.PLAYERS_MAX_DEFAULT, False
    ticks_per_second = DEFAULT_TICKS_PER_SECOND
    if healthy and ctx.rcon_enabled:
        players_online, players_max, rcon_ok = _safe_probe(
            ctx,
            "players",
            lambda: minecraft_runtime.probe_player_counts(ctx),
            (0, ctx.PLAYERS_MAX_DEFAULT, False),
        )
        ticks_per_second = _safe_probe(
            ctx,
            "tps",
            lambda: minecraft_runtime.probe_ticks_per_second(ctx),
            DEFAULT_TICKS_PER_SECOND,
        )

    uptime_seconds = _safe_probe(ctx, "uptime", lambda: probe_uptime(ctx, pid, unit_active), 0)
    memory_used = 0
    if pid is not None:
        memory_used = _safe_probe(ctx, "memory", lambda: system_metrics.read_process_rss_bytes(pid), 0)
    disk_percent, disk_available = _safe_probe(
        ctx, "disk", lambda: system_metrics.get_disk_usage(ctx.SERVER_DIR), (0, 0)
    )
    world_size = _safe_probe(ctx, "world_size", lambda: get_world_size_bytes(ctx), 0)
    backup_timestamp, backup_size = _safe_probe(ctx, "backup", lambda: get_backup_info(ctx), (0, 0))
    port_open = False
    if healthy:
        port_open = _safe_probe(ctx, "port", lambda: probe_game_port(ctx), False)

    checks = {
        "process": healthy,
        "port": port_open,
        "rcon": rcon_ok,
        "disk": disk_available > 0 and disk_percent < ctx.DISK_WARN_PERCENT,
        "memory": pid is not None and 0 < memory_used < ctx.MEMORY_MAX_BYTES,
    }

    return FactSnapshot(
        healthy=healthy,
        players_online=max(0, int(players_online)),
        players_max=max(0, int(players_max)),
        ticks_per_second=max(0.0, float(ticks_per_second)),
        uptime_seconds=max(0, int(uptime_seconds)),
        memory_used_bytes=max(0, int(memory_used)),
        memory_max_bytes=max(0, int(ctx.MEMORY_MAX_BYTES)),
        disk_usage_percent=max(0, int(disk_percent)),
        disk_available_bytes=max(0, int(disk_available)),
        world_size_bytes=max(0, int(world_size)),
        backup_last_timestamp=max(0, int(backup_timestamp)),
        backup_size_bytes=max(0, int(backup_size)),
        scrape_duration_seconds=max(0.0, time.monotonic() - started),
        checks=tuple((name, bool(checks[name])) for name in CHECK_NAMES),
    )
