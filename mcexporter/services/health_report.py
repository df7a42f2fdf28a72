"""One-shot health report rendering for the ``check`` command."""

import json
from datetime import datetime

from mcexporter.core.filesystem_utils import format_duration, format_file_size
from mcexporter.services import metrics_encoder
from mcexporter.state import CHECK_NAMES

DEFAULT_MODE = "human"
OUTPUT_MODES = (DEFAULT_MODE, "json", "quiet", "prometheus")


def render_human(snapshot):
    """Return the boxed, human-readable report."""
    rule = "=" * 55
    status = "HEALTHY" if snapshot.all_checks_passed else "UNHEALTHY"
    lines = [
        "",
        rule,
        "  Minecraft Server Health Check",
        rule,
        "",
        f"  Status: {status}",
        "",
        "--- Checks " + "-" * 44,
    ]
    for name in CHECK_NAMES:
        mark = "ok" if snapshot.check_passed(name) else "FAIL"
        lines.append(f"  {name:<10} {mark}")
    lines.extend([
        "",
        "--- Metrics " + "-" * 43,
        f"  {'Players Online:':<20} {snapshot.players_online}/{snapshot.players_max}",
        f"  {'TPS:':<20} {metrics_encoder.format_value(snapshot.ticks_per_second)}",
        f"  {'Uptime:':<20} {format_duration(snapshot.uptime_seconds)}",
        f"  {'Disk Usage:':<20} {snapshot.disk_usage_percent}%",
        f"  {'Memory (RSS):':<20} {format_file_size(snapshot.memory_used_bytes)}",
        f"  {'World Size:':<20} {format_file_size(snapshot.world_size_bytes)}",
        "",
        rule,
        "",
    ])
    return "\n".join(lines)


def render_json(snapshot, now=None):
    """Return the JSON report used by monitoring integrations."""
    now = now or datetime.now().astimezone()
    payload = {
        "healthy": 1 if snapshot.all_checks_passed else 0,
        "timestamp": now.isoformat(timespec="seconds"),
        "checks": {name: 1 if snapshot.check_passed(name) else 0 for name in CHECK_NAMES},
        "metrics": {
            "players_online": snapshot.players_online,
            "players_max": snapshot.players_max,
            "tps": snapshot.ticks_per_second,
            "uptime_seconds": snapshot.uptime_seconds,
            "disk_usage_percent": snapshot.disk_usage_percent,
            "disk_available_bytes": snapshot.disk_available_bytes,
            "memory_rss_bytes": snapshot.memory_used_bytes,
            "world_size_bytes": snapshot.world_size_bytes,
            "backup_last_timestamp": snapshot.backup_last_timestamp,
            "backup_size_bytes": snapshot.backup_size_bytes,
        },
    }
    return json.dumps(payload, indent=2)


def render_report(snapshot, mode):
    """Return report text for ``mode``; quiet mode renders nothing."""
    if mode not in OUTPUT_MODES:
        raise ValueError(f"unknown report mode {mode!r}; expected one of {', '.join(OUTPUT_MODES)}")
    if mode == "json":
        return render_json(snapshot)
    if mode == "prometheus":
        return metrics_encoder.encode(snapshot).decode("utf-8").rstrip("\n")
    if mode == "quiet":
        return ""
    return render_human(snapshot)


def exit_code_for(snapshot):
    return 0 if snapshot.all_checks_passed else 1
