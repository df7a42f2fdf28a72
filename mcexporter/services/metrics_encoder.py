"""Prometheus text exposition rendering for FactSnapshot."""

from collections import namedtuple

from mcexporter.state import CHECK_NAMES

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

MetricDef = namedtuple("MetricDef", ["name", "metric_type", "help_text", "field"])

METRIC_CATALOGUE = (
    MetricDef("minecraft_healthy", "gauge", "Whether the Minecraft server is running (1=yes, 0=no)", "healthy"),
    MetricDef("minecraft_players_online", "gauge", "Current number of players online", "players_online"),
    MetricDef("minecraft_players_max", "gauge", "Maximum number of players allowed", "players_max"),
    MetricDef("minecraft_tps", "gauge", "Server ticks per second (20 = optimal)", "ticks_per_second"),
    MetricDef("minecraft_uptime_seconds", "counter", "Server uptime in seconds", "uptime_seconds"),
    MetricDef("minecraft_memory_used_bytes", "gauge", "Current memory usage in bytes", "memory_used_bytes"),
    MetricDef("minecraft_memory_max_bytes", "gauge", "Maximum allocated memory in bytes", "memory_max_bytes"),
    MetricDef("minecraft_disk_usage_percent", "gauge", "Disk usage percentage", "disk_usage_percent"),
    MetricDef("minecraft_disk_available_bytes", "gauge", "Available disk space in bytes", "disk_available_bytes"),
    MetricDef("minecraft_world_size_bytes", "gauge", "Total size of all worlds in bytes", "world_size_bytes"),
    MetricDef("minecraft_backup_last_timestamp", "gauge", "Unix timestamp of last backup", "backup_last_timestamp"),
    MetricDef("minecraft_backup_size_bytes", "gauge", "Size of last backup in bytes", "backup_size_bytes"),
)

CHECK_STATUS_METRIC = MetricDef(
    "minecraft_check_status", "gauge", "Individual health check status (1=pass, 0=fail)", "checks"
)
SCRAPE_DURATION_METRIC = MetricDef(
    "minecraft_exporter_scrape_duration_seconds", "gauge", "Time to collect metrics", "scrape_duration_seconds"
)


def format_value(value):
    """Render a sample value without locale-dependent separators."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    text = f"{float(value):.6f}".rstrip("0")
    if text.endswith("."):
        text += "0"
    return text


def _block(metric, sample_lines):
    lines = [
        f"# HELP {metric.name} {metric.help_text}",
        f"# TYPE {metric.name} {metric.metric_type}",
    ]
    lines.extend(sample_lines)
    return "\n".join(lines)


def encode(snapshot):
    """Return the exposition document for ``snapshot`` as UTF-8 bytes."""
    blocks = []
    for metric in METRIC_CATALOGUE:
        value = getattr(snapshot, metric.field)
        blocks.append(_block(metric, [f"{metric.name} {format_value(value)}"]))
    check_lines = [
        f'{CHECK_STATUS_METRIC.name}{{check="{name}"}} {format_value(snapshot.check_passed(name))}'
        for name in CHECK_NAMES
    ]
    blocks.append(_block(CHECK_STATUS_METRIC, check_lines))
    blocks.append(
        _block(
            SCRAPE_DURATION_METRIC,
            [f"{SCRAPE_DURATION_METRIC.name} {format_value(snapshot.scrape_duration_seconds)}"],
        )
    )
    return ("\n\n".join(blocks) + "\n").encode("utf-8")
