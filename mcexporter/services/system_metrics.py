"""Process and filesystem probes backed by Linux procfs and statvfs."""

import os
from pathlib import Path

PROC_ROOT = Path("/proc")


def _read_cmdline(pid_dir):
    """Return a process command line with NUL separators replaced by spaces."""
    raw = (pid_dir / "cmdline").read_bytes()
    return raw.replace(b"\x00", b" ").decode("utf-8", errors="replace").strip()


def find_process_pids(pattern, proc_root=PROC_ROOT):
    """Return pids whose command line matches ``pattern``, oldest pid first.

    Mirrors ``pgrep -f``: the pattern is searched anywhere in the full
    command line, and the exporter's own process never matches.
    """
    own_pid = os.getpid()
    pids = []
    try:
        entries = list(Path(proc_root).iterdir())
    except OSError:
        return pids
    for entry in entries:
        if not entry.name.isdigit():
            continue
        pid = int(entry.name)
        if pid == own_pid:
            continue
        try:
            cmdline = _read_cmdline(entry)
        except OSError:
            # Process exited between listing and reading.
            continue
        if cmdline and pattern.search(cmdline):
            pids.append(pid)
    pids.sort()
    return pids


def read_process_rss_bytes(pid, proc_root=PROC_ROOT):
    """Return resident set size in bytes from ``/proc/<pid>/status``; 0 when unavailable."""
    try:
        with open(Path(proc_root) / str(pid) / "status", "r", encoding="utf-8") as f:
            for line in f:
                if line.startswith("VmRSS:"):
                    return int(line.split()[1]) * 1024
    except (OSError, ValueError, IndexError):
        return 0
    return 0


def _clock_ticks_per_second():
    try:
        return os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError, AttributeError):
        return 100


def read_process_age_seconds(pid, proc_root=PROC_ROOT):
    """Return seconds since the process started (``ps -o etimes``); 0 when unavailable."""
    root = Path(proc_root)
    try:
        stat_text = (root / str(pid) / "stat").read_text(encoding="utf-8")
        uptime_text = (root / "uptime").read_text(encoding="utf-8")
    except OSError:
        return 0
    try:
        # comm may contain spaces, so split after the closing paren.
        fields = stat_text[stat_text.rindex(")") + 2:].split()
        start_ticks = int(fields[19])
        system_uptime = float(uptime_text.split()[0])
    except (ValueError, IndexError):
        return 0
    age = system_uptime - (start_ticks / _clock_ticks_per_second())
    return max(0, int(age))


def get_disk_usage(path):
    """Return (used percent, available bytes) for the filesystem holding ``path``.

    The percentage is rounded up the way ``df`` reports ``Use%``.
    """
    try:
        stat = os.statvfs(path)
    except OSError:
        return 0, 0
    used = (stat.f_blocks - stat.f_bfree) * stat.f_frsize
    available = stat.f_bavail * stat.f_frsize
    denominator = used + available
    if denominator <= 0:
        return 0, max(0, available)
    percent = -(-used * 100 // denominator)
    return int(max(0, min(100, percent))), int(max(0, available))
