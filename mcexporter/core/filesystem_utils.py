"""Filesystem helpers for directory sizes, newest-file lookup, and display formatting."""

import os
import stat as stat_mode
from pathlib import Path


def format_file_size(num_bytes):
    """Format bytes into a human-readable string (B/KB/MB/GB/TB)."""
    value = float(max(0, num_bytes or 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    if idx == 0:
        return f"{int(value)} {units[idx]}"
    return f"{value:.1f} {units[idx]}"


def format_duration(seconds):
    """Format a duration as ``1d 2h``, ``3h 4m``, ``5m 6s`` or ``7s``."""
    seconds = max(0, int(seconds or 0))
    if seconds >= 86400:
        return f"{seconds // 86400}d {seconds % 86400 // 3600}h"
    if seconds >= 3600:
        return f"{seconds // 3600}h {seconds % 3600 // 60}m"
    if seconds >= 60:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds}s"


def directory_size_bytes(path):
    """Return the total size of regular files below ``path``; 0 when missing."""
    root = Path(path)
    if not root.is_dir():
        return 0
    total = 0
    # Unreadable subtrees are skipped instead of failing the whole walk.
    for dirpath, _dirnames, filenames in os.walk(root, onerror=lambda _exc: None):
        for name in filenames:
            try:
                info = os.lstat(os.path.join(dirpath, name))
            except OSError:
                continue
            if stat_mode.S_ISREG(info.st_mode):
                total += info.st_size
    return total


def newest_matching_file(base_dir, pattern):
    """Return (mtime, size) of the most recently modified file matching ``pattern``."""
    base = Path(base_dir)
    if not base.is_dir():
        return None
    newest = None
    for path in base.glob(pattern):
        try:
            if not path.is_file():
                continue
            stat = path.stat()
        except OSError:
            continue
        if newest is None or stat.st_mtime > newest[0]:
            newest = (stat.st_mtime, stat.st_size)
    return newest
