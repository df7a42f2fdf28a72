"""Minecraft runtime probes over the external mcrcon client."""

import re
import shutil
import subprocess

from mcexporter.state import DEFAULT_TICKS_PER_SECOND

PLAYER_COUNT_PATTERN = re.compile(
    r"there\s+are\s+(\d+)\s*(?:/|of\s+a\s+max\s+of)\s*(\d+)",
    re.IGNORECASE,
)
DECIMAL_PATTERN = re.compile(r"(\d+[.,]\d+)")


def candidate_mcrcon_bins(ctx):
    """Return preferred list of mcrcon binary candidates that exist."""
    candidates = []
    if ctx.MCRCON_BIN:
        configured = shutil.which(ctx.MCRCON_BIN)
        if configured:
            candidates.append(configured)
    found = shutil.which("mcrcon")
    if found and found not in candidates:
        candidates.append(found)
    for path in ("/usr/bin/mcrcon", "/usr/local/bin/mcrcon", "/opt/mcrcon/mcrcon"):
        if path not in candidates and shutil.which(path):
            candidates.append(path)
    return candidates


def clean_rcon_output(text):
    """Strip ANSI and section-format control codes from RCON output."""
    cleaned = text or ""
    cleaned = re.sub(r"\x1b\[[0-9;]*[A-Za-z]", "", cleaned)
    cleaned = re.sub(r"§.", "", cleaned)
    return cleaned


def run_mcrcon(ctx, command):
    """Execute one RCON command and return its cleaned stdout.

    Raises ``RuntimeError`` when RCON is not configured, no client binary is
    installed, or the client exits non-zero, and lets
    ``subprocess.TimeoutExpired`` through after the child has been killed.
    """
    if not ctx.rcon_enabled:
        raise RuntimeError("RCON is disabled: no RCON password configured")
    bins = candidate_mcrcon_bins(ctx)
    if not bins:
        raise RuntimeError("mcrcon client not found")
    argv = [
        bins[0],
        "-H", ctx.RCON_HOST,
        "-P", str(ctx.RCON_PORT),
        "-p", ctx.RCON_PASSWORD,
        command,
    ]
    result = subprocess.run(
        argv,
        capture_output=True,
        text=True,
        timeout=ctx.RCON_TIMEOUT_SECONDS,
    )
    if result.returncode != 0:
        raise RuntimeError(f"mcrcon exited with status {result.returncode}")
    return clean_rcon_output(result.stdout or "")


def parse_player_counts(output):
    """Parse (online, max) from ``list`` output; None when the line is absent."""
    text = clean_rcon_output(output)
    match = PLAYER_COUNT_PATTERN.search(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_ticks_per_second(output):
    """Return the first decimal number of ``tps`` output, or None."""
    text = clean_rcon_output(output)
    match = DECIMAL_PATTERN.search(text)
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    if value < 0:
        return None
    return value


def _query(ctx, command):
    """Run an RCON query, logging and returning None on any failure."""
    try:
        return run_mcrcon(ctx, command)
    except subprocess.TimeoutExpired:
        ctx.log_action(
            "rcon-timeout",
            command=command,
            rejection_message=f"Timed out after {ctx.RCON_TIMEOUT_SECONDS:.1f}s.",
        )
    except (RuntimeError, OSError, subprocess.SubprocessError) as exc:
        ctx.log_action("rcon-failed", command=command, rejection_message=str(exc))
    return None


def probe_player_counts(ctx):
    """Return (online, max, ok) with the configured player-max fallback on failure."""
    output = _query(ctx, "list")
    if output is None:
        return 0, ctx.PLAYERS_MAX_DEFAULT, False
    parsed = parse_player_counts(output)
    if parsed is None:
        ctx.log_action("rcon-unparsed", command="list", rejection_message=output[:200] or "empty reply")
        return 0, ctx.PLAYERS_MAX_DEFAULT, True
    online, maximum = parsed
    return online, maximum, True


def probe_ticks_per_second(ctx):
    """Return server TPS, or the nominal 20.0 when the query fails."""
    output = _query(ctx, "tps")
    if output is None:
        return DEFAULT_TICKS_PER_SECOND
    parsed = parse_ticks_per_second(output)
    if parsed is None:
        return DEFAULT_TICKS_PER_SECOND
    return parsed
