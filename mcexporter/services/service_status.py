"""systemd unit status queries."""
import shutil
import subprocess
import time


def _run_systemctl(ctx, args):
    """Run one systemctl query; return stdout or None on any failure."""
    command = ["systemctl", *args]
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=ctx.SYSTEMCTL_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        ctx.log_action(
            "systemctl-timeout",
            command=" ".join(command),
            rejection_message=f"Timed out after {ctx.SYSTEMCTL_TIMEOUT_SECONDS:.1f}s.",
        )
        return None
    except FileNotFoundError:
        return None
    except (OSError, subprocess.SubprocessError) as exc:
        ctx.log_exception("systemctl", exc)
        return None
    return result.stdout or ""


def get_unit_status(ctx):
    """Return ``systemctl is-active`` output for the configured unit, or ``unknown``."""
    if not ctx.SERVICE or shutil.which("systemctl") is None:
        return "unknown"
    output = _run_systemctl(ctx, ["is-active", ctx.SERVICE])
    if output is None:
        return "unknown"
    return output.strip() or "unknown"


def is_unit_active(ctx):
    return get_unit_status(ctx) == "active"


def get_unit_uptime_seconds(ctx, now_monotonic=None):
    """Return seconds since the unit entered the active state; 0 when unknown.

    systemd records ``ActiveEnterTimestampMonotonic`` in microseconds of
    CLOCK_MONOTONIC, the same clock behind ``time.monotonic`` on Linux.
    """
    if not ctx.SERVICE or shutil.which("systemctl") is None:
        return 0
    output = _run_systemctl(
        ctx,
        ["show", ctx.SERVICE, "--property=ActiveEnterTimestampMonotonic", "--value"],
    )
    if not output:
        return 0
    try:
        entered_usec = int(output.strip())
    except ValueError:
        return 0
    if entered_usec <= 0:
        return 0
    now = time.monotonic() if now_monotonic is None else now_monotonic
    return max(0, int(now - entered_usec / 1_000_000))
