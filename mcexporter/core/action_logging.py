"""Action/error logging helpers writing one sanitized line per event."""

from datetime import datetime
import os
import sys
import threading
import traceback

LOG_ROTATE_MAX_BYTES = 5 * 1024 * 1024
LOG_ROTATE_BACKUP_COUNT = 5


def sanitize_log_fragment(text):
    """Normalize user/system text into a single safe log line fragment."""
    return " ".join(str(text or "").replace("\r", " ").replace("\n", " ").split()).strip()


def _rotate_log_file(path, max_bytes=LOG_ROTATE_MAX_BYTES, backup_count=LOG_ROTATE_BACKUP_COUNT):
    """Rotate log file when size reaches threshold."""
    if max_bytes <= 0 or backup_count <= 0:
        return False
    try:
        if not path.exists():
            return False
        if path.stat().st_size < max_bytes:
            return False
        for idx in range(backup_count - 1, 0, -1):
            src = path.with_name(f"{path.name}.{idx}")
            dst = path.with_name(f"{path.name}.{idx + 1}")
            if src.exists():
                os.replace(src, dst)
        first = path.with_name(f"{path.name}.1")
        os.replace(path, first)
        return True
    except OSError:
        # Rotation failures must not break request handling.
        return False


class LogSink:
    """Process-wide line sink: an append-mode log file plus an optional stream echo.

    The sink is opened once at startup and closed at shutdown. Writes are
    serialized with a lock so lines from concurrent connection threads never
    interleave. Every I/O failure is swallowed; logging must never take a
    scrape down with it.
    """

    def __init__(self, log_file=None, stream=None):
        self.log_file = log_file
        self.stream = stream
        self._lock = threading.Lock()
        self._handle = None
        self._closed = False

    def open(self):
        """Create the log directory and open the file handle."""
        with self._lock:
            self._closed = False
            self._open_handle()
        return self

    def _open_handle(self):
        if self.log_file is None or self._handle is not None:
            return
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.log_file.open("a", encoding="utf-8")
        except OSError:
            self._handle = None

    def write(self, line):
        """Append one line to the file and echo it to the stream."""
        with self._lock:
            if self._closed:
                return
            if self.stream is not None:
                try:
                    self.stream.write(line + "\n")
                except (OSError, ValueError):
                    pass
            if self.log_file is None:
                return
            if self._handle is not None and self._needs_rotation():
                self._handle.close()
                self._handle = None
                _rotate_log_file(self.log_file, LOG_ROTATE_MAX_BYTES, LOG_ROTATE_BACKUP_COUNT)
            self._open_handle()
            if self._handle is None:
                return
            try:
                self._handle.write(line + "\n")
            except (OSError, ValueError):
                pass

    def _needs_rotation(self):
        try:
            return self._handle.tell() >= LOG_ROTATE_MAX_BYTES
        except (OSError, ValueError):
            return False

    def flush(self):
        with self._lock:
            for target in (self._handle, self.stream):
                if target is None:
                    continue
                try:
                    target.flush()
                except (OSError, ValueError):
                    pass

    def close(self):
        """Flush and close the file handle; later writes are dropped."""
        self.flush()
        with self._lock:
            self._closed = True
            if self._handle is not None:
                try:
                    self._handle.close()
                except OSError:
                    pass
                self._handle = None


def make_stderr_sink(log_file=None):
    """Return a sink echoing to stderr, the way the shell exporter logged."""
    return LogSink(log_file=log_file, stream=sys.stderr)


def make_log_action(sink, display_tz=None):
    """Build and return the structured action logger closure."""

    def log_action(action, command=None, rejection_message=None, peer=None):
        """Write one action event line."""
        timestamp = datetime.now(tz=display_tz).strftime("%Y-%m-%d %H:%M:%S")
        client = sanitize_log_fragment(peer) or "exporter"
        safe_action = sanitize_log_fragment(action) or "unknown"
        parts = [f"[{timestamp}] <{client}> [exporter/{safe_action}]"]
        if command:
            safe_command = sanitize_log_fragment(command)
            if safe_command:
                parts.append(safe_command)
        if rejection_message:
            safe_rejection = sanitize_log_fragment(rejection_message)
            if safe_rejection:
                parts.append(f"rejected: {safe_rejection}")
        line = " ".join(parts).strip()
        if not line:
            return
        sink.write(line)

    return log_action


def make_log_exception(log_action):
    """Build and return an exception logger that emits through log_action."""

    def log_exception(context, exc):
        """Log a compact exception summary with a truncated traceback."""
        exc_name = type(exc).__name__ if exc is not None else "Exception"
        exc_text = sanitize_log_fragment(str(exc) if exc is not None else "")
        tb = ""
        if exc is not None and exc.__traceback__ is not None:
            tb = sanitize_log_fragment(" | ".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        message = f"{context}: {exc_name}"
        if exc_text:
            message += f": {exc_text}"
        if tb:
            message += f" | traceback: {tb[:700]}"
        log_action("error", rejection_message=message)

    return log_exception
