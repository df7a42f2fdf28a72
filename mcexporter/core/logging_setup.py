"""Logging setup helpers."""

from mcexporter.core.action_logging import make_log_action, make_log_exception, make_stderr_sink


def build_loggers(log_file, display_tz=None, sink=None):
    """Open the process log sink and return (sink, log_action, log_exception)."""
    if sink is None:
        sink = make_stderr_sink(log_file)
    sink.open()
    log_action = make_log_action(sink, display_tz)
    log_exception = make_log_exception(log_action)
    return sink, log_action, log_exception
