"""Listening socket lifecycle, per-connection threads, and signal-driven shutdown."""

import signal
import socket
import threading
import time

from mcexporter.core.config import StartupError
from mcexporter.services import minecraft_runtime

ACCEPT_POLL_SECONDS = 0.5
LISTEN_BACKLOG = 64


def check_required_tools(ctx):
    """Raise StartupError when RCON is configured but no mcrcon client is installed."""
    if ctx.rcon_enabled and not minecraft_runtime.candidate_mcrcon_bins(ctx):
        raise StartupError("mcrcon not found but RCON_PASSWORD is set. Install mcrcon or unset RCON_PASSWORD.")


class ExporterServer:
    """Accept loop handing every connection to its own daemon thread."""

    def __init__(self, ctx, handler):
        self.ctx = ctx
        self.handler = handler
        self._sock = None
        self._stop = threading.Event()
        self._workers = set()
        self._workers_lock = threading.Lock()

    @property
    def address(self):
        if self._sock is None:
            return None
        return self._sock.getsockname()[:2]

    def bind(self):
        """Bind and listen on BIND_HOST:PROMETHEUS_PORT; StartupError when that fails."""
        host = self.ctx.BIND_HOST
        port = self.ctx.PROMETHEUS_PORT
        try:
            infos = socket.getaddrinfo(host or None, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
            family, socktype, proto, _canon, sockaddr = infos[0]
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            raise StartupError(f"Cannot resolve listen address {host}:{port}: {exc}") from exc
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(LISTEN_BACKLOG)
            sock.settimeout(ACCEPT_POLL_SECONDS)
        except OSError as exc:
            sock.close()
            raise StartupError(f"Cannot listen on {host}:{port}: {exc}") from exc
        self._sock = sock
        return self.address

    def serve_forever(self):
        """Accept until ``request_shutdown`` is called."""
        if self._sock is None:
            self.bind()
        listener = self._sock
        while not self._stop.is_set():
            try:
                conn, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stop.is_set():
                    break
                self.ctx.log_exception("accept", exc)
                time.sleep(0.1)
                continue
            self._spawn(conn, peer)

    def _spawn(self, conn, peer):
        worker = threading.Thread(target=self._run_worker, args=(conn, peer), daemon=True)
        with self._workers_lock:
            self._workers.add(worker)
        worker.start()

    def _run_worker(self, conn, peer):
        try:
            self.handler.handle(conn, peer)
        finally:
            with self._workers_lock:
                self._workers.discard(threading.current_thread())

    def active_workers(self):
        with self._workers_lock:
            return len(self._workers)

    def request_shutdown(self):
        """Ask the accept loop to stop; safe to call from a signal handler."""
        self._stop.set()

    def shutdown(self, grace_seconds=None):
        """Close the listener and wait up to ``grace_seconds`` for in-flight handlers.

        Returns True when every handler finished inside the grace period.
        """
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None
        grace = self.ctx.SHUTDOWN_GRACE_SECONDS if grace_seconds is None else grace_seconds
        deadline = time.monotonic() + grace
        while True:
            with self._workers_lock:
                workers = list(self._workers)
            if not workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            workers[0].join(timeout=remaining)


def install_signal_handlers(server, log_action):
    """Route SIGTERM/SIGINT to ``server.request_shutdown``."""

    def _handle_signal(signum, _frame):
        log_action("signal", command=signal.Signals(signum).name)
        server.request_shutdown()

    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _handle_signal)


def run_server(ctx, server, boot_steps=()):
    """Run startup steps, bind, serve until signalled, drain; return the exit code."""
    log_action = ctx.log_action
    log_exception = ctx.log_exception
    log_action("boot-start", command=f"host={ctx.BIND_HOST} port={ctx.PROMETHEUS_PORT}")
    for step_name, step_func in boot_steps:
        try:
            step_func()
        except Exception as exc:
            log_exception(f"boot_step/{step_name}", exc)
            log_action("boot-failed", command=step_name, rejection_message=str(exc)[:500] or "startup step failed")
            return 1
    try:
        host, port = server.bind()
    except StartupError as exc:
        log_action("boot-failed", command="bind", rejection_message=str(exc)[:500])
        return 1

    log_action("boot-ready", command=f"listening on http://{host}:{port}/metrics")
    try:
        server.serve_forever()
    finally:
        log_action("shutdown-start", command=f"in_flight={server.active_workers()}")
        drained = server.shutdown()
        if drained:
            log_action("shutdown-complete")
        else:
            log_action("shutdown-complete", rejection_message="grace period elapsed with handlers still running")
    return 0
