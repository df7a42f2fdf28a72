"""Minecraft Prometheus exporter entry point.

Serves ``/metrics``, ``/health``, ``/healthz`` and ``/`` for one Minecraft
server process, or runs a one-shot health check from the command line.
"""

import argparse
import sys

from mcexporter.core.config import StartupError, build_context, load_config, resolve_log_file
from mcexporter.core.logging_setup import build_loggers
from mcexporter.routes import exporter_routes
from mcexporter.services import fact_collector
from mcexporter.services import health_report
from mcexporter.services import service_runner
from mcexporter.services.connection_handler import ConnectionHandler
from mcexporter.services.status_cache import SnapshotCache


def build_parser():
    parser = argparse.ArgumentParser(prog="mc-exporter", description="Minecraft Prometheus metrics exporter")
    parser.add_argument("--config", help="path to config.env (default: ./deploy/config.env or $MC_EXPORTER_CONFIG)")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="run the HTTP exporter (default)")
    check = subparsers.add_parser("check", help="collect once and print a health report")
    modes = check.add_mutually_exclusive_group()
    for mode in health_report.OUTPUT_MODES:
        if mode != health_report.DEFAULT_MODE:
            modes.add_argument(f"--{mode}", dest="mode", action="store_const", const=mode)
    check.set_defaults(mode=health_report.DEFAULT_MODE)
    return parser


def create_runtime(cfg, sink=None):
    """Open logging and resolve settings; return (ctx, cache)."""
    log_sink, log_action, log_exception = build_loggers(resolve_log_file(cfg), sink=sink)
    try:
        ctx = build_context(cfg, log_action, log_exception, log_sink=log_sink)
    except StartupError:
        log_sink.close()
        raise
    cache = SnapshotCache(lambda: fact_collector.collect(ctx), ctx.SCRAPE_INTERVAL_SECONDS)
    return ctx, cache


def serve(ctx, cache):
    """Run the exporter until SIGTERM/SIGINT and return the process exit code."""
    handler = ConnectionHandler(ctx, cache)
    server = service_runner.ExporterServer(ctx, handler)
    service_runner.install_signal_handlers(server, ctx.log_action)
    ctx.log_action("startup", command=f"server_dir={ctx.SERVER_DIR} service={ctx.SERVICE}")
    boot_steps = [
        ("check_required_tools", lambda: service_runner.check_required_tools(ctx)),
        ("render_index_page", lambda: exporter_routes.render_index_page(handler.routes)),
    ]
    return service_runner.run_server(ctx, server, boot_steps)


def check(ctx, mode, out=None):
    """Collect once, print the report for ``mode``, return 0 when every check passes."""
    out = out or sys.stdout
    snapshot = fact_collector.collect(ctx)
    text = health_report.render_report(snapshot, mode)
    if text:
        out.write(text + "\n")
    return health_report.exit_code_for(snapshot)


def main(argv=None):
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    try:
        ctx, cache = create_runtime(cfg)
    except StartupError as exc:
        sys.stderr.write(f"mc-exporter: {exc}\n")
        return 1
    try:
        if args.command == "check":
            return check(ctx, args.mode)
        return serve(ctx, cache)
    finally:
        ctx.log_sink.close()


if __name__ == "__main__":
    sys.exit(main())
