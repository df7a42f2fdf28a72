"""Prometheus metrics exporter for a Minecraft server."""

__version__ = "0.1.0"
