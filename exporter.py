#!/usr/bin/env python3
"""Launch the Minecraft Prometheus exporter."""
import sys

from mcexporter.main import main

if __name__ == "__main__":
    sys.exit(main())
