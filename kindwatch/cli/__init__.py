"""kindwatch command-line interface.

Exposes:
    cli          -- Click command entry point (registered as ``kindwatch`` script).
    build_config -- Overlay command-line options on an environment config.
"""

from kindwatch.cli.main import build_config, cli

__all__ = ["build_config", "cli"]
