"""Entry point for `python -m kindwatch`.

Usage:
    python -m kindwatch --all --all-namespaces
    python -m kindwatch --kind=Deployment --api-version=apps/v1
"""

from __future__ import annotations

from kindwatch.cli import cli

cli(prog_name="kindwatch")
