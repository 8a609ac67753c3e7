"""``kindwatch`` command.

Examples::

    kindwatch                                        # default kinds in "default"
    kindwatch --all --all-namespaces                 # everything, everywhere
    kindwatch --kind=Pod --api-version=v1            # only pods
    kindwatch --kind=Deployment --api-version=apps/v1 --namespace=kube-system
"""

from __future__ import annotations

import asyncio
import dataclasses

import click

from kindwatch.config import load_config
from kindwatch.models.config import KindwatchConfig
from kindwatch.observability.logging import LOG_FORMATS

_LOG_LEVELS = ("debug", "info", "warning", "error")


def build_config(
    base: KindwatchConfig,
    *,
    namespace: str | None,
    all_namespaces: bool,
    watch_all: bool,
    kind: str | None,
    api_version: str | None,
    kubeconfig: str | None,
    db_path: str | None,
    api_port: int | None,
    log_level: str | None,
    log_format: str | None = None,
) -> KindwatchConfig:
    """Overlay command-line options on an environment-derived config."""
    if bool(kind) != bool(api_version):
        raise click.UsageError("--kind and --api-version must be given together")

    watch = base.watch
    if namespace is not None:
        watch = dataclasses.replace(watch, namespace=namespace)
    if all_namespaces:
        watch = dataclasses.replace(watch, namespace="")
    if watch_all:
        watch = dataclasses.replace(watch, watch_all=True)
    if kind and api_version:
        watch = dataclasses.replace(watch, kind=kind, api_version=api_version)
    if kubeconfig:
        watch = dataclasses.replace(watch, kubeconfig=kubeconfig)

    store = base.store
    if db_path is not None:
        store = dataclasses.replace(store, db_path=db_path)

    api = base.api
    if api_port is not None:
        api = dataclasses.replace(api, enabled=True, port=api_port)

    log = base.log
    if log_level is not None:
        log = dataclasses.replace(log, level=log_level)
    if log_format is not None:
        log = dataclasses.replace(log, format=log_format)

    return KindwatchConfig(watch=watch, store=store, api=api, log=log)


@click.command(name="kindwatch")
@click.option("--namespace", default=None, help="Namespace to watch (for namespaced resources).")
@click.option("--all-namespaces", is_flag=True, help="Watch resources across all namespaces.")
@click.option("--all", "watch_all", is_flag=True, help="Watch every watchable resource the cluster serves.")
@click.option("--kind", default=None, help="Specific resource kind to watch (e.g. Pod, Deployment).")
@click.option("--api-version", default=None, help="API version of --kind (e.g. v1, apps/v1).")
@click.option("--kubeconfig", default=None, type=click.Path(dir_okay=False), help="Path to the kubeconfig file.")
@click.option("--db", "db_path", default=None, help="SQLite file to mirror resources into.")
@click.option("--api-port", default=None, type=click.IntRange(1024, 65535), help="Serve the search API on this port.")
@click.option("--log-level", default=None, type=click.Choice(_LOG_LEVELS, case_sensitive=False))
@click.option("--log-format", default=None, type=click.Choice(LOG_FORMATS, case_sensitive=False))
def cli(
    namespace: str | None,
    all_namespaces: bool,
    watch_all: bool,
    kind: str | None,
    api_version: str | None,
    kubeconfig: str | None,
    db_path: str | None,
    api_port: int | None,
    log_level: str | None,
    log_format: str | None,
) -> None:
    """Watch Kubernetes resources and log every change."""
    try:
        base = load_config()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    config = build_config(
        base,
        namespace=namespace,
        all_namespaces=all_namespaces,
        watch_all=watch_all,
        kind=kind,
        api_version=api_version,
        kubeconfig=kubeconfig,
        db_path=db_path,
        api_port=api_port,
        log_level=log_level.lower() if log_level else None,
        log_format=log_format.lower() if log_format else None,
    )

    from kindwatch.app import main

    asyncio.run(main(config))
