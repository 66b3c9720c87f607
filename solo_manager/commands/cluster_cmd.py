# /*
# Copyright 2026 The Solo Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Cluster subcommands (connect, disconnect, list, info, setup, reset)."""

from __future__ import annotations

from pathlib import Path

import typer

from solo_manager.commands import command_flags
from solo_manager.config import ClusterSetupOptions, SoloSettings
from solo_manager.orchestrator import (
    run_cluster_connect,
    run_cluster_disconnect,
    run_cluster_info,
    run_cluster_list,
    run_cluster_reset,
    run_cluster_setup,
    run_workflow,
)

app = typer.Typer(help="Manage cluster references and the shared cluster setup chart.")


def _setup_settings(setup_namespace: str | None) -> SoloSettings:
    settings = SoloSettings()
    if setup_namespace is not None:
        settings = settings.model_copy(update={"cluster_setup_namespace": setup_namespace})
    return settings


@app.command()
def connect(
    ctx: typer.Context,
    cluster_ref: str = typer.Option(..., "--cluster-ref", help="Cluster reference to map"),
    context: str | None = typer.Option(None, "--context", help="Kube context (default: current context)"),
    email: str | None = typer.Option(None, "--email", help="User email for a new local config"),
) -> None:
    """Map a cluster reference to a kube context."""
    flags = command_flags(ctx, cluster_ref=cluster_ref, context=context, email=email)
    run_workflow(flags, run_cluster_connect, cluster_ref, context)


@app.command()
def disconnect(
    ctx: typer.Context,
    cluster_ref: str = typer.Option(..., "--cluster-ref", help="Cluster reference to remove"),
) -> None:
    """Remove a cluster reference from the local config."""
    run_workflow(command_flags(ctx, cluster_ref=cluster_ref), run_cluster_disconnect, cluster_ref)


@app.command("list")
def list_contexts(ctx: typer.Context) -> None:
    """List kube contexts and the cluster references mapped to them."""
    run_workflow(command_flags(ctx), run_cluster_list)


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the current kube context and cluster."""
    run_workflow(command_flags(ctx), run_cluster_info)


@app.command()
def setup(
    ctx: typer.Context,
    context: str | None = typer.Option(None, "--context", help="Kube context"),
    prometheus_stack: bool = typer.Option(
        True, "--prometheus-stack/--no-prometheus-stack", help="Deploy the prometheus stack"),
    minio: bool = typer.Option(True, "--minio/--no-minio", help="Deploy minio"),
    cert_manager: bool = typer.Option(False, "--cert-manager", help="Deploy cert-manager"),
    cert_manager_crds: bool = typer.Option(False, "--cert-manager-crds", help="Install cert-manager CRDs"),
    chart_dir: Path | None = typer.Option(None, "--chart-dir", help="Local chart directory"),
    setup_namespace: str | None = typer.Option(
        None, "--setup-namespace", help="Namespace of the setup chart (overrides SOLO_CLUSTER_SETUP_NAMESPACE)"),
) -> None:
    """Install the shared cluster setup chart."""
    options = ClusterSetupOptions(
        deploy_prometheus_stack=prometheus_stack,
        deploy_minio=minio,
        deploy_cert_manager=cert_manager,
        deploy_cert_manager_crds=cert_manager_crds,
        chart_dir=chart_dir,
    )
    run_workflow(command_flags(ctx, context=context), run_cluster_setup, options,
                 settings=_setup_settings(setup_namespace))


@app.command()
def reset(
    ctx: typer.Context,
    context: str | None = typer.Option(None, "--context", help="Kube context"),
    force: bool = typer.Option(False, "--force", help="Do not ask for confirmation"),
    setup_namespace: str | None = typer.Option(
        None, "--setup-namespace", help="Namespace of the setup chart (overrides SOLO_CLUSTER_SETUP_NAMESPACE)"),
) -> None:
    """Uninstall the shared cluster setup chart."""
    flags = command_flags(ctx, context=context)
    flags.force = flags.force or force
    run_workflow(flags, run_cluster_reset, settings=_setup_settings(setup_namespace))
