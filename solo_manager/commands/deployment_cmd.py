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

"""Deployment subcommands (create, delete, list, add-cluster)."""

from __future__ import annotations

import typer

from solo_manager.commands import command_flags
from solo_manager.constants import DEFAULT_REALM, DEFAULT_SHARD
from solo_manager.orchestrator import (
    run_deployment_add_cluster,
    run_deployment_create,
    run_deployment_delete,
    run_deployment_list,
    run_workflow,
)

app = typer.Typer(help="Manage deployments.")


@app.command()
def create(
    ctx: typer.Context,
    deployment: str = typer.Option(..., "--deployment", help="Deployment name"),
    namespace: str | None = typer.Option(None, "--namespace", help="Namespace (default: deployment name)"),
    realm: int = typer.Option(DEFAULT_REALM, "--realm", min=0, help="Realm number"),
    shard: int = typer.Option(DEFAULT_SHARD, "--shard", min=0, help="Shard number"),
) -> None:
    """Add a deployment to the local config."""
    flags = command_flags(ctx, deployment=deployment, namespace=namespace)
    run_workflow(flags, run_deployment_create, namespace, realm, shard)


@app.command()
def delete(
    ctx: typer.Context,
    deployment: str | None = typer.Option(None, "--deployment", help="Deployment name"),
) -> None:
    """Remove a deployment that has no remote config left."""
    run_workflow(command_flags(ctx, deployment=deployment), run_deployment_delete)


@app.command("list")
def list_deployments(ctx: typer.Context) -> None:
    """List deployments in the local config."""
    run_workflow(command_flags(ctx), run_deployment_list)


@app.command("add-cluster")
def add_cluster(
    ctx: typer.Context,
    cluster_ref: str = typer.Option(..., "--cluster-ref", help="Connected cluster reference"),
    deployment: str | None = typer.Option(None, "--deployment", help="Deployment name"),
    node_aliases: str | None = typer.Option(None, "--node-aliases", help="Comma separated node aliases"),
    dns_base_domain: str = typer.Option("cluster.local", "--dns-base-domain", help="Cluster DNS base domain"),
    dns_consensus_node_pattern: str = typer.Option(
        "network-{nodeAlias}-svc.{namespace}.svc", "--dns-consensus-node-pattern",
        help="DNS pattern of consensus node services"),
) -> None:
    """Attach a cluster to a deployment, creating its remote config if needed."""
    flags = command_flags(ctx, deployment=deployment, cluster_ref=cluster_ref, node_aliases_unparsed=node_aliases)
    run_workflow(flags, run_deployment_add_cluster, cluster_ref, node_aliases,
                 dns_base_domain, dns_consensus_node_pattern)
