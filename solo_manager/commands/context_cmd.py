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

"""Context subcommands (connect)."""

from __future__ import annotations

import typer

from solo_manager.commands import command_flags
from solo_manager.orchestrator import run_context_connect, run_workflow

app = typer.Typer(help="Map deployments to kube contexts.")


@app.command()
def connect(
    ctx: typer.Context,
    deployment_clusters: str | None = typer.Option(
        None, "--deployment-clusters", help="Comma separated cluster references of the deployment"),
    context: str | None = typer.Option(
        None, "--context", help="Comma separated kube contexts, one per cluster"),
    email: str | None = typer.Option(None, "--email", help="User email address"),
    deployment: str | None = typer.Option(None, "--deployment", help="Deployment name"),
    namespace: str | None = typer.Option(
        None, "--namespace", help="Namespace of the deployment (defaults to the deployment name)"),
) -> None:
    """Create or update the local config for a deployment."""
    flags = command_flags(ctx, context=context, email=email, deployment=deployment, namespace=namespace)
    run_workflow(flags, run_context_connect, deployment_clusters)
