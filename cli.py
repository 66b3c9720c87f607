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

"""
cli.py - Unified CLI for Solo deployment configuration.

Subcommands:
    cluster     Map cluster references to kube contexts; install the cluster setup chart
    context     Connect a deployment to kube contexts
    deployment  Create, list and extend deployments
    config      Inspect and edit the local config
    remote      Inspect and validate the remote config

Examples:
    # Map the current kube context to a cluster reference
    ./cli.py cluster connect --cluster-ref cluster-1

    # Create a deployment and attach a cluster with two nodes
    ./cli.py deployment create --deployment dep-1
    ./cli.py deployment add-cluster --deployment dep-1 --cluster-ref cluster-1 --node-aliases node1,node2

    # Check the remote config against running pods
    ./cli.py remote validate --deployment dep-1

For detailed usage information, run: ./cli.py --help
"""

from __future__ import annotations

import logging
import sys

import typer

from solo_manager import console
from solo_manager.commands import (
    cluster_cmd,
    config_cmd,
    context_cmd,
    deployment_cmd,
    remote_cmd,
)
from solo_manager.config import CommandFlags

app = typer.Typer(
    help="Unified CLI for Solo deployment configuration.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    ctx: typer.Context,
    namespace: str | None = typer.Option(None, "--namespace", help="Namespace override"),
    quiet: bool = typer.Option(False, "--quiet", help="Never prompt; infer missing values"),
    force: bool = typer.Option(False, "--force", help="Skip confirmations"),
    dev: bool = typer.Option(False, "--dev", help="Verbose output"),
    release_tag: str | None = typer.Option(None, "--release-tag", help="Consensus node release tag"),
    chart_directory: str | None = typer.Option(
        None, "--chart-directory", help="Local directory holding the solo charts"),
    relay_release_tag: str | None = typer.Option(None, "--relay-release-tag", help="JSON-RPC relay chart version"),
    solo_chart_version: str | None = typer.Option(None, "--solo-chart-version", help="Solo chart version"),
    mirror_node_version: str | None = typer.Option(None, "--mirror-node-version", help="Mirror node chart version"),
    explorer_version: str | None = typer.Option(None, "--explorer-version", help="Explorer chart version"),
) -> None:
    """Initialize logging and global flags for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if dev else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.obj = CommandFlags(
        namespace=namespace,
        quiet=quiet,
        force=force,
        dev=dev,
        release_tag=release_tag,
        chart_directory=chart_directory,
        relay_release_tag=relay_release_tag,
        solo_chart_version=solo_chart_version,
        mirror_node_version=mirror_node_version,
        hedera_explorer_version=explorer_version,
    )


app.add_typer(cluster_cmd.app, name="cluster")
app.add_typer(context_cmd.app, name="context")
app.add_typer(deployment_cmd.app, name="deployment")
app.add_typer(config_cmd.app, name="config")
app.add_typer(remote_cmd.app, name="remote")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
