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

"""Remote config subcommands (show, validate)."""

from __future__ import annotations

import typer

from solo_manager.commands import command_flags
from solo_manager.orchestrator import run_remote_show, run_remote_validate, run_workflow

app = typer.Typer(help="Inspect the remote config of a deployment.")


@app.command()
def show(
    ctx: typer.Context,
    deployment: str | None = typer.Option(None, "--deployment", help="Deployment name"),
) -> None:
    """Print the remote config document."""
    run_workflow(command_flags(ctx, deployment=deployment), run_remote_show)


@app.command()
def validate(
    ctx: typer.Context,
    deployment: str | None = typer.Option(None, "--deployment", help="Deployment name"),
    skip_consensus_nodes: bool = typer.Option(
        True, "--skip-consensus-nodes/--check-consensus-nodes", help="Skip consensus node pod checks"),
) -> None:
    """Check every component of the remote config against running pods."""
    run_workflow(command_flags(ctx, deployment=deployment), run_remote_validate, skip_consensus_nodes)
