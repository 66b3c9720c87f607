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

"""Local config subcommands (show, set, migrate)."""

from __future__ import annotations

import typer

from solo_manager.commands import command_flags
from solo_manager.orchestrator import run_config_migrate, run_config_set, run_config_show, run_workflow

app = typer.Typer(help="Inspect and edit the local config.")


@app.command()
def show(ctx: typer.Context) -> None:
    """Print the local config as flattened key/value pairs."""
    run_workflow(command_flags(ctx), run_config_show)


@app.command("set")
def set_value(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dotted property path, e.g. deployments.0.realm"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set one property of the local config."""
    run_workflow(command_flags(ctx), run_config_set, key, value)


@app.command()
def migrate(ctx: typer.Context) -> None:
    """Upgrade the local config to the current schema version."""
    run_workflow(command_flags(ctx), run_config_migrate)
