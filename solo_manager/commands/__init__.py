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

"""Typer subcommand groups of the solo manager CLI."""

from __future__ import annotations

import sys

import typer

from solo_manager.config import CommandFlags


def command_flags(ctx: typer.Context, **overrides: object) -> CommandFlags:
    """Return the global flags of *ctx* with per-command values applied.

    The recorded command line is the argv of the running process; the
    command path is taken from *ctx* without the program name.
    """
    base: CommandFlags = ctx.obj if isinstance(ctx.obj, CommandFlags) else CommandFlags()
    updates = {key: value for key, value in overrides.items() if value is not None}
    flags = CommandFlags(**{**base.__dict__, **updates})
    if not flags.argv:
        flags.argv = ["solo", *sys.argv[1:]]
    if not flags.command:
        flags.command = ctx.command_path.split()[1:]
    return flags
