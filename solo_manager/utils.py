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

"""Utility functions for kubectl invocation, flag parsing, and command checks."""

from __future__ import annotations

import subprocess

import sh


def split_flag_input(value: str | None, separator: str = ",") -> list[str]:
    """Split a comma separated flag value, dropping blanks.

    Args:
        value: Raw flag value, e.g. ``"cluster-1, cluster-2"``.
        separator: Item separator.

    Returns:
        List of stripped, non-empty items.
    """
    if not value:
        return []
    return [item.strip() for item in value.split(separator) if item.strip()]


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def run_kubectl(args: list[str], timeout: int = 30, stdin: str | None = None) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Args:
        args: kubectl arguments (e.g. ``["get", "configmap", "-n", "solo"]``).
        timeout: Maximum seconds to wait for the command to complete.
        stdin: Text piped to kubectl, used for ``-f -`` manifests.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def is_not_found(stderr: str) -> bool:
    return "NotFound" in stderr or "not found" in stderr
