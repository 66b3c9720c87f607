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

"""Helm chart operations through the helm binary."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import sh

from solo_manager import console
from solo_manager import logger as package_logger
from solo_manager.errors import HelmError


def _stderr(err: sh.ErrorReturnCode) -> str:
    raw = err.stderr or b""
    return (raw.decode(errors="replace") if isinstance(raw, bytes) else str(raw)).strip()


class HelmClient:
    """Install, upgrade, uninstall and list chart releases."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or package_logger

    async def _helm(self, *args: str, context: str | None = None) -> str:
        full = [*args]
        if context:
            full.extend(["--kube-context", context])
        self._logger.debug("helm %s", " ".join(full))
        return str(await asyncio.to_thread(sh.helm, *full))

    async def add_repo(self, name: str, url: str) -> None:
        try:
            await self._helm("repo", "add", name, url, "--force-update")
        except sh.ErrorReturnCode as err:
            raise HelmError(f"Failed to add chart repo '{name}' ({url}): {_stderr(err)}", err) from err

    async def list_releases(self, namespace: str | None = None, context: str | None = None) -> list[dict]:
        """List releases as dicts with ``name``, ``namespace``, ``chart`` and ``status`` keys."""
        scope = ["-n", namespace] if namespace else ["-A"]
        try:
            out = await self._helm("list", *scope, "-o", "json", context=context)
        except sh.ErrorReturnCode as err:
            raise HelmError(f"Failed to list helm releases: {_stderr(err)}", err) from err
        return json.loads(out) if out.strip() else []

    async def is_installed(self, release: str, namespace: str, context: str | None = None) -> bool:
        return any(r.get("name") == release for r in await self.list_releases(namespace, context))

    async def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        *,
        version: str | None = None,
        values_files: list[Path] | None = None,
        set_values: list[str] | None = None,
        context: str | None = None,
        wait: bool = False,
    ) -> bool:
        """Install *chart* as *release*.

        Returns:
            True if the chart was installed, False if the release already existed.

        Raises:
            HelmError: If helm fails.
        """
        if await self.is_installed(release, namespace, context):
            console.print(f"[yellow]\u2139\ufe0f  Release '{release}' already installed in '{namespace}'[/yellow]")
            return False
        args = ["install", release, chart, "--namespace", namespace, "--create-namespace"]
        args.extend(self._value_args(version, values_files, set_values, wait))
        try:
            await self._helm(*args, context=context)
        except sh.ErrorReturnCode as err:
            raise HelmError(f"Failed to install chart '{chart}' as '{release}': {_stderr(err)}", err) from err
        return True

    async def upgrade(
        self,
        release: str,
        chart: str,
        namespace: str,
        *,
        version: str | None = None,
        values_files: list[Path] | None = None,
        set_values: list[str] | None = None,
        context: str | None = None,
        reuse_values: bool = True,
        wait: bool = False,
    ) -> None:
        args = ["upgrade", release, chart, "--namespace", namespace]
        if reuse_values:
            args.append("--reuse-values")
        args.extend(self._value_args(version, values_files, set_values, wait))
        try:
            await self._helm(*args, context=context)
        except sh.ErrorReturnCode as err:
            raise HelmError(f"Failed to upgrade release '{release}': {_stderr(err)}", err) from err

    async def uninstall(self, release: str, namespace: str, context: str | None = None) -> bool:
        """Uninstall *release*; returns False when it was not installed."""
        try:
            await self._helm("uninstall", release, "--namespace", namespace, context=context)
        except sh.ErrorReturnCode_1:
            console.print(f"[yellow]\u26a0\ufe0f  Release '{release}' not found or already uninstalled[/yellow]")
            return False
        except sh.ErrorReturnCode as err:
            raise HelmError(f"Failed to uninstall release '{release}': {_stderr(err)}", err) from err
        return True

    @staticmethod
    def _value_args(version: str | None, values_files: list[Path] | None,
                    set_values: list[str] | None, wait: bool) -> list[str]:
        args: list[str] = []
        if version:
            args.extend(["--version", version])
        for values_file in values_files or []:
            args.extend(["-f", str(values_file)])
        for value in set_values or []:
            args.extend(["--set", value])
        if wait:
            args.append("--wait")
        return args
