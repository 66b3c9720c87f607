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

"""Operator-local configuration: deployments and cluster reference mappings."""

from __future__ import annotations

import asyncio
import copy
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import typer
import yaml

from solo_manager import console
from solo_manager import logger as package_logger
from solo_manager.config import CommandFlags, SoloSettings
from solo_manager.constants import DEFAULT_REALM, DEFAULT_SHARD
from solo_manager.errors import IllegalArgumentError, LocalConfigValidationError, Violation
from solo_manager.kube import K8
from solo_manager.mapper import ObjectMapper
from solo_manager.migrations import LocalConfigSchema
from solo_manager.models import Deployment, LocalConfigData, LocalVersions, UserIdentity
from solo_manager.utils import split_flag_input
from solo_manager.validation import LOCAL_CONFIG_INVALID_EMAIL, ensure_valid_local_config


class LocalConfig:
    """The local config file, loaded into memory and validated on every change.

    Setters work on a copy of the document and only replace the in-memory
    state when the copy validates; ``write`` persists the current state
    atomically.
    """

    def __init__(
        self,
        path: Path | None = None,
        settings: SoloSettings | None = None,
        mapper: ObjectMapper | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings or SoloSettings()
        self.path = path or self._settings.local_config_path
        self._mapper = mapper or ObjectMapper()
        self._logger = logger or package_logger
        self._schema = LocalConfigSchema(self._settings.cli_version, mapper=self._mapper, logger=self._logger)
        self._data: LocalConfigData | None = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def config_file_exists(self) -> bool:
        return self.path.is_file()

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    @property
    def data(self) -> LocalConfigData:
        if self._data is None:
            raise LocalConfigValidationError("Local config is not loaded")
        return self._data

    async def load(self) -> LocalConfigData:
        """Read, migrate and validate the file; a migrated file is rewritten.

        Raises:
            LocalConfigValidationError: If the file is malformed or invalid.
            SchemaError: If the file cannot be migrated.
        """
        raw = await asyncio.to_thread(self._read_yaml)
        if not isinstance(raw, dict):
            raise LocalConfigValidationError(f"Local config {self.path} is not a YAML mapping")
        migrated = self._schema.needs_migration(raw)
        data = self._schema.transform(raw)
        ensure_valid_local_config(data)
        self._data = data
        if migrated:
            self._logger.info("Migrated local config %s to schema version %d", self.path, data.schema_version)
            await self.write()
        return data

    def _read_yaml(self) -> Any:
        with open(self.path) as f:
            return yaml.safe_load(f)

    async def write(self) -> None:
        """Validate and write the document with write-then-rename semantics."""
        ensure_valid_local_config(self.data)
        content = yaml.safe_dump(self._mapper.to_object(self.data), sort_keys=False)
        await asyncio.to_thread(self._replace_file, content)
        self._logger.info("Wrote local config to %s", self.path)

    def _replace_file(self, content: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile("w", dir=self.path.parent, prefix=f".{self.path.name}.",
                                          suffix=".tmp", delete=False)
        try:
            with tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp.name, self.path)
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise

    async def create(self, email: str, cli_version: str | None = None) -> LocalConfigData:
        """Start a fresh document for *email* and write it."""
        data = LocalConfigData(
            user_identity=UserIdentity.current(),
            user_email_address=email,
            versions=LocalVersions(cli=cli_version or self._settings.cli_version),
        )
        ensure_valid_local_config(data)
        self._data = data
        await self.write()
        return data

    async def modify(self, callback: Callable[[LocalConfigData], Awaitable[None] | None]) -> None:
        """Run *callback* on a copy, validate the result, then commit and write it."""
        candidate = copy.deepcopy(self.data)
        result = callback(candidate)
        if asyncio.iscoroutine(result):
            await result
        self._commit(candidate)
        await self.write()

    def _commit(self, candidate: LocalConfigData) -> None:
        ensure_valid_local_config(candidate)
        self._data = candidate

    def _change(self, mutate: Callable[[LocalConfigData], None]) -> None:
        candidate = copy.deepcopy(self.data)
        mutate(candidate)
        self._commit(candidate)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def user_email_address(self) -> str | None:
        return self.data.user_email_address

    @property
    def current_deployment_name(self) -> str | None:
        return self.data.current_deployment_name

    @property
    def deployments(self) -> list[Deployment]:
        return copy.deepcopy(self.data.deployments)

    @property
    def cluster_refs(self) -> dict[str, str]:
        return dict(self.data.cluster_refs)

    def get_deployment(self, name: str) -> Deployment:
        deployment = self.data.get_deployment(name)
        if deployment is None:
            raise IllegalArgumentError(f"Deployment '{name}' is not registered in the local config")
        return copy.deepcopy(deployment)

    def get_realm(self, deployment: str) -> int:
        return self.get_deployment(deployment).realm

    def get_shard(self, deployment: str) -> int:
        return self.get_deployment(deployment).shard

    def flat_view(self) -> dict[str, str]:
        return self._mapper.to_flat_key_map(self.data)

    # ------------------------------------------------------------------
    # Validated setters
    # ------------------------------------------------------------------

    def set_user_email_address(self, email: str) -> None:
        self._change(lambda d: setattr(d, "user_email_address", email))

    def set_deployments(self, deployments: list[Deployment]) -> None:
        self._change(lambda d: setattr(d, "deployments", copy.deepcopy(deployments)))

    def set_current_deployment(self, name: str | None) -> None:
        self._change(lambda d: setattr(d, "current_deployment_name", name))

    def add_cluster_ref(self, cluster_ref: str, context: str) -> None:
        self._change(lambda d: d.cluster_refs.__setitem__(cluster_ref, context))

    def remove_cluster_ref(self, cluster_ref: str) -> None:
        if cluster_ref not in self.data.cluster_refs:
            raise IllegalArgumentError(f"Cluster reference '{cluster_ref}' is not mapped")
        self._change(lambda d: d.cluster_refs.pop(cluster_ref))

    def add_deployment(self, name: str, namespace: str, clusters: list[str] | None = None,
                       realm: int = DEFAULT_REALM, shard: int = DEFAULT_SHARD) -> None:
        if self.data.get_deployment(name) is not None:
            raise IllegalArgumentError(f"Deployment '{name}' already exists")
        entry = Deployment(name=name, namespace=namespace, clusters=list(clusters or []), realm=realm, shard=shard)
        self._change(lambda d: d.deployments.append(entry))

    def remove_deployment(self, name: str) -> None:
        self.get_deployment(name)

        def _mutate(d: LocalConfigData) -> None:
            d.deployments = [entry for entry in d.deployments if entry.name != name]
            if d.current_deployment_name == name:
                d.current_deployment_name = None

        self._change(_mutate)

    def add_cluster_ref_to_deployment(self, cluster_ref: str, deployment: str) -> None:
        self.get_deployment(deployment)

        def _mutate(d: LocalConfigData) -> None:
            target = d.get_deployment(deployment)
            if cluster_ref not in target.clusters:
                target.clusters.append(cluster_ref)

        self._change(_mutate)

    def set_property(self, key: str, value: Any) -> None:
        """Write one dotted path (as shown by ``flat_view``) and re-validate."""
        plain = self._mapper.to_object(self.data)
        self._mapper.apply_property_value(plain, key, value)
        self._commit(self._mapper.from_object(LocalConfigData, plain))


# ============================================================================
# Interactive population
# ============================================================================

async def prompt_local_config(
    local_config: LocalConfig,
    k8: K8,
    flags: CommandFlags,
    settings: SoloSettings,
    deployment_clusters: str | None = None,
) -> LocalConfigData:
    """Fill in email, deployment, clusters and contexts, then write the local config.

    In quiet mode nothing is prompted: the email falls back to
    ``SOLO_USER_EMAIL`` and clusters and contexts are taken from the current
    kube context.

    Raises:
        LocalConfigValidationError: If a required value cannot be determined.
    """
    existing = local_config.data if local_config.is_loaded else None
    email = flags.email or (existing.user_email_address if existing else None)
    if not email:
        if flags.quiet:
            email = settings.user_email
            if not email:
                raise LocalConfigValidationError(
                    LOCAL_CONFIG_INVALID_EMAIL, [Violation("userEmailAddress", "no email given in quiet mode")])
        else:
            email = typer.prompt("User email address")

    deployment = flags.deployment
    if not deployment:
        if flags.quiet:
            raise IllegalArgumentError("Deployment name was not specified")
        deployment = typer.prompt("Deployment name")
    namespace = flags.namespace or deployment

    clusters = split_flag_input(deployment_clusters or flags.cluster_ref)
    if not clusters:
        current_cluster = await k8.current_cluster_name()
        if flags.quiet:
            clusters = [current_cluster]
        else:
            clusters = split_flag_input(
                typer.prompt("Cluster references for the deployment (comma separated)", default=current_cluster))

    contexts = split_flag_input(flags.context)
    mapping: dict[str, str] = {}
    if len(contexts) >= len(clusters):
        mapping = dict(zip(clusters, contexts))
    else:
        current_context = await k8.current_context()
        if flags.quiet:
            mapping = {cluster: current_context for cluster in clusters}
        else:
            console.print(f"[yellow]Available contexts: {', '.join(await k8.list_contexts())}[/yellow]")
            for cluster in clusters:
                mapping[cluster] = typer.prompt(f"Kube context for cluster '{cluster}'", default=current_context)

    if existing is None:
        await local_config.create(email, settings.cli_version)

    def _populate(data: LocalConfigData) -> None:
        data.user_email_address = email
        data.cluster_refs.update(mapping)
        entry = data.get_deployment(deployment)
        if entry is None:
            data.deployments.append(Deployment(name=deployment, namespace=namespace, clusters=list(clusters)))
        else:
            entry.namespace = namespace
            entry.clusters = list(dict.fromkeys([*entry.clusters, *clusters]))
        data.current_deployment_name = deployment

    await local_config.modify(_populate)
    return local_config.data
