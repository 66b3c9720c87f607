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

"""Remote config manager: the ConfigMap-backed topology document and its only write path."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, fields

import typer
import yaml

from solo_manager import logger as package_logger
from solo_manager.components import ComponentFactory
from solo_manager.config import CommandFlags, SoloSettings
from solo_manager.constants import (
    REMOTE_CONFIG_DATA_KEY,
    REMOTE_CONFIG_LABELS,
    REMOTE_CONFIG_NAME,
    REMOTE_CONFIG_SELECTOR,
    dep_value,
)
from solo_manager.errors import (
    IllegalArgumentError,
    LockRelinquishmentError,
    RemoteConfigExistsError,
    RemoteConfigNotLoadedError,
    RemoteConfigValidationError,
    ResourceNotFoundError,
)
from solo_manager.kube import K8Factory
from solo_manager.local_config import LocalConfig
from solo_manager.lock import IntervalLock, LockManager
from solo_manager.mapper import ObjectMapper, to_camel
from solo_manager.migrations import RemoteConfigSchema
from solo_manager.models import (
    ApplicationVersions,
    Cluster,
    CommonFlags,
    RemoteConfigData,
    RemoteConfigMetadata,
    UserIdentity,
    utc_now,
)
from solo_manager.phases import ComponentType, LedgerPhase
from solo_manager.remote_validator import RemoteConfigValidator
from solo_manager.validation import ensure_valid_remote_config

ModifyCallback = Callable[[RemoteConfigData], Awaitable[None] | None]

# Command flag and the version field it records.
VERSION_FLAGS = {
    "solo_chart_version": "chart",
    "release_tag": "consensus_node",
    "mirror_node_version": "mirror_node_chart",
    "hedera_explorer_version": "explorer_chart",
    "relay_release_tag": "json_rpc_relay_chart",
}

_NODE_CHANGE_SUBCOMMANDS = ("update", "update-execute", "add", "add-execute", "delete", "delete-execute")
_NODE_READ_ONLY_SUBCOMMANDS = ("keys", "logs", "states")
_DEPLOYED_BY = {"mirror_node_version": "mirror-node", "hedera_explorer_version": "explorer", "relay_release_tag": "relay"}


def uses_version_flag(flag: str, command: list[str]) -> bool:
    """Whether *command* records the default of *flag* when the flag is not passed."""
    name, sub = (list(command) + ["", ""])[:2]
    if flag == "solo_chart_version":
        return (name == "network" and sub in ("deploy", "refresh")) or (
            name == "node" and sub in _NODE_CHANGE_SUBCOMMANDS)
    if flag == "release_tag":
        return (name == "node" and sub not in _NODE_READ_ONLY_SUBCOMMANDS) or (name, sub) == ("network", "deploy")
    return sub == "deploy" and _DEPLOYED_BY.get(flag) == name


@dataclass(frozen=True)
class ConsensusNode:
    """A consensus node joined with the kube context of its cluster."""

    name: str
    node_id: int
    namespace: str
    cluster: str
    context: str | None
    dns_base_domain: str
    dns_consensus_node_pattern: str

    @property
    def fqdn(self) -> str:
        host = self.dns_consensus_node_pattern.replace("{nodeAlias}", self.name).replace(
            "{namespace}", self.namespace)
        return f"{host}.{self.dns_base_domain}"


class RemoteConfigManager:
    """Loads, creates and mutates the remote config of one deployment.

    ``modify`` is the only write path. It serializes callers in this process,
    holds the namespace lease for the whole read-mutate-write cycle, always
    re-reads the ConfigMap first, and writes nothing when the callback fails.
    """

    def __init__(
        self,
        k8_factory: K8Factory,
        lock_manager: LockManager,
        local_config: LocalConfig,
        flags: CommandFlags,
        settings: SoloSettings | None = None,
        mapper: ObjectMapper | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._k8_factory = k8_factory
        self._lock_manager = lock_manager
        self._local_config = local_config
        self._flags = flags
        self._settings = settings or SoloSettings()
        self._mapper = mapper or ObjectMapper()
        self._logger = logger or package_logger
        self._schema = RemoteConfigSchema(mapper=self._mapper, logger=self._logger)
        self._data: RemoteConfigData | None = None
        self._context: str | None = None
        self._mutex = asyncio.Lock()

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def _deployment_name(self) -> str:
        name = self._flags.deployment
        if not name and self._local_config.is_loaded:
            name = self._local_config.current_deployment_name
        if not name:
            raise IllegalArgumentError("Deployment name was not specified")
        return name

    def _namespace(self) -> str:
        if self._flags.namespace:
            return self._flags.namespace
        if self._local_config.is_loaded:
            return self._local_config.get_deployment(self._deployment_name()).namespace
        raise IllegalArgumentError("Namespace was not specified")

    def _default_context(self) -> str | None:
        if self._context:
            return self._context
        if self._flags.context:
            return self._flags.context
        if self._local_config.is_loaded and (self._flags.deployment or self._local_config.current_deployment_name):
            deployment = self._local_config.data.get_deployment(self._deployment_name())
            refs = self._local_config.cluster_refs
            for cluster in deployment.clusters if deployment else []:
                if cluster in refs:
                    return refs[cluster]
        return None

    def _identity(self) -> UserIdentity:
        if self._local_config.is_loaded and self._local_config.data.user_identity:
            return copy.deepcopy(self._local_config.data.user_identity)
        return UserIdentity.current()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _serialize(self, data: RemoteConfigData) -> dict[str, str]:
        return {REMOTE_CONFIG_DATA_KEY: yaml.safe_dump(self._schema.to_object(data), sort_keys=False)}

    def _deserialize(self, config_map: dict, namespace: str) -> RemoteConfigData:
        raw = (config_map.get("data") or {}).get(REMOTE_CONFIG_DATA_KEY)
        if raw is None:
            raise RemoteConfigValidationError(
                f"Remote config in namespace '{namespace}' has no '{REMOTE_CONFIG_DATA_KEY}' key")
        document = yaml.safe_load(raw)
        if not isinstance(document, dict):
            raise RemoteConfigValidationError(f"Remote config in namespace '{namespace}' is not a mapping")
        return self._schema.transform(document)

    async def _read(self, namespace: str, context: str | None) -> RemoteConfigData:
        k8 = self._k8_factory.get_k8(context)
        config_map = await k8.read_config_map(namespace, REMOTE_CONFIG_NAME)
        return self._deserialize(config_map, namespace)

    async def _save(self, data: RemoteConfigData, namespace: str) -> None:
        """Write the whole document to every context of the deployment."""
        payload = self._serialize(data)
        contexts = self._contexts_of(data) or [self._default_context()]

        async def _write(context: str | None) -> None:
            k8 = self._k8_factory.get_k8(context)
            try:
                await k8.replace_config_map(namespace, REMOTE_CONFIG_NAME, REMOTE_CONFIG_LABELS, payload)
            except ResourceNotFoundError:
                await k8.create_config_map(namespace, REMOTE_CONFIG_NAME, REMOTE_CONFIG_LABELS, payload)

        await asyncio.gather(*(_write(c) for c in contexts))
        self._logger.debug("Saved remote config to %d context(s) in %s", len(contexts), namespace)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def is_loaded(self) -> bool:
        return self._data is not None

    async def get(self, context: str | None = None) -> RemoteConfigData:
        """Return the remote config, reading it from the cluster on first use.

        The result is a copy; mutations must go through ``modify``.

        Raises:
            ResourceNotFoundError: If no remote config exists in the namespace.
        """
        if self._data is None:
            context = context or self._default_context()
            self._data = await self._read(self._namespace(), context)
            self._context = context
        return copy.deepcopy(self._data)

    def unload(self) -> None:
        self._data = None
        self._context = None

    async def is_present_in_any_namespace(self, context: str | None = None) -> bool:
        k8 = self._k8_factory.get_k8(context or self._default_context())
        return bool(await k8.list_config_maps_all_namespaces([REMOTE_CONFIG_SELECTOR]))

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def create(
        self,
        state: LedgerPhase,
        node_aliases: list[str],
        namespace: str,
        deployment: str,
        cluster_ref: str,
        context: str | None,
        dns_base_domain: str = "cluster.local",
        dns_consensus_node_pattern: str = "network-{nodeAlias}-svc.{namespace}.svc",
    ) -> RemoteConfigData:
        """Build a new remote config and store it as a new ConfigMap.

        Raises:
            RemoteConfigExistsError: If a remote config already exists in *namespace*.
        """
        k8 = self._k8_factory.get_k8(context)
        if await k8.config_map_exists(namespace, REMOTE_CONFIG_NAME):
            raise RemoteConfigExistsError(namespace, context)

        data = RemoteConfigData(
            metadata=RemoteConfigMetadata(last_updated_at=utc_now(), last_updated_by=self._identity()),
            versions=self._default_versions(),
            clusters=[Cluster(cluster_ref, namespace, deployment, dns_base_domain, dns_consensus_node_pattern)],
            ledger_phase=state,
        )
        for node in ComponentFactory.create_consensus_nodes_from_aliases(node_aliases, cluster_ref, namespace):
            data.components.add_new_component(node)
        self._handle_common_flags(data)
        if self._flags.command_line:
            data.add_command_to_history(self._flags.command_line, self._settings.command_history_max)
        ensure_valid_remote_config(data)

        await k8.create_config_map(namespace, REMOTE_CONFIG_NAME, REMOTE_CONFIG_LABELS, self._serialize(data))
        if self._local_config.is_loaded and context and self._local_config.cluster_refs.get(cluster_ref) != context:
            self._local_config.add_cluster_ref(cluster_ref, context)
            await self._local_config.write()
        self._data = data
        self._context = context
        self._logger.info("Created remote config in namespace %s (cluster %s)", namespace, cluster_ref)
        return copy.deepcopy(data)

    async def modify(self, callback: ModifyCallback) -> RemoteConfigData:
        """Apply *callback* to the current document and persist the result.

        The callback receives a private mutable copy; if it raises, nothing is
        written and the exception propagates. If the lease was lost before the
        write, ``LockRenewalError`` is raised and nothing is written. The lease is
        released in every case.

        Returns:
            A copy of the persisted document.
        """
        async with self._mutex:
            namespace = self._namespace()
            context = self._default_context()
            lock = self._lock_manager.create(namespace, context)
            await lock.acquire()
            try:
                current = await self._read(namespace, context)
                self._data = current
                self._context = context
                candidate = copy.deepcopy(current)
                result = callback(candidate)
                if asyncio.iscoroutine(result):
                    await result
                candidate.metadata = RemoteConfigMetadata(last_updated_at=utc_now(), last_updated_by=self._identity())
                ensure_valid_remote_config(candidate)
                await lock.ensure_held()
                await self._save(candidate, namespace)
                self._data = candidate
            except BaseException:
                await self._release_after_failure(lock)
                raise
            await lock.release()
        return copy.deepcopy(self._data)

    async def _release_after_failure(self, lock: IntervalLock) -> None:
        try:
            await lock.release()
        except LockRelinquishmentError as err:
            self._logger.warning("Lease not released after failed modification: %s", err)

    async def load_and_validate(self, validate: bool = True, skip_consensus_nodes_validation: bool = True) -> None:
        """Load the document, optionally check it against live pods, and record the run.

        Recording adds the command to the history, back-fills versions passed
        or implied by the command, and reconciles the remembered flags.

        Raises:
            ComponentValidationError: If a component has no matching pods.
        """
        data = await self.get()
        if validate:
            validator = RemoteConfigValidator(self._settings, logger=self._logger)
            await validator.validate_components(
                self._namespace(), data.components, self._k8_factory, self._local_config,
                skip_consensus_nodes_validation,
            )
        email = self._local_config.user_email_address if self._local_config.is_loaded else None
        entry = f"Executed by {email or 'unknown'}: {self._flags.command_line}".rstrip()

        def _record(rc: RemoteConfigData) -> None:
            rc.add_command_to_history(entry, self._settings.command_history_max)
            self._populate_versions(rc)
            self._handle_common_flags(rc)

        await self.modify(_record)

    # ------------------------------------------------------------------
    # Versions and remembered flags
    # ------------------------------------------------------------------

    def _default_versions(self) -> ApplicationVersions:
        return ApplicationVersions(
            cli=self._settings.cli_version,
            chart=self._settings.solo_chart_version,
            consensus_node=dep_value("consensus_node", "version", default="0.0.0"),
            mirror_node_chart=dep_value("charts", "mirror_node", default="0.0.0"),
            explorer_chart=dep_value("charts", "explorer", default="0.0.0"),
            json_rpc_relay_chart=dep_value("charts", "json_rpc_relay", default="0.0.0"),
            block_node_chart=dep_value("charts", "block_node", default=""),
        )

    def _populate_versions(self, rc: RemoteConfigData) -> None:
        """Record versions passed on the command line, or the defaults of commands that deploy them."""
        defaults = self._default_versions()
        for flag, version_field in VERSION_FLAGS.items():
            passed = getattr(self._flags, flag)
            if passed:
                setattr(rc.versions, version_field, passed)
            elif uses_version_flag(flag, self._flags.command):
                setattr(rc.versions, version_field, getattr(defaults, version_field))

    def _handle_common_flags(self, rc: RemoteConfigData) -> None:
        """Reconcile the remembered flags of *rc* with the flags of this run.

        A flag the user did not pass is restored from the remote config. A
        passed flag is remembered when none was stored. When both are set and
        differ, the user chooses; in quiet or forced mode the stored value is
        left alone and the passed one is used for this run.
        """
        for item in fields(CommonFlags):
            stored = getattr(rc.flags, item.name)
            passed = getattr(self._flags, item.name)
            if not passed:
                if stored:
                    setattr(self._flags, item.name, stored)
                continue
            if not stored:
                setattr(rc.flags, item.name, passed)
            elif stored != passed and not (self._flags.quiet or self._flags.force):
                if typer.confirm(
                    f"Remote config has {to_camel(item.name)}='{stored}' but '{passed}' was passed. "
                    "Use the new value?"
                ):
                    setattr(rc.flags, item.name, passed)
                else:
                    setattr(self._flags, item.name, stored)

    async def delete_components(self) -> None:
        await self.modify(lambda rc: rc.components.clear())

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def _require(self) -> RemoteConfigData:
        if self._data is None:
            raise RemoteConfigNotLoadedError()
        return self._data

    def _contexts_of(self, data: RemoteConfigData) -> list[str]:
        refs = self._local_config.cluster_refs if self._local_config.is_loaded else {}
        return list(dict.fromkeys(refs[c.name] for c in data.clusters if c.name in refs))

    def get_cluster_refs(self) -> dict[str, str | None]:
        """Cluster reference to kube context for every cluster of the deployment."""
        refs = self._local_config.cluster_refs if self._local_config.is_loaded else {}
        return {c.name: refs.get(c.name) for c in self._require().clusters}

    def get_contexts(self) -> list[str]:
        return self._contexts_of(self._require())

    def get_consensus_nodes(self) -> list[ConsensusNode]:
        data = self._require()
        refs = self.get_cluster_refs()
        nodes = []
        for component in data.components.get_all(ComponentType.CONSENSUS_NODE):
            cluster = data.get_cluster(component.cluster)
            nodes.append(ConsensusNode(
                name=component.name,
                node_id=getattr(component, "node_id", component.id),
                namespace=component.namespace,
                cluster=component.cluster,
                context=refs.get(component.cluster),
                dns_base_domain=cluster.dns_base_domain if cluster else "cluster.local",
                dns_consensus_node_pattern=cluster.dns_consensus_node_pattern if cluster
                else "network-{nodeAlias}-svc.{namespace}.svc",
            ))
        return nodes
