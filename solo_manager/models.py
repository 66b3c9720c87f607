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

"""Persisted local and remote configuration models."""

from __future__ import annotations

import copy
import getpass
import socket
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from solo_manager.components import ComponentsDataWrapper
from solo_manager.constants import (
    DEFAULT_COMMAND_HISTORY_MAX,
    DEFAULT_REALM,
    DEFAULT_SHARD,
    LOCAL_CONFIG_SCHEMA_VERSION,
    REMOTE_CONFIG_SCHEMA_VERSION,
    UNKNOWN_VERSION,
)
from solo_manager.phases import ComponentType, LedgerPhase

if TYPE_CHECKING:
    from solo_manager.mapper import ObjectMapper


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Shared
# ============================================================================

@dataclass
class UserIdentity:
    """Operator identity recorded in both config documents."""

    name: str
    hostname: str

    @classmethod
    def current(cls) -> UserIdentity:
        return cls(name=getpass.getuser(), hostname=socket.gethostname())


# ============================================================================
# Local config
# ============================================================================

@dataclass
class Deployment:
    """A deployment registered on this machine.

    Attributes:
        name: Deployment name.
        namespace: Namespace the deployment lives in.
        clusters: Cluster references the deployment spans.
        realm: Ledger realm number.
        shard: Ledger shard number.
    """

    name: str
    namespace: str
    clusters: list[str] = field(default_factory=list)
    realm: int = DEFAULT_REALM
    shard: int = DEFAULT_SHARD


@dataclass
class LocalVersions:
    cli: str = UNKNOWN_VERSION


@dataclass
class LocalConfigData:
    """The operator-local document stored at ``~/.solo/local-config.yaml``."""

    schema_version: int = LOCAL_CONFIG_SCHEMA_VERSION
    user_identity: UserIdentity | None = None
    user_email_address: str | None = None
    current_deployment_name: str | None = None
    deployments: list[Deployment] = field(default_factory=list)
    cluster_refs: dict[str, str] = field(default_factory=dict)
    versions: LocalVersions = field(default_factory=LocalVersions)

    def get_deployment(self, name: str) -> Deployment | None:
        return next((d for d in self.deployments if d.name == name), None)


# ============================================================================
# Remote config
# ============================================================================

@dataclass
class Cluster:
    """A cluster taking part in a deployment, as recorded in the remote config."""

    name: str
    namespace: str
    deployment: str
    dns_base_domain: str = "cluster.local"
    dns_consensus_node_pattern: str = "network-{nodeAlias}-svc.{namespace}.svc"


@dataclass
class ApplicationVersions:
    cli: str = UNKNOWN_VERSION
    chart: str = UNKNOWN_VERSION
    consensus_node: str = UNKNOWN_VERSION
    mirror_node_chart: str = UNKNOWN_VERSION
    explorer_chart: str = UNKNOWN_VERSION
    json_rpc_relay_chart: str = UNKNOWN_VERSION
    block_node_chart: str = ""


@dataclass
class RemoteConfigMetadata:
    last_updated_at: datetime = field(default_factory=utc_now)
    last_updated_by: UserIdentity | None = None


@dataclass
class CommandHistory:
    """Bounded history of executed commands, oldest first."""

    commands: list[str] = field(default_factory=list)
    last_executed_command: str | None = None

    def add(self, command: str, maximum: int = DEFAULT_COMMAND_HISTORY_MAX) -> None:
        self.commands.append(command)
        if len(self.commands) > maximum:
            del self.commands[: len(self.commands) - maximum]
        self.last_executed_command = command


@dataclass
class CommonFlags:
    """Command flags remembered in the remote config and restored on later runs.

    Field names follow the keys of the stored ``flags`` section.
    """

    release_tag: str | None = None
    chart_directory: str | None = None
    relay_release_tag: str | None = None
    solo_chart_version: str | None = None
    mirror_node_version: str | None = None
    node_aliases_unparsed: str | None = None
    hedera_explorer_version: str | None = None


@dataclass
class RemoteConfigData:
    """The full document stored in the remote config ConfigMap.

    Components and the ledger phase are serialized together under ``state``.
    Other ``state`` keys, such as block nodes, are kept as they were read.
    """

    schema_version: int = REMOTE_CONFIG_SCHEMA_VERSION
    metadata: RemoteConfigMetadata = field(default_factory=RemoteConfigMetadata)
    versions: ApplicationVersions = field(default_factory=ApplicationVersions)
    clusters: list[Cluster] = field(default_factory=list)
    components: ComponentsDataWrapper = field(default_factory=ComponentsDataWrapper)
    ledger_phase: LedgerPhase = LedgerPhase.UNINITIALIZED
    history: CommandHistory = field(default_factory=CommandHistory)
    flags: CommonFlags = field(default_factory=CommonFlags)
    extra_state: dict[str, Any] = field(default_factory=dict)

    def add_command_to_history(self, command: str, maximum: int = DEFAULT_COMMAND_HISTORY_MAX) -> None:
        self.history.add(command, maximum)

    def change_ledger_phase(self, phase: LedgerPhase) -> None:
        self.ledger_phase = self.ledger_phase.transition_to(phase)

    def get_cluster(self, name: str) -> Cluster | None:
        return next((c for c in self.clusters if c.name == name), None)

    def to_object(self, mapper: ObjectMapper) -> dict:
        state = copy.deepcopy(self.extra_state)
        state["ledgerPhase"] = self.ledger_phase.value
        state.update(self.components.to_object(mapper))
        return {
            "schemaVersion": self.schema_version,
            "metadata": mapper.to_object(self.metadata),
            "versions": mapper.to_object(self.versions),
            "clusters": [mapper.to_object(c) for c in self.clusters],
            "state": state,
            "history": mapper.to_object(self.history),
            "flags": mapper.to_object(self.flags),
        }

    @classmethod
    def from_object(cls, data: dict, mapper: ObjectMapper) -> RemoteConfigData:
        state = data.get("state") or {}
        known = {"ledgerPhase", *(t.value for t in ComponentType)}
        return cls(
            schema_version=data.get("schemaVersion", REMOTE_CONFIG_SCHEMA_VERSION),
            metadata=mapper.from_object(RemoteConfigMetadata, data.get("metadata") or {}),
            versions=mapper.from_object(ApplicationVersions, data.get("versions") or {}),
            clusters=[mapper.from_object(Cluster, c) for c in data.get("clusters") or []],
            components=ComponentsDataWrapper.from_object(state, mapper),
            ledger_phase=LedgerPhase(state.get("ledgerPhase", LedgerPhase.UNINITIALIZED.value)),
            history=mapper.from_object(CommandHistory, data.get("history") or {}),
            flags=mapper.from_object(CommonFlags, data.get("flags") or {}),
            extra_state={k: copy.deepcopy(v) for k, v in state.items() if k not in known},
        )
