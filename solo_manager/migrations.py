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

"""Concrete remote and local config schemas with their migrations."""

from __future__ import annotations

import re
from typing import Any

from solo_manager.constants import (
    DEFAULT_REALM,
    DEFAULT_SHARD,
    LOCAL_CONFIG_SCHEMA_VERSION,
    MIGRATION_HOSTNAME,
    MIGRATION_USER_NAME,
    REMOTE_CONFIG_SCHEMA_VERSION,
    UNKNOWN_VERSION,
)
from solo_manager.models import LocalConfigData, RemoteConfigData, UserIdentity, utc_now
from solo_manager.phases import ComponentType, DeploymentPhase, LedgerPhase
from solo_manager.schema import Schema, SchemaMigration, VersionRange

# Legacy component states and the phase each one became.
LEGACY_PHASES = {
    "requested": DeploymentPhase.REQUESTED,
    "initialized": DeploymentPhase.DEPLOYED,
    "setup": DeploymentPhase.CONFIGURED,
    "started": DeploymentPhase.STARTED,
    "freezed": DeploymentPhase.FROZEN,
    "stopped": DeploymentPhase.STOPPED,
}

# Block nodes are stored but not modelled as components.
BLOCK_NODES_STATE_KEY = "blockNodes"

# Legacy metadata keys holding versions, by their new name.
LEGACY_VERSION_KEYS = {
    "cli": "soloVersion",
    "chart": "soloChartVersion",
    "consensusNode": "hederaPlatformVersion",
    "mirrorNodeChart": "hederaMirrorNodeChartVersion",
    "explorerChart": "hederaExplorerChartVersion",
    "jsonRpcRelayChart": "hederaJsonRpcRelayChartVersion",
}


def normalize_version(version: Any) -> str:
    """Strip a leading ``v`` and pad to three numeric parts (``v0.58`` -> ``0.58.0``)."""
    if version is None or version == "":
        return UNKNOWN_VERSION
    text = re.sub(r"^v", "", str(version).strip())
    core, sep, suffix = text.partition("-")
    parts = core.split(".")
    while len(parts) < 3:
        parts.append("0")
    return ".".join(parts) + (sep + suffix if sep else "")


def _values(container: Any) -> list:
    if isinstance(container, dict):
        return list(container.values())
    if isinstance(container, list):
        return list(container)
    return []


# ============================================================================
# Remote config
# ============================================================================

class RemoteConfigV1Migration(SchemaMigration):
    """Legacy unversioned remote config to schema version 1."""

    @property
    def range(self) -> VersionRange:
        return VersionRange.from_integer_version(0)

    @property
    def version(self) -> int:
        return 1

    def _apply(self, document: dict) -> None:
        legacy_metadata = document.get("metadata") or {}
        document["versions"] = {
            new_key: normalize_version(legacy_metadata.get(old_key))
            for new_key, old_key in LEGACY_VERSION_KEYS.items()
        }
        document["versions"]["blockNodeChart"] = ""
        document["metadata"] = {
            "lastUpdatedAt": utc_now().isoformat(),
            "lastUpdatedBy": {"name": MIGRATION_USER_NAME, "hostname": MIGRATION_HOSTNAME},
        }

        document["clusters"] = [
            {
                "name": cluster.get("name"),
                "namespace": cluster.get("namespace"),
                "deployment": cluster.get("deployment"),
                "dnsBaseDomain": cluster.get("dnsBaseDomain", "cluster.local"),
                "dnsConsensusNodePattern": cluster.get(
                    "dnsConsensusNodePattern", "network-{nodeAlias}-svc.{namespace}.svc"),
            }
            for cluster in _values(document.get("clusters"))
        ]

        legacy_components = document.pop("components", None) or {}
        nodes = []
        for node in _values(legacy_components.get("consensusNodes")):
            phase = LEGACY_PHASES.get(node.get("state"), DeploymentPhase.REQUESTED)
            nodes.append({
                "id": node.get("nodeId"),
                "name": node.get("name"),
                "namespace": node.get("namespace"),
                "cluster": node.get("cluster"),
                "phase": phase.value,
            })
        running = {DeploymentPhase.STARTED.value, DeploymentPhase.FROZEN.value}
        ledger_phase = LedgerPhase.INITIALIZED if any(n["phase"] in running for n in nodes) \
            else LedgerPhase.UNINITIALIZED
        document["state"] = {t.value: [] for t in ComponentType}
        document["state"][ComponentType.CONSENSUS_NODE.value] = nodes
        document["state"]["ledgerPhase"] = ledger_phase.value
        document["state"][BLOCK_NODES_STATE_KEY] = []

        document["history"] = {
            "commands": [str(c) for c in _values(document.pop("commandHistory", None))],
            "lastExecutedCommand": document.pop("lastExecutedCommand", None),
        }
        if document["history"]["lastExecutedCommand"] is None:
            del document["history"]["lastExecutedCommand"]


class RemoteConfigSchema(Schema[RemoteConfigData]):
    name = "RemoteConfig"
    version = REMOTE_CONFIG_SCHEMA_VERSION
    model = RemoteConfigData
    migrations = (RemoteConfigV1Migration(),)


# ============================================================================
# Local config
# ============================================================================

class LocalConfigV1Migration(SchemaMigration):
    """Unversioned local config to version 1: adds the user identity and version block."""

    def __init__(self, cli_version: str = UNKNOWN_VERSION) -> None:
        self._cli_version = cli_version

    @property
    def range(self) -> VersionRange:
        return VersionRange.from_integer_version(0)

    @property
    def version(self) -> int:
        return 1

    def _apply(self, document: dict) -> None:
        if "userIdentity" not in document:
            identity = UserIdentity.current()
            document["userIdentity"] = {"name": identity.name, "hostname": identity.hostname}
        legacy_version = document.pop("soloVersion", None)
        document["versions"] = {"cli": normalize_version(legacy_version or self._cli_version)}


class LocalConfigV2Migration(SchemaMigration):
    """Version 1 to 2: the keyed deployments map becomes a list with realm and shard."""

    @property
    def range(self) -> VersionRange:
        return VersionRange.from_integer_version(1)

    @property
    def version(self) -> int:
        return 2

    def _apply(self, document: dict) -> None:
        deployments = document.get("deployments") or {}
        if isinstance(deployments, list):
            migrated = [dict(d) for d in deployments]
        else:
            migrated = [{"name": name, **(entry or {})} for name, entry in deployments.items()]
        for entry in migrated:
            entry.setdefault("clusters", [])
            entry.setdefault("realm", DEFAULT_REALM)
            entry.setdefault("shard", DEFAULT_SHARD)
        document["deployments"] = migrated


class LocalConfigSchema(Schema[LocalConfigData]):
    name = "LocalConfig"
    version = LOCAL_CONFIG_SCHEMA_VERSION
    model = LocalConfigData

    def __init__(self, cli_version: str = UNKNOWN_VERSION, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.migrations = (LocalConfigV1Migration(cli_version), LocalConfigV2Migration())
