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

"""Tests for the remote and local config migrations."""

from __future__ import annotations

from solo_manager.constants import LOCAL_CONFIG_SCHEMA_VERSION, REMOTE_CONFIG_SCHEMA_VERSION
from solo_manager.migrations import LocalConfigSchema, RemoteConfigSchema, normalize_version
from solo_manager.phases import ComponentType, DeploymentPhase, LedgerPhase


def _legacy_remote(node_states: list[str]) -> dict:
    return {
        "metadata": {
            "name": "solo-remote-config",
            "namespace": "solo",
            "soloVersion": "v0.34",
            "soloChartVersion": "0.44.0",
            "hederaPlatformVersion": "v0.58.10",
            "lastUpdatedAt": "2024-01-01T00:00:00+00:00",
            "lastUpdateBy": "someone@example.com",
        },
        "clusters": {
            "cluster-1": {"name": "cluster-1", "namespace": "solo", "deployment": "dep-1"},
        },
        "components": {
            "consensusNodes": {
                f"node{i + 1}": {
                    "name": f"node{i + 1}", "nodeId": i, "namespace": "solo",
                    "cluster": "cluster-1", "state": state,
                }
                for i, state in enumerate(node_states)
            },
        },
        "commandHistory": ["deployment create", "network deploy"],
        "lastExecutedCommand": "network deploy",
    }


def test_legacy_remote_config_is_migrated_to_current_version() -> None:
    data = RemoteConfigSchema().transform(_legacy_remote(["started", "setup"]))

    assert data.schema_version == REMOTE_CONFIG_SCHEMA_VERSION
    assert data.versions.cli == "0.34.0"
    assert data.versions.consensus_node == "0.58.10"
    assert data.versions.mirror_node_chart == "0.0.0"
    assert data.metadata.last_updated_by.name == "system"
    assert data.metadata.last_updated_by.hostname == "migration"
    assert [c.name for c in data.clusters] == ["cluster-1"]
    assert data.clusters[0].dns_base_domain == "cluster.local"
    assert data.history.commands == ["deployment create", "network deploy"]
    assert data.history.last_executed_command == "network deploy"


def test_legacy_node_states_map_to_phases() -> None:
    data = RemoteConfigSchema().transform(_legacy_remote(["started", "setup", "freezed"]))

    phases = [c.phase for c in data.components.get_all(ComponentType.CONSENSUS_NODE)]
    assert phases == [DeploymentPhase.STARTED, DeploymentPhase.CONFIGURED, DeploymentPhase.FROZEN]
    assert data.ledger_phase is LedgerPhase.INITIALIZED


def test_ledger_stays_uninitialized_without_running_nodes() -> None:
    data = RemoteConfigSchema().transform(_legacy_remote(["requested", "initialized"]))

    assert data.ledger_phase is LedgerPhase.UNINITIALIZED
    assert data.components.get_component(ComponentType.CONSENSUS_NODE, 1).phase is DeploymentPhase.DEPLOYED


def test_migrated_remote_config_has_empty_lists_for_other_components() -> None:
    document = RemoteConfigSchema().migrate(_legacy_remote([]))

    for component_type in ComponentType:
        assert document["state"][component_type.value] == []
    assert document["state"]["blockNodes"] == []
    assert "components" not in document


def test_legacy_flags_are_kept_as_common_flags() -> None:
    legacy = _legacy_remote(["started"])
    legacy["flags"] = {"releaseTag": "v0.58.10", "nodeAliasesUnparsed": "node1", "hederaExplorerVersion": "24.12.0"}

    data = RemoteConfigSchema().transform(legacy)

    assert data.flags.release_tag == "v0.58.10"
    assert data.flags.node_aliases_unparsed == "node1"
    assert data.flags.hedera_explorer_version == "24.12.0"
    assert data.flags.chart_directory is None


def test_unversioned_local_config_gains_identity_versions_and_deployment_list() -> None:
    legacy = {
        "userEmailAddress": "ops@example.com",
        "soloVersion": "0.30.1",
        "deployments": {"dep-1": {"namespace": "solo", "clusters": ["cluster-1"]}},
        "clusterRefs": {"cluster-1": "kind-solo"},
    }
    data = LocalConfigSchema("0.27.0").transform(legacy)

    assert data.schema_version == LOCAL_CONFIG_SCHEMA_VERSION
    assert data.versions.cli == "0.30.1"
    assert data.user_identity is not None
    assert len(data.deployments) == 1
    deployment = data.deployments[0]
    assert (deployment.name, deployment.namespace, deployment.clusters) == ("dep-1", "solo", ["cluster-1"])
    assert (deployment.realm, deployment.shard) == (0, 0)


def test_version_one_local_config_only_converts_deployments() -> None:
    document = {
        "schemaVersion": 1,
        "userEmailAddress": "ops@example.com",
        "userIdentity": {"name": "ops", "hostname": "laptop"},
        "versions": {"cli": "0.31.0"},
        "deployments": {"dep-1": {"namespace": "solo"}},
    }
    data = LocalConfigSchema().transform(document)

    assert data.user_identity.hostname == "laptop"
    assert data.versions.cli == "0.31.0"
    assert data.deployments[0].clusters == []


def test_normalize_version() -> None:
    assert normalize_version("v0.58") == "0.58.0"
    assert normalize_version("0.58.10") == "0.58.10"
    assert normalize_version("v1.2.3-rc.1") == "1.2.3-rc.1"
    assert normalize_version(None) == "0.0.0"


def test_transform_is_idempotent() -> None:
    schema = RemoteConfigSchema()
    once = schema.transform(_legacy_remote(["started"]))

    assert schema.transform(schema.to_object(once)) == once
    local_schema = LocalConfigSchema()
    local = local_schema.transform({"userEmailAddress": "ops@example.com", "deployments": {}})
    assert local_schema.transform(local_schema.to_object(local)) == local
