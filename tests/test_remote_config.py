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

"""Tests for the remote config manager and its guarded write path."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
import typer
import yaml

from solo_manager.components import ComponentFactory, RelayComponent
from solo_manager.config import CommandFlags
from solo_manager.constants import REMOTE_CONFIG_DATA_KEY, REMOTE_CONFIG_LABELS, REMOTE_CONFIG_NAME, dep_value
from solo_manager.errors import (
    ComponentValidationError,
    LockAcquisitionError,
    LockRenewalError,
    RemoteConfigExistsError,
    RemoteConfigNotLoadedError,
    RemoteConfigValidationError,
)
from solo_manager.lock import LockHolder
from solo_manager.models import Cluster
from solo_manager.phases import ComponentType, DeploymentPhase, LedgerPhase
from solo_manager.remote_config import uses_version_flag

KEY = ("solo", REMOTE_CONFIG_NAME)


async def _setup(local_config, manager, aliases=("node1", "node2")) -> None:
    await local_config.create("ops@example.com")
    local_config.add_cluster_ref("cluster-1", "kind-solo")
    local_config.add_deployment("dep-1", "solo", ["cluster-1"])
    local_config.set_current_deployment("dep-1")
    await local_config.write()
    await manager.create(LedgerPhase.UNINITIALIZED, list(aliases), "solo", "dep-1", "cluster-1", "kind-solo")


def _stored(k8) -> dict:
    return yaml.safe_load(k8.config_maps[KEY]["data"][REMOTE_CONFIG_DATA_KEY])


def test_create_stores_labelled_config_map(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))

    k8 = k8_factory.default()
    assert k8.config_maps[KEY]["metadata"]["labels"] == REMOTE_CONFIG_LABELS
    document = _stored(k8)
    assert document["schemaVersion"] == 1
    assert [n["name"] for n in document["state"]["consensusNodes"]] == ["node1", "node2"]
    assert document["history"]["commands"] == ["solo test"]
    assert asyncio.run(manager.is_present_in_any_namespace())


def test_create_refuses_to_overwrite(local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))

    with pytest.raises(RemoteConfigExistsError):
        asyncio.run(manager.create(LedgerPhase.UNINITIALIZED, [], "solo", "dep-1", "cluster-1", "kind-solo"))


def test_modify_persists_and_stamps_metadata(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    before = datetime.now(timezone.utc)

    def _deploy(rc) -> None:
        rc.components.change_node_state(0, DeploymentPhase.DEPLOYED)

    result = asyncio.run(manager.modify(_deploy))

    k8 = k8_factory.default()
    assert _stored(k8)["state"]["consensusNodes"][0]["phase"] == "deployed"
    assert result.metadata.last_updated_at >= before
    assert result.metadata.last_updated_by.name == local_config.data.user_identity.name
    assert k8.leases == {}


def test_failed_callback_writes_nothing_and_releases_lease(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    k8 = k8_factory.default()
    writes = k8.config_map_writes

    def _boom(rc) -> None:
        rc.components.clear()
        raise RuntimeError("callback failed")

    with pytest.raises(RuntimeError, match="callback failed"):
        asyncio.run(manager.modify(_boom))

    assert k8.config_map_writes == writes
    assert len(_stored(k8)["state"]["consensusNodes"]) == 2
    assert k8.leases == {}


def test_invalid_result_is_not_written(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    k8 = k8_factory.default()
    writes = k8.config_map_writes

    def _stray(rc) -> None:
        rc.components.add_new_component(ComponentFactory.create_consensus_node(5, "cluster-9", "solo"))

    with pytest.raises(RemoteConfigValidationError):
        asyncio.run(manager.modify(_stray))
    assert k8.config_map_writes == writes


def test_foreign_lease_blocks_modification(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    k8 = k8_factory.default()
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    other = LockHolder("alice", "other-host", 1)
    k8.leases[("solo", "solo-lease-solo")] = {
        "metadata": {"name": "solo-lease-solo", "namespace": "solo"},
        "spec": {"holderIdentity": other.to_json(), "leaseDurationSeconds": 20,
                 "acquireTime": stamp, "renewTime": stamp},
    }
    writes = k8.config_map_writes
    calls = []

    with pytest.raises(LockAcquisitionError):
        asyncio.run(manager.modify(calls.append))

    assert calls == []
    assert k8.config_map_writes == writes


def test_lease_lost_during_callback_writes_nothing(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    k8 = k8_factory.default()
    writes = k8.config_map_writes
    other = LockHolder("alice", "other-host", 1)

    def _stolen(rc) -> None:
        lease = k8.leases[("solo", "solo-lease-solo")]
        lease["spec"]["holderIdentity"] = other.to_json()
        rc.change_ledger_phase(LedgerPhase.INITIALIZED)

    with pytest.raises(LockRenewalError):
        asyncio.run(manager.modify(_stolen))

    assert k8.config_map_writes == writes
    assert _stored(k8)["state"]["ledgerPhase"] == "uninitialized"
    assert LockHolder.from_json(k8.leases[("solo", "solo-lease-solo")]["spec"]["holderIdentity"]) == other


def test_modify_rereads_changes_made_by_other_writers(k8_factory, local_config, remote_factory) -> None:
    first = remote_factory()
    asyncio.run(_setup(local_config, first))
    asyncio.run(first.get())

    second = remote_factory()
    asyncio.run(second.modify(lambda rc: rc.change_ledger_phase(LedgerPhase.INITIALIZED)))
    result = asyncio.run(first.modify(lambda rc: rc.components.change_node_state(1, DeploymentPhase.DEPLOYED)))

    assert result.ledger_phase is LedgerPhase.INITIALIZED
    assert _stored(k8_factory.default())["state"]["ledgerPhase"] == "initialized"


def test_concurrent_modifications_in_one_process_are_serialized(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager, aliases=()))

    def _adder(node_id: int):
        async def _add(rc) -> None:
            await asyncio.sleep(0)
            rc.components.add_new_component(ComponentFactory.create_consensus_node(node_id, "cluster-1", "solo"))
        return _add

    async def _run() -> None:
        await asyncio.gather(*(manager.modify(_adder(i)) for i in range(3)))

    asyncio.run(_run())

    assert [n["id"] for n in _stored(k8_factory.default())["state"]["consensusNodes"]] == [0, 1, 2]


def test_save_writes_every_cluster_of_the_deployment(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    local_config.add_cluster_ref("cluster-2", "ctx-2")
    local_config.add_cluster_ref_to_deployment("cluster-2", "dep-1")

    def _extend(rc) -> None:
        rc.clusters.append(Cluster("cluster-2", "solo", "dep-1"))
        rc.components.add_new_component(ComponentFactory.create_consensus_node(2, "cluster-2", "solo"))

    asyncio.run(manager.modify(_extend))

    first = _stored(k8_factory.get_k8("kind-solo"))
    second = _stored(k8_factory.get_k8("ctx-2"))
    assert first == second
    assert [c["name"] for c in second["clusters"]] == ["cluster-1", "cluster-2"]
    assert manager.get_cluster_refs() == {"cluster-1": "kind-solo", "cluster-2": "ctx-2"}
    assert manager.get_contexts() == ["kind-solo", "ctx-2"]


def test_load_and_validate_records_command(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory(CommandFlags(argv=["solo", "network", "deploy"], deployment="dep-1"))
    asyncio.run(_setup(local_config, manager))

    asyncio.run(manager.load_and_validate(validate=False))

    history = _stored(k8_factory.default())["history"]
    assert history["lastExecutedCommand"] == "Executed by ops@example.com: solo network deploy"


def test_create_remembers_passed_flags(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory(CommandFlags(argv=["solo", "test"], deployment="dep-1", release_tag="v0.58.10",
                                          chart_directory="/charts"))
    asyncio.run(_setup(local_config, manager))

    assert _stored(k8_factory.default())["flags"] == {"releaseTag": "v0.58.10", "chartDirectory": "/charts"}


def test_remembered_flags_fill_in_flags_not_passed(k8_factory, local_config, remote_factory) -> None:
    creator = remote_factory(CommandFlags(argv=["solo", "test"], deployment="dep-1", release_tag="v0.58.10"))
    asyncio.run(_setup(local_config, creator))
    flags = CommandFlags(argv=["solo", "remote", "validate"], deployment="dep-1", mirror_node_version="v0.122.0")

    asyncio.run(remote_factory(flags).load_and_validate(validate=False))

    assert flags.release_tag == "v0.58.10"
    document = _stored(k8_factory.default())
    assert document["flags"] == {"releaseTag": "v0.58.10", "mirrorNodeVersion": "v0.122.0"}
    assert document["versions"]["mirrorNodeChart"] == "v0.122.0"


def test_conflicting_flag_in_quiet_mode_keeps_remembered_value(
        k8_factory, local_config, remote_factory, monkeypatch) -> None:
    creator = remote_factory(CommandFlags(argv=["solo", "test"], deployment="dep-1", release_tag="v0.58.10"))
    asyncio.run(_setup(local_config, creator))
    monkeypatch.setattr(typer, "confirm", lambda *args, **kwargs: pytest.fail("prompted in quiet mode"))
    flags = CommandFlags(argv=["solo", "remote", "validate"], deployment="dep-1", release_tag="v0.59.0", quiet=True)

    asyncio.run(remote_factory(flags).load_and_validate(validate=False))

    assert flags.release_tag == "v0.59.0"
    assert _stored(k8_factory.default())["flags"]["releaseTag"] == "v0.58.10"


def test_conflicting_flag_asks_which_value_to_use(k8_factory, local_config, remote_factory, monkeypatch) -> None:
    creator = remote_factory(CommandFlags(argv=["solo", "test"], deployment="dep-1", release_tag="v0.58.10"))
    asyncio.run(_setup(local_config, creator))

    monkeypatch.setattr(typer, "confirm", lambda *args, **kwargs: False)
    kept = CommandFlags(argv=["solo", "remote", "validate"], deployment="dep-1", release_tag="v0.59.0")
    asyncio.run(remote_factory(kept).load_and_validate(validate=False))
    assert kept.release_tag == "v0.58.10"
    assert _stored(k8_factory.default())["flags"]["releaseTag"] == "v0.58.10"

    monkeypatch.setattr(typer, "confirm", lambda *args, **kwargs: True)
    replaced = CommandFlags(argv=["solo", "remote", "validate"], deployment="dep-1", release_tag="v0.59.0")
    asyncio.run(remote_factory(replaced).load_and_validate(validate=False))
    assert replaced.release_tag == "v0.59.0"
    assert _stored(k8_factory.default())["flags"]["releaseTag"] == "v0.59.0"


def test_deploying_command_records_default_versions(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    asyncio.run(manager.modify(lambda rc: setattr(rc.versions, "consensus_node", "0.1.0")))
    flags = CommandFlags(argv=["solo", "network", "deploy"], command=["network", "deploy"], deployment="dep-1",
                         solo_chart_version="0.45.0")

    asyncio.run(remote_factory(flags).load_and_validate(validate=False))

    versions = _stored(k8_factory.default())["versions"]
    assert versions["chart"] == "0.45.0"
    assert versions["consensusNode"] == dep_value("consensus_node", "version")
    assert versions["explorerChart"] == dep_value("charts", "explorer")


def test_version_flags_recorded_by_command() -> None:
    assert uses_version_flag("release_tag", ["node", "start"])
    assert not uses_version_flag("release_tag", ["node", "logs"])
    assert uses_version_flag("solo_chart_version", ["network", "refresh"])
    assert uses_version_flag("relay_release_tag", ["relay", "deploy"])
    assert not uses_version_flag("relay_release_tag", ["explorer", "deploy"])
    assert not uses_version_flag("hedera_explorer_version", [])


def test_load_and_validate_reports_missing_pods(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))
    asyncio.run(manager.modify(lambda rc: rc.components.add_new_component(
        RelayComponent(id=0, name="relay-0", cluster="cluster-1", namespace="solo"))))
    writes = k8_factory.default().config_map_writes

    with pytest.raises(ComponentValidationError, match="Relay in remote config with name relay-0"):
        asyncio.run(manager.load_and_validate(validate=True))
    assert k8_factory.default().config_map_writes == writes


def test_consensus_node_projection(local_config, remote_factory) -> None:
    manager = remote_factory()
    with pytest.raises(RemoteConfigNotLoadedError):
        manager.get_consensus_nodes()
    asyncio.run(_setup(local_config, manager))

    nodes = manager.get_consensus_nodes()

    assert [n.name for n in nodes] == ["node1", "node2"]
    assert nodes[0].context == "kind-solo"
    assert nodes[0].fqdn == "network-node1-svc.solo.svc.cluster.local"


def test_delete_components_empties_state(k8_factory, local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager))

    asyncio.run(manager.delete_components())

    state = _stored(k8_factory.default())["state"]
    assert all(state[t.value] == [] for t in ComponentType)


def test_create_then_modify_scenario(local_config, remote_factory) -> None:
    manager = remote_factory()
    asyncio.run(_setup(local_config, manager, aliases=()))

    created = asyncio.run(remote_factory().get())
    assert created.ledger_phase is LedgerPhase.UNINITIALIZED
    assert created.components.is_empty()
    assert [(c.name, c.namespace, c.deployment) for c in created.clusters] == [("cluster-1", "solo", "dep-1")]

    node = ComponentFactory.create_consensus_node(0, "cluster-1", "solo")
    asyncio.run(manager.modify(lambda rc: rc.components.add_new_component(node)))

    reloaded = asyncio.run(remote_factory().get())
    assert reloaded.components.get_component(ComponentType.CONSENSUS_NODE, 0).phase is DeploymentPhase.REQUESTED
