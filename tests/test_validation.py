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

"""Tests for local and remote config validation rules."""

from __future__ import annotations

import pytest

from solo_manager.components import ComponentFactory
from solo_manager.errors import LocalConfigValidationError, RemoteConfigValidationError
from solo_manager.models import Cluster, Deployment, LocalConfigData, RemoteConfigData
from solo_manager.validation import (
    LOCAL_CONFIG_CURRENT_DEPLOYMENT_DOES_NOT_EXIST,
    LOCAL_CONFIG_INVALID_EMAIL,
    ensure_valid_local_config,
    ensure_valid_remote_config,
    validate_local_config,
    validate_remote_config,
)


def _local(**overrides) -> LocalConfigData:
    values = {
        "user_email_address": "ops@example.com",
        "deployments": [Deployment("dep-1", "solo", ["cluster-1"])],
        "cluster_refs": {"cluster-1": "kind-solo"},
        "current_deployment_name": "dep-1",
    }
    values.update(overrides)
    return LocalConfigData(**values)


def test_valid_local_config_has_no_violations() -> None:
    assert validate_local_config(_local()) == []


def test_invalid_email_is_reported() -> None:
    violations = validate_local_config(_local(user_email_address="not-an-email"))
    assert [v.message for v in violations] == [LOCAL_CONFIG_INVALID_EMAIL]


def test_current_deployment_must_exist() -> None:
    with pytest.raises(LocalConfigValidationError, match=LOCAL_CONFIG_CURRENT_DEPLOYMENT_DOES_NOT_EXIST) as info:
        ensure_valid_local_config(_local(current_deployment_name="missing"))
    assert info.value.violations[0].field == "currentDeploymentName"


def test_deployment_rules() -> None:
    data = _local(deployments=[
        Deployment("dep-1", "solo", ["cluster-1"]),
        Deployment("dep-1", "solo", []),
        Deployment("dep-2", "", []),
        Deployment("dep-3", "solo", ["cluster-9"]),
        Deployment("dep-4", "solo", [], realm=-1),
    ])

    fields = [v.field for v in validate_local_config(data)]

    assert fields == ["deployments.1", "deployments.2", "deployments.3.clusters", "deployments.4"]


def test_remote_components_must_belong_to_listed_clusters() -> None:
    data = RemoteConfigData(clusters=[Cluster("cluster-1", "solo", "dep-1")])
    data.components.add_new_component(ComponentFactory.create_consensus_node(0, "cluster-1", "solo"))
    assert validate_remote_config(data) == []

    data.components.add_new_component(ComponentFactory.create_consensus_node(1, "cluster-2", "solo"))
    with pytest.raises(RemoteConfigValidationError, match="cluster 'cluster-2' is not part of the deployment"):
        ensure_valid_remote_config(data)


def test_duplicate_remote_clusters_are_reported() -> None:
    data = RemoteConfigData(clusters=[Cluster("c", "solo", "dep-1"), Cluster("c", "solo", "dep-1")])
    assert [v.field for v in validate_remote_config(data)] == ["clusters.1"]
