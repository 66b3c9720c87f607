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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_SOLO_HOME = Path.home() / ".solo"


def load_dependencies() -> dict:
    """Load pinned chart and application versions from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    with open(PACKAGE_DIR / "dependencies.yaml") as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Remote config ConfigMap --
REMOTE_CONFIG_NAME = "solo-remote-config"
REMOTE_CONFIG_DATA_KEY = "remote-config-data"
REMOTE_CONFIG_LABEL_KEY = "solo.hedera.com/type"
REMOTE_CONFIG_LABEL_VALUE = "remote-config"
REMOTE_CONFIG_LABELS = {REMOTE_CONFIG_LABEL_KEY: REMOTE_CONFIG_LABEL_VALUE}
REMOTE_CONFIG_SELECTOR = f"{REMOTE_CONFIG_LABEL_KEY}={REMOTE_CONFIG_LABEL_VALUE}"

# -- Schema versions --
REMOTE_CONFIG_SCHEMA_VERSION = 1
LOCAL_CONFIG_SCHEMA_VERSION = 2

# -- Local config --
DEFAULT_LOCAL_CONFIG_FILE = "local-config.yaml"
DEFAULT_REALM = 0
DEFAULT_SHARD = 0
UNKNOWN_VERSION = "0.0.0"

# -- Command history --
DEFAULT_COMMAND_HISTORY_MAX = 50

# -- Lease lock --
LEASE_NAME_PREFIX = "solo-lease"
LEASE_API_VERSION = "coordination.k8s.io/v1"
DEFAULT_LEASE_DURATION_SECONDS = 20
DEFAULT_LOCK_ACQUIRE_ATTEMPTS = 10
DEFAULT_LOCK_ACQUIRE_WAIT_SECONDS = 3

# -- Polling --
DEFAULT_POD_READY_ATTEMPTS = 5
DEFAULT_POD_READY_INTERVAL_SECONDS = 2
DEFAULT_NAMESPACE_DELETE_ATTEMPTS = 30
NAMESPACE_DELETE_POLL_INTERVAL_SECONDS = 2
DEFAULT_KUBECTL_TIMEOUT_SECONDS = 60

# -- Cluster setup --
DEFAULT_CLUSTER_SETUP_NAMESPACE = "solo-setup"
SOLO_CHART_REPO = dep_value("solo", "chart_repo", default="oci://ghcr.io/hashgraph/solo-charts")
SOLO_CLUSTER_SETUP_CHART = dep_value("solo", "cluster_setup_chart", default="solo-cluster-setup")
HELM_KEY_PROMETHEUS_STACK = "cloud.prometheusStack.enabled"
HELM_KEY_CERT_MANAGER = "cloud.certManager.enabled"
HELM_KEY_CERT_MANAGER_CRDS = "cert-manager.installCRDs"
HELM_KEY_MINIO = "cloud.minio.enabled"

# -- Pod label selectors --
LABEL_RELAY = "app=hedera-json-rpc-relay"
LABEL_MIRROR_NODE = ("app.kubernetes.io/component=importer", "app.kubernetes.io/instance=mirror")
LABEL_EXPLORER = "app.kubernetes.io/component=hedera-explorer"
LABEL_MINIO = "app=minio"
LABEL_PROMETHEUS = "app.kubernetes.io/name=prometheus"
LABEL_CERT_MANAGER = "app=cert-manager"
CONSENSUS_NODE_APP_PREFIX = "network-"

# -- Migration --
MIGRATION_USER_NAME = "system"
MIGRATION_HOSTNAME = "migration"
