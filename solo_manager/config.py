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

"""Settings, per-invocation flags, and workflow option models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from solo_manager.constants import (
    DEFAULT_CLUSTER_SETUP_NAMESPACE,
    DEFAULT_COMMAND_HISTORY_MAX,
    DEFAULT_KUBECTL_TIMEOUT_SECONDS,
    DEFAULT_LEASE_DURATION_SECONDS,
    DEFAULT_LOCAL_CONFIG_FILE,
    DEFAULT_LOCK_ACQUIRE_ATTEMPTS,
    DEFAULT_LOCK_ACQUIRE_WAIT_SECONDS,
    DEFAULT_NAMESPACE_DELETE_ATTEMPTS,
    DEFAULT_POD_READY_ATTEMPTS,
    DEFAULT_POD_READY_INTERVAL_SECONDS,
    DEFAULT_SOLO_HOME,
    SOLO_CHART_REPO,
    dep_value,
)


# ============================================================================
# Settings
# ============================================================================

class SoloSettings(BaseSettings):
    """Tool settings, auto-loaded from SOLO_* env vars.

    Attributes:
        home: Directory holding the local config and cached state.
        local_config_file: File name of the local config inside *home*.
        lease_duration: Lease lifetime in seconds; renewed at half this interval.
        lock_acquire_attempts: Attempts made before giving up on a held lease.
        lock_acquire_wait: Seconds between lease acquisition attempts.
        pod_ready_attempts: Attempts made when polling for a component's pods.
        pod_ready_interval: Seconds between pod polling attempts.
        namespace_delete_attempts: Attempts made when waiting for namespace removal.
        kubectl_timeout: Seconds allowed for a single kubectl invocation.
        command_history_max: Maximum number of remote config history entries.
        cluster_setup_namespace: Namespace of the shared cluster setup chart.
        chart_repo: Chart repository holding the solo charts.
        solo_chart_version: Version of the solo charts to install.
        cli_version: Version recorded as the CLI version in configs.
        user_email: Email used in quiet mode when none is stored or given.
    """

    model_config = SettingsConfigDict(env_prefix="SOLO_", extra="ignore")

    home: Path = DEFAULT_SOLO_HOME
    local_config_file: str = DEFAULT_LOCAL_CONFIG_FILE
    lease_duration: int = Field(default=DEFAULT_LEASE_DURATION_SECONDS, ge=2, le=3600)
    lock_acquire_attempts: int = Field(default=DEFAULT_LOCK_ACQUIRE_ATTEMPTS, ge=1, le=100)
    lock_acquire_wait: float = Field(default=DEFAULT_LOCK_ACQUIRE_WAIT_SECONDS, ge=0)
    pod_ready_attempts: int = Field(default=DEFAULT_POD_READY_ATTEMPTS, ge=1, le=600)
    pod_ready_interval: float = Field(default=DEFAULT_POD_READY_INTERVAL_SECONDS, ge=0)
    namespace_delete_attempts: int = Field(default=DEFAULT_NAMESPACE_DELETE_ATTEMPTS, ge=1)
    kubectl_timeout: int = Field(default=DEFAULT_KUBECTL_TIMEOUT_SECONDS, ge=1)
    command_history_max: int = Field(default=DEFAULT_COMMAND_HISTORY_MAX, ge=1, le=1000)
    cluster_setup_namespace: str = Field(
        default=DEFAULT_CLUSTER_SETUP_NAMESPACE, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    chart_repo: str = SOLO_CHART_REPO
    solo_chart_version: str = dep_value("solo", "chart_version", default="0.0.0")
    cli_version: str = dep_value("solo", "cli_version", default="0.0.0")
    user_email: str | None = None

    @property
    def local_config_path(self) -> Path:
        return self.home / self.local_config_file


# ============================================================================
# Per-invocation flags
# ============================================================================

@dataclass
class CommandFlags:
    """Flags of the running command, passed explicitly to the managers.

    Attributes:
        argv: Command line that is recorded into remote config history.
        deployment: Target deployment name.
        namespace: Target namespace, defaulting to the deployment's namespace.
        context: Kube context override.
        cluster_ref: Cluster reference override.
        email: User email override.
        release_tag: Consensus node release tag.
        chart_directory: Local directory holding the solo charts.
        relay_release_tag: JSON-RPC relay chart version.
        solo_chart_version: Solo chart version.
        mirror_node_version: Mirror node chart version.
        node_aliases_unparsed: Comma separated node aliases.
        hedera_explorer_version: Explorer chart version.
        command: Command path without the program name, e.g. ``["remote", "validate"]``.
        quiet: Never prompt; infer missing values instead.
        force: Skip confirmations.
        dev: Verbose output.
    """

    argv: list[str] = field(default_factory=list)
    deployment: str | None = None
    namespace: str | None = None
    context: str | None = None
    cluster_ref: str | None = None
    email: str | None = None
    release_tag: str | None = None
    chart_directory: str | None = None
    relay_release_tag: str | None = None
    solo_chart_version: str | None = None
    mirror_node_version: str | None = None
    node_aliases_unparsed: str | None = None
    hedera_explorer_version: str | None = None
    command: list[str] = field(default_factory=list)
    quiet: bool = False
    force: bool = False
    dev: bool = False

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


# ============================================================================
# Workflow options
# ============================================================================

@dataclass(frozen=True)
class ClusterSetupOptions:
    """Options for installing the shared cluster setup chart.

    Attributes:
        deploy_prometheus_stack: Enable the prometheus stack sub-chart.
        deploy_minio: Enable the minio sub-chart.
        deploy_cert_manager: Enable the cert-manager sub-chart.
        deploy_cert_manager_crds: Install cert-manager CRDs.
        chart_dir: Local chart directory to install from instead of the repository.
    """

    deploy_prometheus_stack: bool = True
    deploy_minio: bool = True
    deploy_cert_manager: bool = False
    deploy_cert_manager_crds: bool = False
    chart_dir: Path | None = None

    @property
    def nothing_to_install(self) -> bool:
        return not (
            self.deploy_prometheus_stack
            or self.deploy_minio
            or self.deploy_cert_manager
            or self.deploy_cert_manager_crds
        )
