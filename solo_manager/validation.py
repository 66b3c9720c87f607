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

"""Field-level validation rules for the local and remote config documents."""

from __future__ import annotations

import re

from solo_manager.constants import LOCAL_CONFIG_SCHEMA_VERSION, REMOTE_CONFIG_SCHEMA_VERSION
from solo_manager.errors import LocalConfigValidationError, RemoteConfigValidationError, Violation
from solo_manager.models import LocalConfigData, RemoteConfigData

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

LOCAL_CONFIG_INVALID_EMAIL = "Invalid email address provided"
LOCAL_CONFIG_INVALID_DEPLOYMENTS_FORMAT = "Wrong deployments format"
LOCAL_CONFIG_CONTEXT_CLUSTER_MAPPING_FORMAT = "Wrong cluster to context mapping format"
LOCAL_CONFIG_CURRENT_DEPLOYMENT_DOES_NOT_EXIST = "The selected deployment does not exist"
LOCAL_CONFIG_GENERIC = "Validation of local config failed"


def _is_name(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_local_config(data: LocalConfigData) -> list[Violation]:
    """Return every rule *data* breaks; an empty list means valid."""
    violations: list[Violation] = []

    if data.schema_version != LOCAL_CONFIG_SCHEMA_VERSION:
        violations.append(Violation("schemaVersion", f"expected {LOCAL_CONFIG_SCHEMA_VERSION}"))

    if not isinstance(data.user_email_address, str) or not EMAIL_PATTERN.match(data.user_email_address):
        violations.append(Violation("userEmailAddress", LOCAL_CONFIG_INVALID_EMAIL))

    if not isinstance(data.cluster_refs, dict) or not all(
            _is_name(k) and _is_name(v) for k, v in data.cluster_refs.items()):
        violations.append(Violation("clusterRefs", LOCAL_CONFIG_CONTEXT_CLUSTER_MAPPING_FORMAT))
        known_refs: set[str] = set()
    else:
        known_refs = set(data.cluster_refs)

    seen: set[str] = set()
    for index, deployment in enumerate(data.deployments):
        where = f"deployments.{index}"
        if not _is_name(deployment.name) or not _is_name(deployment.namespace):
            violations.append(Violation(where, LOCAL_CONFIG_INVALID_DEPLOYMENTS_FORMAT))
            continue
        if deployment.name in seen:
            violations.append(Violation(where, f"duplicate deployment '{deployment.name}'"))
        seen.add(deployment.name)
        if not isinstance(deployment.clusters, list) or not all(_is_name(c) for c in deployment.clusters):
            violations.append(Violation(f"{where}.clusters", LOCAL_CONFIG_INVALID_DEPLOYMENTS_FORMAT))
        elif known_refs:
            for cluster in deployment.clusters:
                if cluster not in known_refs:
                    violations.append(Violation(f"{where}.clusters", f"unknown cluster reference '{cluster}'"))
        if deployment.realm < 0 or deployment.shard < 0:
            violations.append(Violation(where, "realm and shard must not be negative"))

    if data.current_deployment_name is not None and data.current_deployment_name not in seen:
        violations.append(Violation("currentDeploymentName", LOCAL_CONFIG_CURRENT_DEPLOYMENT_DOES_NOT_EXIST))

    return violations


def ensure_valid_local_config(data: LocalConfigData) -> None:
    """Raise LocalConfigValidationError if *data* breaks any rule."""
    violations = validate_local_config(data)
    if violations:
        raise LocalConfigValidationError(LOCAL_CONFIG_GENERIC, violations)


def validate_remote_config(data: RemoteConfigData) -> list[Violation]:
    violations: list[Violation] = []
    if data.schema_version != REMOTE_CONFIG_SCHEMA_VERSION:
        violations.append(Violation("schemaVersion", f"expected {REMOTE_CONFIG_SCHEMA_VERSION}"))

    names: set[str] = set()
    for index, cluster in enumerate(data.clusters):
        if not _is_name(cluster.name) or not _is_name(cluster.namespace) or not _is_name(cluster.deployment):
            violations.append(Violation(f"clusters.{index}", "name, namespace and deployment are required"))
        elif cluster.name in names:
            violations.append(Violation(f"clusters.{index}", f"duplicate cluster '{cluster.name}'"))
        names.add(cluster.name)

    violations.extend(data.components.validate())
    for component in data.components.get_all():
        if names and component.cluster not in names:
            violations.append(Violation(
                f"state.{component.component_type.value}.{component.id}",
                f"cluster '{component.cluster}' is not part of the deployment"))
    return violations


def ensure_valid_remote_config(data: RemoteConfigData) -> None:
    violations = validate_remote_config(data)
    if violations:
        raise RemoteConfigValidationError("Validation of remote config failed", violations)
