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

"""Cross-checks remote config components against live pods."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from solo_manager import console
from solo_manager import logger as package_logger
from solo_manager.components import BaseComponent, ComponentsDataWrapper
from solo_manager.config import SoloSettings
from solo_manager.constants import (
    CONSENSUS_NODE_APP_PREFIX,
    LABEL_EXPLORER,
    LABEL_MIRROR_NODE,
    LABEL_RELAY,
)
from solo_manager.errors import ComponentValidationError, ResourceError
from solo_manager.kube import K8, K8Factory
from solo_manager.phases import ComponentType, DeploymentPhase

if TYPE_CHECKING:
    from solo_manager.local_config import LocalConfig


def pod_labels(component: BaseComponent) -> list[str]:
    """Label selector identifying the pods of *component*."""
    component_type = component.component_type
    if component_type is ComponentType.RELAY:
        return [LABEL_RELAY]
    if component_type in (ComponentType.HA_PROXY, ComponentType.ENVOY_PROXY):
        return [f"app={component.name}"]
    if component_type is ComponentType.MIRROR_NODE:
        return list(LABEL_MIRROR_NODE)
    if component_type is ComponentType.EXPLORER:
        return [LABEL_EXPLORER]
    return [f"app={CONSENSUS_NODE_APP_PREFIX}{component.name}"]


class RemoteConfigValidator:
    """Checks that every component recorded in the remote config has running pods."""

    def __init__(self, settings: SoloSettings | None = None, logger: logging.Logger | None = None) -> None:
        self._settings = settings or SoloSettings()
        self._logger = logger or package_logger

    async def validate_components(
        self,
        namespace: str,
        components: ComponentsDataWrapper,
        k8_factory: K8Factory,
        local_config: LocalConfig | None = None,
        skip_consensus_nodes: bool = True,
    ) -> None:
        """Query pods for every component concurrently.

        Consensus nodes still in REQUESTED phase are never checked.

        Raises:
            ComponentValidationError: For the first component without pods;
                every failure is logged.
        """
        refs = local_config.cluster_refs if local_config is not None and local_config.is_loaded else {}
        checks = []
        for component in components.get_all():
            if component.component_type is ComponentType.CONSENSUS_NODE and (
                    skip_consensus_nodes or component.phase is DeploymentPhase.REQUESTED):
                continue
            k8 = k8_factory.get_k8(refs.get(component.cluster))
            checks.append(self._check(k8, namespace, component))

        results = await asyncio.gather(*checks, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            self._logger.error("%s", failure)
        if failures:
            if len(failures) > 1:
                console.print(f"[yellow]\u26a0\ufe0f  {len(failures)} components failed validation[/yellow]")
            raise failures[0]
        self._logger.info("Validated %d component(s) in %s", len(checks), namespace)

    async def _check(self, k8: K8, namespace: str, component: BaseComponent) -> None:
        labels = pod_labels(component)

        @retry(
            stop=stop_after_attempt(self._settings.pod_ready_attempts),
            wait=wait_fixed(self._settings.pod_ready_interval),
            retry=retry_if_exception_type(ComponentValidationError),
            reraise=True,
        )
        async def _attempt() -> None:
            try:
                pods = await k8.list_pods(namespace, labels)
            except ResourceError as err:
                raise self._not_found(component, namespace, err) from err
            if not pods:
                raise self._not_found(component, namespace)

        await _attempt()

    @staticmethod
    def _not_found(component: BaseComponent, namespace: str,
                   cause: BaseException | None = None) -> ComponentValidationError:
        error = ComponentValidationError(
            component.component_type.display_name, component.name, namespace, component.cluster)
        error.cause = cause
        return error
