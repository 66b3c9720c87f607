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

"""Deployed topology components, their registry, and factory."""

from __future__ import annotations

import copy
import dataclasses
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from solo_manager.errors import (
    ComponentExistsError,
    ComponentNotFoundError,
    IllegalArgumentError,
    Violation,
)
from solo_manager.phases import ComponentType, DeploymentPhase

if TYPE_CHECKING:
    from solo_manager.mapper import ObjectMapper


# ============================================================================
# Component value objects
# ============================================================================

@dataclass(frozen=True)
class BaseComponent:
    """Common fields of every deployed component.

    Attributes:
        id: Identifier, unique per component type.
        name: Component name, also used to find its pods.
        cluster: Cluster reference the component is deployed to.
        namespace: Namespace the component is deployed to.
        phase: Lifecycle phase.
    """

    component_type: ClassVar[ComponentType]

    id: int
    name: str
    cluster: str
    namespace: str
    phase: DeploymentPhase = DeploymentPhase.REQUESTED

    def with_phase(self, phase: DeploymentPhase) -> BaseComponent:
        """Return a copy moved to *phase*, enforcing the lifecycle."""
        target = self.phase.transition_to(phase, f"{self.component_type.display_name} '{self.name}'")
        return dataclasses.replace(self, phase=target)


@dataclass(frozen=True)
class ConsensusNodeComponent(BaseComponent):
    """A consensus node; ``node_id`` defaults to the component id."""

    component_type: ClassVar[ComponentType] = ComponentType.CONSENSUS_NODE

    node_id: int | None = None
    gossip_key_ref: str | None = None
    tls_key_ref: str | None = None

    def __post_init__(self) -> None:
        if self.node_id is None:
            object.__setattr__(self, "node_id", self.id)
        if self.gossip_key_ref is None:
            object.__setattr__(self, "gossip_key_ref", f"s-private-{self.name}.pem")
        if self.tls_key_ref is None:
            object.__setattr__(self, "tls_key_ref", f"hedera-{self.name}.key")


@dataclass(frozen=True)
class RelayComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.RELAY

    consensus_node_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class HaProxyComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.HA_PROXY


@dataclass(frozen=True)
class EnvoyProxyComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.ENVOY_PROXY


@dataclass(frozen=True)
class MirrorNodeComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.MIRROR_NODE


@dataclass(frozen=True)
class MirrorNodeExplorerComponent(BaseComponent):
    component_type: ClassVar[ComponentType] = ComponentType.EXPLORER


COMPONENT_CLASSES: dict[ComponentType, type[BaseComponent]] = {
    ComponentType.CONSENSUS_NODE: ConsensusNodeComponent,
    ComponentType.RELAY: RelayComponent,
    ComponentType.HA_PROXY: HaProxyComponent,
    ComponentType.ENVOY_PROXY: EnvoyProxyComponent,
    ComponentType.MIRROR_NODE: MirrorNodeComponent,
    ComponentType.EXPLORER: MirrorNodeExplorerComponent,
}


# ============================================================================
# Registry
# ============================================================================

class ComponentsDataWrapper:
    """All components of a deployment, keyed by type and then by id."""

    def __init__(self, components: dict[ComponentType, dict[int, BaseComponent]] | None = None) -> None:
        self._components: dict[ComponentType, dict[int, BaseComponent]] = {t: {} for t in ComponentType}
        for component_type, by_id in (components or {}).items():
            self._components[component_type].update(by_id)

    def add_new_component(self, component: BaseComponent) -> None:
        """Register *component*.

        Raises:
            ComponentExistsError: If the type already holds a component with this id.
        """
        by_id = self._components[component.component_type]
        if component.id in by_id:
            raise ComponentExistsError(component.component_type.value, component.id)
        by_id[component.id] = component

    def get_component(self, component_type: ComponentType, component_id: int) -> BaseComponent:
        try:
            return self._components[component_type][component_id]
        except KeyError as err:
            raise ComponentNotFoundError(component_type.value, component_id, "read") from err

    def edit_component(self, component: BaseComponent) -> None:
        """Replace the stored component that has the same type and id."""
        by_id = self._components[component.component_type]
        if component.id not in by_id:
            raise ComponentNotFoundError(component.component_type.value, component.id, "edit")
        by_id[component.id] = component

    def remove_component(self, component_type: ComponentType, component_id: int) -> None:
        by_id = self._components[component_type]
        if component_id not in by_id:
            raise ComponentNotFoundError(component_type.value, component_id, "remove")
        del by_id[component_id]

    def get_components_by_cluster(self, component_type: ComponentType, cluster_ref: str) -> list[BaseComponent]:
        return [c for c in self.get_all(component_type) if c.cluster == cluster_ref]

    def get_all(self, component_type: ComponentType | None = None) -> list[BaseComponent]:
        """Components of one type, or of every type, ordered by id."""
        types = [component_type] if component_type else list(ComponentType)
        return [c for t in types for _, c in sorted(self._components[t].items())]

    def change_node_state(self, node_id: int, phase: DeploymentPhase) -> None:
        """Move the consensus node *node_id* to *phase*.

        Raises:
            ComponentNotFoundError: If no consensus node has this id.
            InvalidPhaseTransitionError: If the lifecycle forbids the change.
        """
        self.change_component_phase(ComponentType.CONSENSUS_NODE, node_id, phase)

    def change_component_phase(self, component_type: ComponentType, component_id: int,
                               phase: DeploymentPhase) -> None:
        by_id = self._components[component_type]
        if component_id not in by_id:
            raise ComponentNotFoundError(component_type.value, component_id, "change phase")
        by_id[component_id] = by_id[component_id].with_phase(phase)

    def get_new_component_index(self, component_type: ComponentType) -> int:
        """Next free id for *component_type*: the highest id in use plus one."""
        ids = self._components[component_type].keys()
        return max(ids) + 1 if ids else 0

    def clear(self) -> None:
        for by_id in self._components.values():
            by_id.clear()

    def is_empty(self) -> bool:
        return not any(self._components.values())

    def validate(self) -> list[Violation]:
        violations = []
        for component_type, by_id in self._components.items():
            for component_id, component in by_id.items():
                where = f"state.{component_type.value}.{component_id}"
                if component.component_type is not component_type:
                    violations.append(Violation(where, f"stored under {component_type.value}"))
                if component.id != component_id:
                    violations.append(Violation(where, f"id mismatch ({component.id})"))
                if not component.name:
                    violations.append(Violation(where, "name must not be empty"))
                if not component.cluster or not component.namespace:
                    violations.append(Violation(where, "cluster and namespace are required"))
        return violations

    def clone(self) -> ComponentsDataWrapper:
        return ComponentsDataWrapper(copy.deepcopy(self._components))

    def to_object(self, mapper: ObjectMapper) -> dict:
        return {t.value: [mapper.to_object(c) for c in self.get_all(t)] for t in ComponentType}

    @classmethod
    def from_object(cls, data: dict, mapper: ObjectMapper) -> ComponentsDataWrapper:
        wrapper = cls()
        for component_type in ComponentType:
            for item in data.get(component_type.value) or []:
                component_cls = COMPONENT_CLASSES[component_type]
                wrapper.add_new_component(mapper.from_object(component_cls, item))
        return wrapper

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ComponentsDataWrapper):
            return NotImplemented
        return self._components == other._components

    def __repr__(self) -> str:
        counts = ", ".join(f"{t.value}={len(v)}" for t, v in self._components.items() if v)
        return f"ComponentsDataWrapper({counts})"


# ============================================================================
# Factory
# ============================================================================

_NODE_ALIAS = re.compile(r"^node(\d+)$")


def node_alias(node_id: int) -> str:
    return f"node{node_id + 1}"


def node_id_from_alias(alias: str) -> int:
    """Parse a consensus node alias such as ``node1`` into its id (``0``).

    Raises:
        IllegalArgumentError: If *alias* is not of the form ``node<N>`` with N >= 1.
    """
    match = _NODE_ALIAS.match(alias or "")
    if not match or int(match.group(1)) < 1:
        raise IllegalArgumentError(f"Invalid consensus node alias: '{alias}'")
    return int(match.group(1)) - 1


class ComponentFactory:
    """Builds components with deterministic ids and names."""

    def __init__(self, components: ComponentsDataWrapper) -> None:
        self._components = components

    @staticmethod
    def create_consensus_node(node_id: int, cluster: str, namespace: str,
                              phase: DeploymentPhase = DeploymentPhase.REQUESTED) -> ConsensusNodeComponent:
        return ConsensusNodeComponent(
            id=node_id, name=node_alias(node_id), cluster=cluster, namespace=namespace, phase=phase)

    @classmethod
    def create_consensus_nodes_from_aliases(cls, aliases: list[str], cluster: str, namespace: str,
                                            ) -> list[ConsensusNodeComponent]:
        return [cls.create_consensus_node(node_id_from_alias(a), cluster, namespace) for a in aliases]

    def create_new_relay(self, cluster: str, namespace: str, consensus_node_ids: list[int]) -> RelayComponent:
        index = self._components.get_new_component_index(ComponentType.RELAY)
        return RelayComponent(id=index, name=f"relay-{index}", cluster=cluster, namespace=namespace,
                              consensus_node_ids=list(consensus_node_ids))

    def create_new_ha_proxy(self, cluster: str, namespace: str, alias: str) -> HaProxyComponent:
        index = self._components.get_new_component_index(ComponentType.HA_PROXY)
        return HaProxyComponent(id=index, name=f"haproxy-{alias}", cluster=cluster, namespace=namespace)

    def create_new_envoy_proxy(self, cluster: str, namespace: str, alias: str) -> EnvoyProxyComponent:
        index = self._components.get_new_component_index(ComponentType.ENVOY_PROXY)
        return EnvoyProxyComponent(id=index, name=f"envoy-proxy-{alias}", cluster=cluster, namespace=namespace)

    def create_new_mirror_node(self, cluster: str, namespace: str) -> MirrorNodeComponent:
        index = self._components.get_new_component_index(ComponentType.MIRROR_NODE)
        return MirrorNodeComponent(id=index, name=f"mirror-node-{index}", cluster=cluster, namespace=namespace)

    def create_new_explorer(self, cluster: str, namespace: str) -> MirrorNodeExplorerComponent:
        index = self._components.get_new_component_index(ComponentType.EXPLORER)
        return MirrorNodeExplorerComponent(id=index, name=f"explorer-{index}", cluster=cluster,
                                           namespace=namespace)
