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

"""Lifecycle phases and component type identifiers."""

from __future__ import annotations

from enum import Enum

from solo_manager.errors import InvalidPhaseTransitionError


class DeploymentPhase(str, Enum):
    """Per-component lifecycle phase."""

    REQUESTED = "requested"
    DEPLOYED = "deployed"
    CONFIGURED = "configured"
    STARTED = "started"
    FROZEN = "frozen"
    STOPPED = "stopped"

    def can_transition_to(self, target: DeploymentPhase) -> bool:
        return target is self or target in _DEPLOYMENT_TRANSITIONS[self]

    def transition_to(self, target: DeploymentPhase, subject: str = "component") -> DeploymentPhase:
        """Validate a phase change.

        Args:
            target: The requested phase.
            subject: Description of the component, used in the error message.

        Returns:
            The target phase.

        Raises:
            InvalidPhaseTransitionError: If the lifecycle does not allow the change.
        """
        if not self.can_transition_to(target):
            raise InvalidPhaseTransitionError(subject, self.value, target.value)
        return target


_DEPLOYMENT_TRANSITIONS: dict[DeploymentPhase, frozenset[DeploymentPhase]] = {
    DeploymentPhase.REQUESTED: frozenset({DeploymentPhase.DEPLOYED}),
    DeploymentPhase.DEPLOYED: frozenset({DeploymentPhase.CONFIGURED, DeploymentPhase.STOPPED}),
    DeploymentPhase.CONFIGURED: frozenset({DeploymentPhase.STARTED, DeploymentPhase.STOPPED}),
    DeploymentPhase.STARTED: frozenset({DeploymentPhase.FROZEN, DeploymentPhase.STOPPED}),
    DeploymentPhase.FROZEN: frozenset({DeploymentPhase.STARTED, DeploymentPhase.STOPPED}),
    DeploymentPhase.STOPPED: frozenset(),
}


class LedgerPhase(str, Enum):
    """Whole-network lifecycle phase."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SNAPSHOT_RESTORING = "snapshot_restoring"
    SNAPSHOT_RESTORED = "snapshot_restored"
    FREEZING = "freezing"
    FROZEN = "frozen"
    RECOVERING = "recovering"
    RECOVERED = "recovered"

    def can_transition_to(self, target: LedgerPhase) -> bool:
        return target is self or target in _LEDGER_TRANSITIONS[self]

    def transition_to(self, target: LedgerPhase) -> LedgerPhase:
        if not self.can_transition_to(target):
            raise InvalidPhaseTransitionError("ledger", self.value, target.value)
        return target


# Freeze and recovery are only reachable once INITIALIZED has been entered.
_LEDGER_TRANSITIONS: dict[LedgerPhase, frozenset[LedgerPhase]] = {
    LedgerPhase.UNINITIALIZED: frozenset({LedgerPhase.INITIALIZED, LedgerPhase.SNAPSHOT_RESTORING}),
    LedgerPhase.SNAPSHOT_RESTORING: frozenset({LedgerPhase.SNAPSHOT_RESTORED}),
    LedgerPhase.SNAPSHOT_RESTORED: frozenset({LedgerPhase.INITIALIZED}),
    LedgerPhase.INITIALIZED: frozenset(
        {LedgerPhase.FREEZING, LedgerPhase.RECOVERING, LedgerPhase.SNAPSHOT_RESTORING}),
    LedgerPhase.FREEZING: frozenset({LedgerPhase.FROZEN}),
    LedgerPhase.FROZEN: frozenset({LedgerPhase.INITIALIZED, LedgerPhase.RECOVERING}),
    LedgerPhase.RECOVERING: frozenset({LedgerPhase.RECOVERED}),
    LedgerPhase.RECOVERED: frozenset({LedgerPhase.INITIALIZED}),
}


class ComponentType(str, Enum):
    """Component kinds; the value is the key used in the serialized state."""

    CONSENSUS_NODE = "consensusNodes"
    RELAY = "relayNodes"
    HA_PROXY = "haProxies"
    ENVOY_PROXY = "envoyProxies"
    MIRROR_NODE = "mirrorNodes"
    EXPLORER = "explorers"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ComponentType.CONSENSUS_NODE: "Consensus node",
    ComponentType.RELAY: "Relay",
    ComponentType.HA_PROXY: "HaProxy",
    ComponentType.ENVOY_PROXY: "Envoy proxy",
    ComponentType.MIRROR_NODE: "Mirror node",
    ComponentType.EXPLORER: "Mirror node explorer",
}
