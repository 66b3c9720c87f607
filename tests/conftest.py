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

"""Shared fixtures: an in-memory Kubernetes client and tool settings."""

from __future__ import annotations

import copy
from pathlib import Path

import pytest

from solo_manager.config import CommandFlags, SoloSettings
from solo_manager.errors import ResourceCreateError, ResourceNotFoundError, ResourceReplaceError
from solo_manager.local_config import LocalConfig
from solo_manager.lock import LockManager
from solo_manager.remote_config import RemoteConfigManager

DEFAULT_CONTEXT = "kind-solo"


def _matches(labels: dict[str, str], selectors: list[str]) -> bool:
    for selector in selectors:
        key, _, value = selector.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeK8:
    """In-memory stand-in for one cluster context."""

    def __init__(self, context: str, factory: FakeK8Factory) -> None:
        self.context = context
        self._factory = factory
        self.config_maps: dict[tuple[str, str], dict] = {}
        self.leases: dict[tuple[str, str], dict] = {}
        self.pods: list[dict] = []
        self.namespaces: set[str] = set()
        self.config_map_writes = 0
        self.reachable = True
        self.cluster_name = context

    def add_pod(self, namespace: str, name: str, labels: dict[str, str]) -> None:
        self.pods.append({"metadata": {"namespace": namespace, "name": name, "labels": labels}})

    async def list_pods(self, namespace: str, labels: list[str]) -> list[dict]:
        return [p for p in self.pods
                if p["metadata"]["namespace"] == namespace and _matches(p["metadata"]["labels"], labels)]

    async def list_pods_all_namespaces(self, labels: list[str]) -> list[dict]:
        return [p for p in self.pods if _matches(p["metadata"]["labels"], labels)]

    async def read_config_map(self, namespace: str, name: str) -> dict:
        if (namespace, name) not in self.config_maps:
            raise ResourceNotFoundError("configmap", namespace, name)
        return copy.deepcopy(self.config_maps[(namespace, name)])

    async def config_map_exists(self, namespace: str, name: str) -> bool:
        return (namespace, name) in self.config_maps

    async def create_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                data: dict[str, str]) -> None:
        if (namespace, name) in self.config_maps:
            raise ResourceCreateError("configmap", namespace, name, detail="AlreadyExists")
        self._store(namespace, name, labels, data)

    async def replace_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                 data: dict[str, str]) -> None:
        if (namespace, name) not in self.config_maps:
            raise ResourceNotFoundError("configmap", namespace, name)
        self._store(namespace, name, labels, data)

    def _store(self, namespace: str, name: str, labels: dict[str, str], data: dict[str, str]) -> None:
        self.config_map_writes += 1
        self.config_maps[(namespace, name)] = {
            "metadata": {"name": name, "namespace": namespace, "labels": dict(labels)},
            "data": dict(data),
        }

    async def delete_config_map(self, namespace: str, name: str) -> None:
        if self.config_maps.pop((namespace, name), None) is None:
            raise ResourceNotFoundError("configmap", namespace, name)

    async def list_config_maps_all_namespaces(self, labels: list[str]) -> list[dict]:
        return [copy.deepcopy(cm) for cm in self.config_maps.values()
                if _matches(cm["metadata"]["labels"], labels)]

    async def read_lease(self, namespace: str, name: str) -> dict | None:
        lease = self.leases.get((namespace, name))
        return copy.deepcopy(lease) if lease is not None else None

    async def create_lease(self, namespace: str, name: str, spec: dict) -> dict:
        if (namespace, name) in self.leases:
            raise ResourceCreateError("lease", namespace, name, detail="AlreadyExists")
        self.leases[(namespace, name)] = {"metadata": {"name": name, "namespace": namespace}, "spec": dict(spec)}
        return copy.deepcopy(self.leases[(namespace, name)])

    async def replace_lease(self, namespace: str, name: str, lease: dict) -> dict:
        if (namespace, name) not in self.leases:
            raise ResourceReplaceError("lease", namespace, name, detail="NotFound")
        self.leases[(namespace, name)] = copy.deepcopy(lease)
        return copy.deepcopy(lease)

    async def delete_lease(self, namespace: str, name: str) -> None:
        self.leases.pop((namespace, name), None)

    async def has_namespace(self, name: str) -> bool:
        return name in self.namespaces

    async def create_namespace(self, name: str) -> None:
        self.namespaces.add(name)

    async def delete_namespace(self, name: str, attempts: int = 30) -> None:
        self.namespaces.discard(name)

    async def current_context(self) -> str:
        return self.context

    async def list_contexts(self) -> list[str]:
        return sorted(self._factory.clients)

    async def current_cluster_name(self) -> str:
        return self.cluster_name

    async def test_connection(self) -> bool:
        return self.reachable


class FakeK8Factory:
    """Hands out one FakeK8 per context; ``None`` means the default context."""

    def __init__(self, default_context: str = DEFAULT_CONTEXT) -> None:
        self.default_context = default_context
        self.clients: dict[str, FakeK8] = {}
        self.get_k8(default_context)

    def get_k8(self, context: str | None) -> FakeK8:
        context = context or self.default_context
        if context not in self.clients:
            self.clients[context] = FakeK8(context, self)
        return self.clients[context]

    def default(self) -> FakeK8:
        return self.get_k8(None)


@pytest.fixture
def settings(tmp_path: Path) -> SoloSettings:
    return SoloSettings(
        home=tmp_path / "solo-home",
        lock_acquire_attempts=1,
        lock_acquire_wait=0,
        pod_ready_attempts=1,
        pod_ready_interval=0,
        user_email="ops@example.com",
    )


@pytest.fixture
def k8_factory() -> FakeK8Factory:
    return FakeK8Factory()


@pytest.fixture
def local_config(settings: SoloSettings) -> LocalConfig:
    return LocalConfig(settings=settings)


def make_remote_manager(
    k8_factory: FakeK8Factory,
    local_config: LocalConfig,
    settings: SoloSettings,
    flags: CommandFlags | None = None,
) -> RemoteConfigManager:
    flags = flags or CommandFlags(argv=["solo", "test"], deployment="dep-1")
    return RemoteConfigManager(k8_factory, LockManager(k8_factory, settings), local_config, flags, settings)


@pytest.fixture
def remote_factory(k8_factory: FakeK8Factory, local_config: LocalConfig, settings: SoloSettings):
    """Build a RemoteConfigManager over the fake cluster, optionally with custom flags."""

    def _build(flags: CommandFlags | None = None) -> RemoteConfigManager:
        return make_remote_manager(k8_factory, local_config, settings, flags)

    return _build
