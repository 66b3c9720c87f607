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

"""Tests for the cluster setup and reset workflows."""

from __future__ import annotations

import asyncio

import pytest

import solo_manager.orchestrator as orchestrator
from solo_manager.config import ClusterSetupOptions, CommandFlags
from solo_manager.errors import HelmError
from solo_manager.local_config import LocalConfig
from solo_manager.lock import LockManager
from solo_manager.remote_config import RemoteConfigManager


class _FakeHelm:
    def __init__(self, fail_install: bool = False) -> None:
        self.fail_install = fail_install
        self.installed: list[tuple[str, list[str]]] = []
        self.uninstalled: list[str] = []

    async def install(self, release, chart, namespace, *, version=None, values_files=None,
                      set_values=None, context=None, wait=False) -> bool:
        if self.fail_install:
            raise HelmError("install failed")
        self.installed.append((release, list(set_values or [])))
        return True

    async def uninstall(self, release, namespace, context=None) -> bool:
        self.uninstalled.append(release)
        return True

    async def list_releases(self, namespace=None, context=None) -> list[dict]:
        return [{"name": r, "chart": r, "status": "deployed"} for r, _ in self.installed]


@pytest.fixture
def services(k8_factory, settings, monkeypatch):
    monkeypatch.setattr(orchestrator, "require_command", lambda cmd: None)

    def _build(helm: _FakeHelm | None = None, flags: CommandFlags | None = None) -> orchestrator.Services:
        flags = flags or CommandFlags()
        local_config = LocalConfig(settings=settings)
        lock_manager = LockManager(k8_factory, settings)
        remote = RemoteConfigManager(k8_factory, lock_manager, local_config, flags, settings)
        return orchestrator.Services(settings, flags, k8_factory, helm or _FakeHelm(), local_config,
                                     lock_manager, remote)

    return _build


def test_setup_values_are_rendered_as_helm_booleans() -> None:
    values = orchestrator.collect_setup_values(ClusterSetupOptions(deploy_minio=False, deploy_cert_manager=True))

    assert values == [
        "cloud.prometheusStack.enabled=true",
        "cloud.certManager.enabled=true",
        "cert-manager.installCRDs=false",
        "cloud.minio.enabled=false",
    ]


def test_setup_skips_components_already_present(services, k8_factory) -> None:
    k8_factory.default().add_pod("solo-setup", "minio-0", {"app": "minio"})
    helm = _FakeHelm()

    installed = asyncio.run(orchestrator.run_cluster_setup(services(helm), ClusterSetupOptions()))

    assert installed
    release, values = helm.installed[0]
    assert release == "solo-cluster-setup"
    minio_key = orchestrator.HELM_KEY_MINIO
    prometheus_key = orchestrator.HELM_KEY_PROMETHEUS_STACK
    assert f"{minio_key}=false" in values
    assert f"{prometheus_key}=true" in values


def test_setup_with_everything_present_installs_nothing(services, k8_factory) -> None:
    k8 = k8_factory.default()
    k8.add_pod("solo-setup", "minio-0", {"app": "minio"})
    k8.add_pod("solo-setup", "prometheus-0", {"app.kubernetes.io/name": "prometheus"})
    helm = _FakeHelm()

    assert asyncio.run(orchestrator.run_cluster_setup(services(helm), ClusterSetupOptions())) is False
    assert helm.installed == []


def test_failed_setup_is_rolled_back(services) -> None:
    helm = _FakeHelm(fail_install=True)

    with pytest.raises(HelmError):
        asyncio.run(orchestrator.run_cluster_setup(services(helm), ClusterSetupOptions()))
    assert helm.uninstalled == ["solo-cluster-setup"]


def test_reset_asks_before_removing_chart_used_by_deployments(services, k8_factory, monkeypatch) -> None:
    k8_factory.default()._store("solo", "solo-remote-config",
                                {"solo.hedera.com/type": "remote-config"}, {"remote-config-data": "{}"})
    monkeypatch.setattr(orchestrator.typer, "confirm", lambda *args, **kwargs: False)
    helm = _FakeHelm()

    assert asyncio.run(orchestrator.run_cluster_reset(services(helm))) is False
    assert helm.uninstalled == []
    assert k8_factory.default().leases == {}


def test_forced_reset_uninstalls(services, k8_factory) -> None:
    k8_factory.default()._store("solo", "solo-remote-config",
                                {"solo.hedera.com/type": "remote-config"}, {"remote-config-data": "{}"})
    helm = _FakeHelm()

    assert asyncio.run(orchestrator.run_cluster_reset(services(helm, CommandFlags(force=True))))
    assert helm.uninstalled == ["solo-cluster-setup"]
