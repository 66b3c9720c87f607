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

"""Kubernetes access: the client contract the managers rely on and a kubectl-backed implementation."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from tenacity import RetryError, retry, retry_if_result, stop_after_attempt, wait_fixed

from solo_manager import logger as package_logger
from solo_manager.constants import LEASE_API_VERSION, NAMESPACE_DELETE_POLL_INTERVAL_SECONDS
from solo_manager.errors import (
    ResourceCreateError,
    ResourceDeleteError,
    ResourceNotFoundError,
    ResourceReadError,
    ResourceReplaceError,
)
from solo_manager.utils import is_not_found, run_kubectl


class K8(Protocol):
    """Operations on one cluster context.

    ConfigMaps are exchanged as ``(labels, data)``; leases and pods as the
    plain resource dicts returned by the API server.
    """

    context: str | None

    async def list_pods(self, namespace: str, labels: list[str]) -> list[dict]: ...

    async def list_pods_all_namespaces(self, labels: list[str]) -> list[dict]: ...

    async def read_config_map(self, namespace: str, name: str) -> dict: ...

    async def config_map_exists(self, namespace: str, name: str) -> bool: ...

    async def create_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                data: dict[str, str]) -> None: ...

    async def replace_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                 data: dict[str, str]) -> None: ...

    async def delete_config_map(self, namespace: str, name: str) -> None: ...

    async def list_config_maps_all_namespaces(self, labels: list[str]) -> list[dict]: ...

    async def read_lease(self, namespace: str, name: str) -> dict | None: ...

    async def create_lease(self, namespace: str, name: str, spec: dict) -> dict: ...

    async def replace_lease(self, namespace: str, name: str, lease: dict) -> dict: ...

    async def delete_lease(self, namespace: str, name: str) -> None: ...

    async def has_namespace(self, name: str) -> bool: ...

    async def create_namespace(self, name: str) -> None: ...

    async def delete_namespace(self, name: str, attempts: int = 30) -> None: ...

    async def current_context(self) -> str: ...

    async def list_contexts(self) -> list[str]: ...

    async def current_cluster_name(self) -> str: ...

    async def test_connection(self) -> bool: ...


class KubectlClient:
    """K8 implementation that drives the ``kubectl`` binary for one context."""

    def __init__(self, context: str | None = None, timeout: int = 60,
                 logger: logging.Logger | None = None) -> None:
        self.context = context
        self._timeout = timeout
        self._logger = logger or package_logger

    async def _run(self, *args: str, stdin: str | None = None) -> tuple[bool, str, str]:
        full = [*args]
        if self.context:
            full = ["--context", self.context, *full]
        self._logger.debug("kubectl %s", " ".join(full))
        return await asyncio.to_thread(run_kubectl, full, self._timeout, stdin)

    async def _get_json(self, *args: str) -> tuple[bool, Any, str]:
        ok, out, err = await self._run(*args, "-o", "json")
        return ok, (json.loads(out) if ok and out.strip() else None), err

    # -- pods --

    async def list_pods(self, namespace: str, labels: list[str]) -> list[dict]:
        ok, body, err = await self._get_json("get", "pods", "-n", namespace, "-l", ",".join(labels))
        if not ok:
            raise ResourceReadError("pods", namespace, ",".join(labels), detail=err.strip())
        return body.get("items", []) if body else []

    async def list_pods_all_namespaces(self, labels: list[str]) -> list[dict]:
        ok, body, err = await self._get_json("get", "pods", "-A", "-l", ",".join(labels))
        if not ok:
            raise ResourceReadError("pods", None, ",".join(labels), detail=err.strip())
        return body.get("items", []) if body else []

    # -- config maps --

    @staticmethod
    def _config_map_manifest(namespace: str, name: str, labels: dict[str, str], data: dict[str, str]) -> str:
        return json.dumps({
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": namespace, "labels": labels},
            "data": data,
        })

    async def read_config_map(self, namespace: str, name: str) -> dict:
        ok, body, err = await self._get_json("get", "configmap", name, "-n", namespace)
        if not ok:
            if is_not_found(err):
                raise ResourceNotFoundError("configmap", namespace, name)
            raise ResourceReadError("configmap", namespace, name, detail=err.strip())
        return body

    async def config_map_exists(self, namespace: str, name: str) -> bool:
        try:
            await self.read_config_map(namespace, name)
            return True
        except ResourceNotFoundError:
            return False

    async def create_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                data: dict[str, str]) -> None:
        manifest = self._config_map_manifest(namespace, name, labels, data)
        ok, _, err = await self._run("create", "-f", "-", stdin=manifest)
        if not ok:
            raise ResourceCreateError("configmap", namespace, name, detail=err.strip())

    async def replace_config_map(self, namespace: str, name: str, labels: dict[str, str],
                                 data: dict[str, str]) -> None:
        manifest = self._config_map_manifest(namespace, name, labels, data)
        ok, _, err = await self._run("replace", "-f", "-", stdin=manifest)
        if not ok:
            if is_not_found(err):
                raise ResourceNotFoundError("configmap", namespace, name)
            raise ResourceReplaceError("configmap", namespace, name, detail=err.strip())

    async def delete_config_map(self, namespace: str, name: str) -> None:
        ok, _, err = await self._run("delete", "configmap", name, "-n", namespace)
        if not ok:
            if is_not_found(err):
                raise ResourceNotFoundError("configmap", namespace, name)
            raise ResourceDeleteError("configmap", namespace, name, detail=err.strip())

    async def list_config_maps_all_namespaces(self, labels: list[str]) -> list[dict]:
        ok, body, err = await self._get_json("get", "configmaps", "-A", "-l", ",".join(labels))
        if not ok:
            raise ResourceReadError("configmap", None, ",".join(labels), detail=err.strip())
        return body.get("items", []) if body else []

    # -- leases --

    async def read_lease(self, namespace: str, name: str) -> dict | None:
        ok, body, err = await self._get_json("get", "lease", name, "-n", namespace)
        if not ok:
            if is_not_found(err):
                return None
            raise ResourceReadError("lease", namespace, name, detail=err.strip())
        return body

    async def create_lease(self, namespace: str, name: str, spec: dict) -> dict:
        manifest = json.dumps({
            "apiVersion": LEASE_API_VERSION,
            "kind": "Lease",
            "metadata": {"name": name, "namespace": namespace},
            "spec": spec,
        })
        ok, out, err = await self._run("create", "-f", "-", "-o", "json", stdin=manifest)
        if not ok:
            raise ResourceCreateError("lease", namespace, name, detail=err.strip())
        return json.loads(out)

    async def replace_lease(self, namespace: str, name: str, lease: dict) -> dict:
        ok, out, err = await self._run("replace", "-f", "-", "-o", "json", stdin=json.dumps(lease))
        if not ok:
            raise ResourceReplaceError("lease", namespace, name, detail=err.strip())
        return json.loads(out)

    async def delete_lease(self, namespace: str, name: str) -> None:
        ok, _, err = await self._run("delete", "lease", name, "-n", namespace)
        if not ok and not is_not_found(err):
            raise ResourceDeleteError("lease", namespace, name, detail=err.strip())

    # -- namespaces --

    async def has_namespace(self, name: str) -> bool:
        ok, _, err = await self._run("get", "namespace", name)
        if not ok and not is_not_found(err):
            raise ResourceReadError("namespace", None, name, detail=err.strip())
        return ok

    async def create_namespace(self, name: str) -> None:
        ok, _, err = await self._run("create", "namespace", name)
        if not ok and "AlreadyExists" not in err:
            raise ResourceCreateError("namespace", None, name, detail=err.strip())

    async def delete_namespace(self, name: str, attempts: int = 30) -> None:
        """Delete a namespace and wait until it is gone.

        Raises:
            ResourceDeleteError: If deletion fails or does not finish in time.
        """
        ok, _, err = await self._run("delete", "namespace", name, "--wait=false")
        if not ok and not is_not_found(err):
            raise ResourceDeleteError("namespace", None, name, detail=err.strip())

        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(NAMESPACE_DELETE_POLL_INTERVAL_SECONDS),
            retry=retry_if_result(lambda present: present),
        )
        async def _still_present() -> bool:
            return await self.has_namespace(name)

        try:
            await _still_present()
        except RetryError as err:
            raise ResourceDeleteError("namespace", None, name, err, "still terminating") from err

    # -- contexts --

    async def current_context(self) -> str:
        if self.context:
            return self.context
        ok, out, err = await asyncio.to_thread(run_kubectl, ["config", "current-context"], self._timeout)
        if not ok:
            raise ResourceReadError("kube context", None, None, detail=err.strip())
        return out.strip()

    async def list_contexts(self) -> list[str]:
        ok, out, err = await asyncio.to_thread(
            run_kubectl, ["config", "get-contexts", "-o", "name"], self._timeout)
        if not ok:
            raise ResourceReadError("kube context", None, None, detail=err.strip())
        return [line.strip() for line in out.splitlines() if line.strip()]

    async def current_cluster_name(self) -> str:
        context = await self.current_context()
        ok, out, err = await asyncio.to_thread(run_kubectl, [
            "config", "view", "-o",
            f"jsonpath={{.contexts[?(@.name==\"{context}\")].context.cluster}}",
        ], self._timeout)
        if not ok:
            raise ResourceReadError("kube cluster", None, context, detail=err.strip())
        return out.strip()

    async def test_connection(self) -> bool:
        ok, _, err = await self._run("get", "namespaces", "--request-timeout=10s")
        if not ok:
            self._logger.warning("Connection test failed for context %s: %s", self.context, err.strip())
        return ok


class K8Factory:
    """Creates and caches one client per kube context."""

    def __init__(self, timeout: int = 60, logger: logging.Logger | None = None) -> None:
        self._timeout = timeout
        self._logger = logger or package_logger
        self._clients: dict[str | None, K8] = {}

    def get_k8(self, context: str | None) -> K8:
        if context not in self._clients:
            self._clients[context] = KubectlClient(context, self._timeout, self._logger)
        return self._clients[context]

    def default(self) -> K8:
        return self.get_k8(None)
