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

"""Orchestration functions that compose the managers into command workflows."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import typer
import yaml
from rich.panel import Panel
from rich.table import Table

from solo_manager import console, logger
from solo_manager.components import ComponentFactory
from solo_manager.config import ClusterSetupOptions, CommandFlags, SoloSettings
from solo_manager.constants import (
    HELM_KEY_CERT_MANAGER,
    HELM_KEY_CERT_MANAGER_CRDS,
    HELM_KEY_MINIO,
    HELM_KEY_PROMETHEUS_STACK,
    LABEL_CERT_MANAGER,
    LABEL_MINIO,
    LABEL_PROMETHEUS,
    REMOTE_CONFIG_NAME,
    SOLO_CLUSTER_SETUP_CHART,
)
from solo_manager.errors import HelmError, IllegalArgumentError, ResourceError, SoloError
from solo_manager.helm import HelmClient
from solo_manager.kube import K8, K8Factory
from solo_manager.local_config import LocalConfig, prompt_local_config
from solo_manager.lock import LockManager
from solo_manager.mapper import ObjectMapper
from solo_manager.models import Cluster, Deployment
from solo_manager.phases import LedgerPhase
from solo_manager.remote_config import RemoteConfigManager
from solo_manager.utils import require_command, split_flag_input


# ============================================================================
# Wiring
# ============================================================================

@dataclass
class Services:
    """Collaborators resolved once per command invocation."""

    settings: SoloSettings
    flags: CommandFlags
    k8_factory: K8Factory
    helm: HelmClient
    local_config: LocalConfig
    lock_manager: LockManager
    remote_config: RemoteConfigManager

    def k8(self, context: str | None = None) -> K8:
        return self.k8_factory.get_k8(context if context is not None else self.flags.context)


def build_services(settings: SoloSettings, flags: CommandFlags) -> Services:
    """Create the managers for one invocation."""
    mapper = ObjectMapper(logger)
    k8_factory = K8Factory(settings.kubectl_timeout, logger)
    local_config = LocalConfig(settings=settings, mapper=mapper, logger=logger)
    lock_manager = LockManager(k8_factory, settings, logger)
    remote_config = RemoteConfigManager(
        k8_factory, lock_manager, local_config, flags, settings, mapper=mapper, logger=logger)
    return Services(settings, flags, k8_factory, HelmClient(logger), local_config, lock_manager, remote_config)


# ============================================================================
# Internal helpers
# ============================================================================

async def _load_local_config(services: Services) -> LocalConfig:
    """Load the local config, failing with a hint when it does not exist yet."""
    local_config = services.local_config
    if not local_config.is_loaded:
        if not local_config.config_file_exists():
            raise SoloError(
                f"Local config {local_config.path} not found; run 'cluster connect' or 'context connect' first")
        await local_config.load()
    return local_config


async def _ensure_local_config(services: Services) -> LocalConfig:
    """Load the local config, creating it when missing."""
    local_config = services.local_config
    if local_config.config_file_exists():
        return await _load_local_config(services)

    services.settings.home.mkdir(parents=True, exist_ok=True)
    email = services.flags.email or services.settings.user_email
    if not email:
        if services.flags.quiet:
            raise IllegalArgumentError("An email address is required; pass --email or set SOLO_USER_EMAIL")
        email = typer.prompt("User email address")
    await local_config.create(email)
    console.print(f"[green]\u2705 Created local config {local_config.path}[/green]")
    return local_config


async def _test_connection(services: Services, cluster_ref: str, context: str) -> None:
    console.print(f"[yellow]\u2139\ufe0f  Testing connection to '{cluster_ref}' (context: {context})...[/yellow]")
    if not await services.k8(context).test_connection():
        raise SoloError(f"Connection failed for cluster {cluster_ref} with context: {context}")


# ============================================================================
# Cluster workflows
# ============================================================================

async def run_cluster_connect(services: Services, cluster_ref: str, context: str | None) -> None:
    """Map *cluster_ref* to a kube context in the local config."""
    console.print(Panel.fit(f"Connecting cluster reference '{cluster_ref}'", style="bold blue"))
    local_config = await _ensure_local_config(services)
    if not context:
        context = await services.k8_factory.default().current_context()
    await _test_connection(services, cluster_ref, context)
    local_config.add_cluster_ref(cluster_ref, context)
    await local_config.write()
    console.print(f"[green]\u2705 Cluster reference '{cluster_ref}' mapped to context '{context}'[/green]")


async def run_cluster_disconnect(services: Services, cluster_ref: str) -> None:
    local_config = await _load_local_config(services)
    local_config.remove_cluster_ref(cluster_ref)
    await local_config.write()
    console.print(f"[green]\u2705 Cluster reference '{cluster_ref}' removed[/green]")


async def run_cluster_list(services: Services) -> None:
    contexts = await services.k8_factory.default().list_contexts()
    refs: dict[str, str] = {}
    if services.local_config.config_file_exists():
        refs = (await _load_local_config(services)).cluster_refs
    by_context: dict[str, list[str]] = {}
    for ref, context in refs.items():
        by_context.setdefault(context, []).append(ref)
    table = Table(title="Kube contexts")
    table.add_column("Context")
    table.add_column("Cluster references")
    for context in contexts:
        table.add_row(context, ", ".join(sorted(by_context.get(context, []))))
    console.print(table)


async def run_cluster_info(services: Services) -> None:
    k8 = services.k8()
    context = await k8.current_context()
    cluster = await k8.current_cluster_name()
    console.print(f"[bold]Context:[/bold] {context}")
    console.print(f"[bold]Cluster:[/bold] {cluster}")


async def _prepare_setup_options(services: Services, options: ClusterSetupOptions) -> ClusterSetupOptions:
    """Drop the parts of the setup chart that are already present in the cluster."""
    k8 = services.k8()
    namespace = services.settings.cluster_setup_namespace
    minio = options.deploy_minio
    prometheus = options.deploy_prometheus_stack
    cert_manager = options.deploy_cert_manager
    cert_manager_crds = options.deploy_cert_manager_crds

    async def _present(labels: list[str], all_namespaces: bool = False) -> bool:
        try:
            if all_namespaces:
                return bool(await k8.list_pods_all_namespaces(labels))
            return bool(await k8.list_pods(namespace, labels))
        except ResourceError as err:
            logger.warning("Could not check for %s: %s", ",".join(labels), err)
            return False

    if minio and await _present([LABEL_MINIO]):
        console.print("[yellow]\u2139\ufe0f  MinIO already installed, skipping[/yellow]")
        minio = False
    if prometheus and await _present([LABEL_PROMETHEUS]):
        console.print("[yellow]\u2139\ufe0f  Prometheus already installed, skipping[/yellow]")
        prometheus = False
    if (cert_manager or cert_manager_crds) and await _present([LABEL_CERT_MANAGER], all_namespaces=True):
        console.print("[yellow]\u2139\ufe0f  cert-manager already installed, skipping[/yellow]")
        cert_manager = cert_manager_crds = False

    return ClusterSetupOptions(
        deploy_prometheus_stack=prometheus,
        deploy_minio=minio,
        deploy_cert_manager=cert_manager,
        deploy_cert_manager_crds=cert_manager_crds,
        chart_dir=options.chart_dir,
    )


def collect_setup_values(options: ClusterSetupOptions) -> list[str]:
    """Build ``key=value`` strings for the cluster setup chart.

    Args:
        options: Which sub-charts to enable.

    Returns:
        List of ``key=value`` strings for ``helm --set`` arguments.
    """
    flags = [
        (HELM_KEY_PROMETHEUS_STACK, options.deploy_prometheus_stack),
        (HELM_KEY_CERT_MANAGER, options.deploy_cert_manager),
        (HELM_KEY_CERT_MANAGER_CRDS, options.deploy_cert_manager_crds),
        (HELM_KEY_MINIO, options.deploy_minio),
    ]
    return [f"{key}={str(enabled).lower()}" for key, enabled in flags]


async def run_cluster_setup(services: Services, options: ClusterSetupOptions) -> bool:
    """Install the shared cluster setup chart.

    Returns:
        True if the chart was installed, False if nothing needed installing.

    Raises:
        HelmError: If installation fails; the partial release is uninstalled first.
    """
    console.print(Panel.fit(f"Installing '{SOLO_CLUSTER_SETUP_CHART}' chart", style="bold blue"))
    require_command("helm")
    options = await _prepare_setup_options(services, options)
    if options.nothing_to_install:
        console.print("[yellow]\u2139\ufe0f  All cluster setup components are present, nothing to install[/yellow]")
        return False
    if options.deploy_cert_manager and not options.deploy_cert_manager_crds:
        console.print("[yellow]\u26a0\ufe0f  cert-manager CRDs are required for cert-manager; "
                      "enable them unless they are installed independently[/yellow]")

    namespace = services.settings.cluster_setup_namespace
    context = services.flags.context
    if options.chart_dir:
        chart = str(options.chart_dir / SOLO_CLUSTER_SETUP_CHART)
        values_files = [options.chart_dir / SOLO_CLUSTER_SETUP_CHART / "values.yaml"]
        version = None
    else:
        chart = f"{services.settings.chart_repo}/{SOLO_CLUSTER_SETUP_CHART}"
        values_files = []
        version = services.settings.solo_chart_version

    try:
        installed = await services.helm.install(
            SOLO_CLUSTER_SETUP_CHART, chart, namespace,
            version=version, values_files=values_files,
            set_values=collect_setup_values(options), context=context,
        )
    except HelmError:
        console.print("[yellow]\u26a0\ufe0f  Install failed, rolling back the release[/yellow]")
        try:
            await services.helm.uninstall(SOLO_CLUSTER_SETUP_CHART, namespace, context)
        except HelmError as rollback_err:
            logger.debug("Rollback of %s failed: %s", SOLO_CLUSTER_SETUP_CHART, rollback_err)
        raise
    if installed:
        console.print(f"[green]\u2705 '{SOLO_CLUSTER_SETUP_CHART}' installed in '{namespace}'[/green]")
    if services.flags.dev:
        await _show_releases(services, namespace)
    return installed


async def run_cluster_reset(services: Services) -> bool:
    """Uninstall the cluster setup chart while holding the setup namespace lease.

    Returns:
        False if the user declined, True otherwise.
    """
    console.print(Panel.fit(f"Uninstalling '{SOLO_CLUSTER_SETUP_CHART}' chart", style="bold blue"))
    namespace = services.settings.cluster_setup_namespace
    context = services.flags.context
    async with services.lock_manager.create(namespace, context):
        if not services.flags.force and await services.remote_config.is_present_in_any_namespace(context):
            if not typer.confirm("There is a remote config for one of the deployments. "
                                 "Are you sure you would like to uninstall the cluster?", default=False):
                console.print("[yellow]\u2139\ufe0f  Cluster reset aborted[/yellow]")
                return False
        await services.helm.uninstall(SOLO_CLUSTER_SETUP_CHART, namespace, context)
    console.print("[green]\u2705 Cluster reset[/green]")
    if services.flags.dev:
        await _show_releases(services, namespace)
    return True


async def _show_releases(services: Services, namespace: str) -> None:
    releases = await services.helm.list_releases(namespace, services.flags.context)
    console.print(f"[bold]Installed charts in {namespace}:[/bold]")
    for release in releases:
        console.print(f"  - {release.get('name')} ({release.get('chart')}, {release.get('status')})")


# ============================================================================
# Context and deployment workflows
# ============================================================================

async def run_context_connect(services: Services, deployment_clusters: str | None) -> None:
    """Populate the local config from flags, prompts, or the current kube context."""
    console.print(Panel.fit("Connecting deployment to kube contexts", style="bold blue"))
    if services.local_config.config_file_exists():
        await _load_local_config(services)
    data = await prompt_local_config(
        services.local_config, services.k8_factory.default(), services.flags, services.settings,
        deployment_clusters)
    console.print(f"[green]\u2705 Deployment '{data.current_deployment_name}' connected[/green]")


async def run_deployment_create(services: Services, namespace: str | None, realm: int, shard: int) -> None:
    """Register a deployment in the local config."""
    local_config = await _load_local_config(services)
    deployment = services.flags.deployment
    if not deployment:
        raise IllegalArgumentError("Deployment name was not specified")
    local_config.add_deployment(deployment, namespace or deployment, realm=realm, shard=shard)
    local_config.set_current_deployment(deployment)
    await local_config.write()
    console.print(f"[green]\u2705 Deployment '{deployment}' added to local config[/green]")


async def _find_remote_config_context(services: Services, deployment: Deployment) -> str | None:
    """Context of the first cluster of *deployment* that already holds its remote config."""
    refs = services.local_config.cluster_refs
    for cluster_ref in deployment.clusters:
        context = refs.get(cluster_ref)
        if context and await services.k8(context).config_map_exists(deployment.namespace, REMOTE_CONFIG_NAME):
            return context
    return None


async def run_deployment_add_cluster(
    services: Services,
    cluster_ref: str,
    node_aliases: str | None,
    dns_base_domain: str,
    dns_consensus_node_pattern: str,
) -> None:
    """Attach a cluster to a deployment and create or extend its remote config."""
    local_config = await _load_local_config(services)
    deployment_name = services.flags.deployment or local_config.current_deployment_name
    if not deployment_name:
        raise IllegalArgumentError("Deployment name was not specified")
    deployment = local_config.get_deployment(deployment_name)
    context = local_config.cluster_refs.get(cluster_ref)
    if context is None:
        raise IllegalArgumentError(f"Cluster reference '{cluster_ref}' is not connected; run 'cluster connect'")
    aliases = split_flag_input(node_aliases)

    await _test_connection(services, cluster_ref, context)
    k8 = services.k8(context)
    if not await k8.has_namespace(deployment.namespace):
        await k8.create_namespace(deployment.namespace)

    existing_context = await _find_remote_config_context(services, deployment)
    local_config.add_cluster_ref_to_deployment(cluster_ref, deployment_name)
    await local_config.write()

    if existing_context is None:
        await services.remote_config.create(
            LedgerPhase.UNINITIALIZED, aliases, deployment.namespace, deployment_name, cluster_ref, context,
            dns_base_domain, dns_consensus_node_pattern)
        console.print(f"[green]\u2705 Remote config created for '{deployment_name}' in '{cluster_ref}'[/green]")
        return

    await services.remote_config.get(existing_context)

    def _extend(rc) -> None:
        rc.add_command_to_history(services.flags.command_line, services.settings.command_history_max)
        if rc.get_cluster(cluster_ref) is None:
            rc.clusters.append(Cluster(cluster_ref, deployment.namespace, deployment_name,
                                       dns_base_domain, dns_consensus_node_pattern))
        for node in ComponentFactory.create_consensus_nodes_from_aliases(aliases, cluster_ref, deployment.namespace):
            rc.components.add_new_component(node)

    await services.remote_config.modify(_extend)
    console.print(f"[green]\u2705 Cluster '{cluster_ref}' added to deployment '{deployment_name}'[/green]")


async def run_deployment_delete(services: Services) -> None:
    """Remove a deployment from the local config once no remote config is left for it."""
    local_config = await _load_local_config(services)
    name = services.flags.deployment or local_config.current_deployment_name
    if not name:
        raise IllegalArgumentError("Deployment name was not specified")
    deployment = local_config.get_deployment(name)
    for cluster_ref in deployment.clusters:
        context = local_config.cluster_refs.get(cluster_ref)
        if context is None:
            continue
        if await services.k8(context).config_map_exists(deployment.namespace, REMOTE_CONFIG_NAME):
            raise SoloError(f"Deployment {name} has remote resources in cluster: {cluster_ref}")
    local_config.remove_deployment(name)
    await local_config.write()
    console.print(f"[green]\u2705 Deployment '{name}' removed from local config[/green]")


async def run_deployment_list(services: Services) -> None:
    local_config = await _load_local_config(services)
    table = Table(title="Deployments")
    for column in ("Name", "Namespace", "Clusters", "Realm", "Shard", "Current"):
        table.add_column(column)
    for deployment in local_config.deployments:
        current = "\u2713" if deployment.name == local_config.current_deployment_name else ""
        table.add_row(deployment.name, deployment.namespace, ", ".join(deployment.clusters),
                      str(deployment.realm), str(deployment.shard), current)
    console.print(table)


# ============================================================================
# Config inspection
# ============================================================================

async def run_config_show(services: Services) -> None:
    local_config = await _load_local_config(services)
    for key, value in sorted(local_config.flat_view().items()):
        console.print(f"{key} = {value}", markup=False)


async def run_config_set(services: Services, key: str, value: str) -> None:
    local_config = await _load_local_config(services)
    local_config.set_property(key, value)
    await local_config.write()
    console.print(f"[green]\u2705 Set {key}[/green]")


async def run_config_migrate(services: Services) -> None:
    local_config = await _load_local_config(services)
    console.print(f"[green]\u2705 Local config is at schema version {local_config.data.schema_version}[/green]")


async def run_remote_show(services: Services) -> None:
    await _load_local_config(services)
    data = await services.remote_config.get()
    console.print(yaml.safe_dump(ObjectMapper().to_object(data), sort_keys=False), markup=False)


async def run_remote_validate(services: Services, skip_consensus_nodes: bool) -> None:
    await _load_local_config(services)
    await services.remote_config.load_and_validate(
        validate=True, skip_consensus_nodes_validation=skip_consensus_nodes)
    console.print("[green]\u2705 Remote config matches the cluster[/green]")


# ============================================================================
# Entry point for command modules
# ============================================================================

def run_workflow(
    flags: CommandFlags,
    workflow: Callable[..., Awaitable[Any]],
    *args: Any,
    settings: SoloSettings | None = None,
) -> Any:
    """Build the services for *flags* and run *workflow* to completion."""
    services = build_services(settings or SoloSettings(), flags)
    return asyncio.run(workflow(services, *args))
