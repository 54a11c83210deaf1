# src/nodecycler/gateways/cluster.py
"""
Reads and writes against the Kubernetes control plane: listing, labeling,
cordoning and draining nodes, and deleting pods.
"""

import asyncio
import logging
from collections import Counter
from typing import Dict, List, Optional

import aiohttp
from kubernetes_asyncio import client
from kubernetes_asyncio.client.rest import ApiException

from ..core.config import config
from ..core.exceptions import ConfigurationError
from ..core.k8s_client import get_core_v1_api
from ..core.retry import RetryExecutor
from ..models.cycle import DrainOutcome
from ..models.node import Node, Role

logger = logging.getLogger(__name__)

ZONE_LABELS = ("topology.kubernetes.io/zone", "failure-domain.beta.kubernetes.io/zone")
REGION_LABELS = ("topology.kubernetes.io/region", "failure-domain.beta.kubernetes.io/region")
MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"

# Failures of a cooperative drain that end it as ERRORED instead of aborting the run.
DRAIN_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


def _first_label(labels: dict, keys) -> Optional[str]:
    for key in keys:
        if labels.get(key):
            return labels[key]
    return None


def _is_daemon_pod(pod: client.V1Pod) -> bool:
    if not pod.metadata or not pod.metadata.owner_references:
        return False
    return any(owner.kind == "DaemonSet" for owner in pod.metadata.owner_references)


def _is_mirror_pod(pod: client.V1Pod) -> bool:
    annotations = (pod.metadata and pod.metadata.annotations) or {}
    return MIRROR_POD_ANNOTATION in annotations


def _is_evictable(pod: client.V1Pod) -> bool:
    return not (_is_daemon_pod(pod) or _is_mirror_pod(pod))


class ClusterGateway:
    """
    Kubernetes access for the cycler.

    Every call except the cooperative drain goes through the RetryExecutor;
    drain failures are reported as a DrainOutcome instead of raising.
    """

    def __init__(
        self,
        retry: RetryExecutor,
        context: Optional[str] = None,
        role_label: Optional[str] = None,
        retiring_label: Optional[str] = None,
        drain_poll_seconds: Optional[float] = None,
    ):
        self.retry = retry
        self.context = context
        self.role_label = role_label or config.NODE_ROLE_LABEL
        self.retiring_label = retiring_label or config.RETIRING_LABEL
        self.drain_poll_seconds = drain_poll_seconds if drain_poll_seconds is not None else config.DRAIN_POLL_SECONDS
        self._core = None

    async def _ensure_client(self) -> client.CoreV1Api:
        """
        Lazily initialize the Kubernetes client using the centralized loader.
        """
        if self._core:
            return self._core

        self._core = await get_core_v1_api(self.context)
        if not self._core:
            raise ConfigurationError(f"Kubernetes client could not be configured (context={self.context}).")
        return self._core

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._core:
            await self._core.api_client.close()
            self._core = None
        logger.debug("ClusterGateway Kubernetes client closed.")

    # --- Selectors ---

    def role_selector(self, role: Role) -> str:
        return f"{self.role_label}={role.value}"

    def fresh_selector(self, role: Role) -> str:
        """Selects nodes of the role that do not belong to any retirement batch."""
        return f"{self.role_label}={role.value},!{self.retiring_label}"

    # --- Node reads ---

    def _to_node(self, v1node: client.V1Node) -> Node:
        labels = v1node.metadata.labels or {}
        try:
            role = Role(labels.get(self.role_label))
        except ValueError:
            role = None

        ready = False
        conditions = (v1node.status and v1node.status.conditions) or []
        for condition in conditions:
            if condition.type == "Ready":
                ready = condition.status == "True"

        return Node(
            name=v1node.metadata.name,
            role=role,
            ready=ready,
            zone=_first_label(labels, ZONE_LABELS),
            region=_first_label(labels, REGION_LABELS),
            retiring=labels.get(self.retiring_label),
            unschedulable=bool(v1node.spec and v1node.spec.unschedulable),
        )

    async def _list_nodes(self, selector: str) -> List[Node]:
        core = await self._ensure_client()
        node_list = await core.list_node(label_selector=selector, watch=False)
        return [self._to_node(item) for item in node_list.items]

    async def list_nodes(self, selector: str) -> List[Node]:
        """
        Lists nodes matching a label selector, sorted by name.

        An empty list is returned as-is; callers that need nodes must poll.
        """
        nodes = await self.retry.call(f"list nodes ({selector})", self._list_nodes, selector)
        logger.debug("Selector '%s' matched %d node(s).", selector, len(nodes))
        return sorted(nodes, key=lambda n: n.name)

    async def count_nodes(self, role: Role) -> int:
        """All node objects of the role, ready or not, retiring or not."""
        return len(await self.list_nodes(self.role_selector(role)))

    async def count_ready_fresh_nodes(self, role: Role) -> int:
        """Ready nodes of the role that carry no retirement tag."""
        nodes = await self.list_nodes(self.fresh_selector(role))
        return sum(1 for node in nodes if node.ready)

    async def zone_distribution(self, role: Role) -> Dict[str, int]:
        """Counts Ready, non-retiring nodes of the role per availability zone."""
        nodes = await self.list_nodes(self.fresh_selector(role))
        counts = Counter(node.zone or "unknown" for node in nodes if node.ready)
        return dict(sorted(counts.items()))

    # --- Node writes ---

    async def _label_and_cordon(self, node_name: str, tag: str) -> None:
        core = await self._ensure_client()
        body = {
            "metadata": {"labels": {self.retiring_label: tag}},
            "spec": {"unschedulable": True},
        }
        await core.patch_node(node_name, body)

    async def label_and_cordon(self, node: Node, tag: str) -> None:
        """Sets the retirement label (overwriting) and cordons the node. Idempotent."""
        await self.retry.call(f"label and cordon {node.name}", self._label_and_cordon, node.name, tag)
        logger.info("Node '%s' labeled %s=%s and cordoned.", node.name, self.retiring_label, tag)

    # --- Pods ---

    async def _list_pods_on_node(self, node_name: str) -> List[client.V1Pod]:
        core = await self._ensure_client()
        pod_list = await core.list_pod_for_all_namespaces(field_selector=f"spec.nodeName={node_name}", watch=False)
        return list(pod_list.items)

    async def _evict(self, pod: client.V1Pod) -> None:
        core = await self._ensure_client()
        body = client.V1Eviction(
            metadata=client.V1ObjectMeta(name=pod.metadata.name, namespace=pod.metadata.namespace),
        )
        try:
            await core.create_namespaced_pod_eviction(
                name=pod.metadata.name, namespace=pod.metadata.namespace, body=body
            )
        except ApiException as e:
            # 404: already gone. 429: blocked by a disruption budget, tried again on the next pass.
            if e.status == 404:
                return
            if e.status == 429:
                logger.info("Eviction of %s/%s blocked, will retry.", pod.metadata.namespace, pod.metadata.name)
                return
            raise

    async def drain(self, node: Node, timeout: int) -> DrainOutcome:
        """
        Evicts every pod on the node that is not a DaemonSet or mirror pod
        (pods with emptyDir volumes included, their local data is lost) and
        waits for them to be gone, for at most `timeout` seconds.

        An API or transport error ends the drain as ERRORED.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        logger.info("Draining node '%s' (timeout %ss)...", node.name, timeout)
        try:
            while True:
                remaining = [p for p in await self._list_pods_on_node(node.name) if _is_evictable(p)]
                if not remaining:
                    logger.info("Node '%s' drained.", node.name)
                    return DrainOutcome.DRAINED
                if loop.time() >= deadline:
                    logger.warning("Drain of node '%s' timed out with %d pod(s) left.", node.name, len(remaining))
                    return DrainOutcome.TIMED_OUT
                for pod in remaining:
                    if pod.metadata.deletion_timestamp is None:
                        await self._evict(pod)
                await asyncio.sleep(min(self.drain_poll_seconds, max(deadline - loop.time(), 0)))
        except DRAIN_ERRORS as e:
            logger.error("Error while draining node '%s': %s", node.name, e)
            return DrainOutcome.ERRORED

    async def _delete_pod(self, name: str, namespace: str) -> None:
        core = await self._ensure_client()
        try:
            await core.delete_namespaced_pod(
                name, namespace, body=client.V1DeleteOptions(grace_period_seconds=0), grace_period_seconds=0
            )
        except ApiException as e:
            # Already gone counts as deleted.
            if e.status != 404:
                raise

    async def force_delete_pods(self, node: Node) -> int:
        """
        Deletes every pod scheduled on the node, in all namespaces, without a
        grace period. A node with no pods left is a no-op.

        Returns:
            int: Number of pods deleted, including pods that were already gone.
        """
        pods = await self.retry.call(f"list pods on {node.name}", self._list_pods_on_node, node.name)
        deleted = 0
        for pod in pods:
            name, namespace = pod.metadata.name, pod.metadata.namespace
            await self.retry.call(f"delete pod {namespace}/{name}", self._delete_pod, name, namespace)
            deleted += 1
        logger.info("Force-deleted %d pod(s) from node '%s'.", deleted, node.name)
        return deleted
