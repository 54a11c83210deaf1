# src/nodecycler/gateways/fleet.py
"""
Reads and writes against the Compute Engine managed instance group API.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from ..core.config import config
from ..core.exceptions import PreconditionError
from ..core.poller import wait_until
from ..core.retry import RetryExecutor
from ..models.fleet import CreatedByReference, InstanceGroup
from ..models.node import Node
from ..models.run import PollPolicy
from ..utils.http_client import BearerTokenAuth, get_async_http_client

logger = logging.getLogger(__name__)

CREATED_BY_KEY = "created-by"


class FleetGateway:
    """
    Compute Engine access for the cycler. Every request goes through the
    RetryExecutor; non-2xx responses raise httpx.HTTPStatusError and are retried.
    The bearer token is re-read from `token_source` when the API answers 401.
    """

    def __init__(
        self,
        retry: RetryExecutor,
        project: str,
        poll: Optional[PollPolicy] = None,
        api_url: Optional[str] = None,
        token_source: Optional[Callable[[], Optional[str]]] = None,
        batch_limit: Optional[int] = None,
    ):
        self.retry = retry
        self.project = project
        self.poll = poll or PollPolicy()
        self.api_url = (api_url or config.COMPUTE_API_URL).rstrip("/")
        self.token_source = token_source or config.read_access_token
        self.batch_limit = batch_limit or config.DELETE_INSTANCES_BATCH_LIMIT
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = get_async_http_client(
                base_url=self.api_url, auth=BearerTokenAuth(self.token_source), verify=config.COMPUTE_VERIFY_CERTS
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("FleetGateway HTTP client closed.")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = await self._ensure_client().request(method, f"/{path}", **kwargs)
        response.raise_for_status()
        return response.json() if response.content else {}

    async def _get(self, path: str) -> Dict[str, Any]:
        return await self.retry.call(f"GET {path}", self._request, "GET", path)

    async def _post(self, path: str, **kwargs) -> Dict[str, Any]:
        return await self.retry.call(f"POST {path}", self._request, "POST", path, **kwargs)

    # --- Instances ---

    async def describe_instance(self, zone: str, instance_name: str) -> Dict[str, Any]:
        return await self._get(f"projects/{self.project}/zones/{zone}/instances/{instance_name}")

    async def resolve_backing_group(self, node: Node) -> InstanceGroup:
        """
        Maps a node to the instance group manager that created its instance,
        by reading the instance's 'created-by' metadata.

        Raises:
            PreconditionError: If the node has no zone label.
            UnrecognizedCreatedByError: If 'created-by' is missing or malformed.
        """
        if not node.zone:
            raise PreconditionError(f"Node '{node.name}' has no zone label; cannot locate its instance.")

        instance = await self.describe_instance(node.zone, node.instance_name)
        items = (instance.get("metadata") or {}).get("items") or []
        created_by = next((item.get("value") for item in items if item.get("key") == CREATED_BY_KEY), None)
        group = CreatedByReference.parse(created_by).to_instance_group()
        logger.info("Node '%s' (instance '%s') is managed by group %s.", node.name, node.instance_name, group)
        return group

    # --- Instance group manager ---

    async def describe_group(self, group: InstanceGroup) -> Dict[str, Any]:
        return await self._get(group.path)

    async def target_size(self, group: InstanceGroup) -> Any:
        """
        Reads the group's current target size straight from the API. The raw
        value is returned unvalidated.
        """
        return (await self.describe_group(group)).get("targetSize")

    async def resize(self, group: InstanceGroup, new_size: int) -> None:
        """Requests a new target size. Acceptance of the request is all this waits for."""
        await self._post(f"{group.path}/resize", params={"size": new_size})
        logger.info("Requested resize of %s to %d instance(s).", group, new_size)

    def instance_reference(self, node: Node) -> str:
        if not node.zone:
            raise PreconditionError(f"Node '{node.name}' has no zone label; cannot name its instance.")
        return f"zones/{node.zone}/instances/{node.instance_name}"

    async def delete_instances(self, group: InstanceGroup, instances: Sequence[str]) -> int:
        """
        Deletes exactly the named instances from the group, one request per
        `batch_limit` instances. The group's target size shrinks accordingly;
        nothing else is removed or rebalanced.

        Returns:
            int: Number of deletion requests issued.
        """
        instances = list(instances)
        requests = 0
        for start in range(0, len(instances), self.batch_limit):
            chunk: List[str] = instances[start : start + self.batch_limit]
            await self._post(f"{group.path}/deleteInstances", json={"instances": chunk})
            requests += 1
            logger.info("Requested deletion of %d instance(s) from %s.", len(chunk), group)
        return requests

    async def is_stable(self, group: InstanceGroup) -> bool:
        status = (await self.describe_group(group)).get("status") or {}
        return bool(status.get("isStable"))

    async def wait_until_stable(self, group: InstanceGroup) -> None:
        """Blocks until the group reports no pending create or delete actions."""
        await wait_until(
            lambda: self.is_stable(group),
            lambda stable: stable,
            self.poll,
            description=f"Instance group {group} stability",
            expected="True",
        )
