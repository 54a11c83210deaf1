# src/nodecycler/core/drainer.py

import logging

from ..gateways.cluster import ClusterGateway
from ..models.cycle import DrainOutcome, DrainState
from ..models.node import Node

logger = logging.getLogger(__name__)

_OUTCOME_STATES = {
    DrainOutcome.DRAINED: DrainState.DRAINED,
    DrainOutcome.TIMED_OUT: DrainState.TIMED_OUT,
    DrainOutcome.ERRORED: DrainState.ERRORED,
}


class NodeDrainer:
    """
    Drains one node, falling back to forced pod deletion when the cooperative
    drain times out or errors.

    Pending -> Draining -> {Drained | TimedOut | Errored}, then for the last
    two ForceEvicting -> ForceEvicted. The node still exists afterwards; its
    instance is removed by the fleet manager.
    """

    def __init__(self, cluster: ClusterGateway, timeout: int):
        self.cluster = cluster
        self.timeout = timeout

    def _enter(self, node: Node, state: DrainState) -> DrainState:
        logger.info("Node '%s': %s", node.name, state.value)
        return state

    async def drain(self, node: Node) -> DrainState:
        self._enter(node, DrainState.PENDING)
        self._enter(node, DrainState.DRAINING)
        outcome = await self.cluster.drain(node, self.timeout)
        state = self._enter(node, _OUTCOME_STATES[outcome])
        if state == DrainState.DRAINED:
            return state

        logger.warning("Drain of node '%s' ended as %s; force-deleting its pods.", node.name, outcome.value)
        self._enter(node, DrainState.FORCE_EVICTING)
        # Failures here propagate: the gateway already retried the calls.
        await self.cluster.force_delete_pods(node)
        return self._enter(node, DrainState.FORCE_EVICTED)
