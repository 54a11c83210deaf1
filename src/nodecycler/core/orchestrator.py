# src/nodecycler/core/orchestrator.py
"""
The node-cycling state machine.

For one role a run goes through

    idle -> labeling -> resolving_group -> scaling -> awaiting_scale_up
         -> zone_balance_check -> draining -> terminating
         -> awaiting_scale_down -> done

Each state is a handler that does its work and returns the next state. A
failure in any handler aborts the run with a CyclingError naming the state.
Nodes are always drained one at a time.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ..gateways.cluster import ClusterGateway
from ..gateways.fleet import FleetGateway
from ..models.batch import RetirementBatch
from ..models.cycle import CycleReport, CycleState
from ..models.fleet import InstanceGroup
from ..models.node import CYCLE_ORDER, Node, Role
from ..models.run import RunConfig
from .drainer import NodeDrainer
from .exceptions import CyclingError, InvalidGroupSizeError, NodeCyclerError, PreconditionError, ZoneImbalanceError
from .poller import wait_until

logger = logging.getLogger(__name__)

REQUIRED_ZONES = 3


def check_zone_balance(distribution: Dict[str, int]) -> None:
    """
    Raises ZoneImbalanceError unless exactly three zones are populated and
    all hold the same number of nodes.
    """
    populated = {zone: count for zone, count in distribution.items() if count > 0}
    if len(populated) != REQUIRED_ZONES or len(set(populated.values())) != 1:
        raise ZoneImbalanceError(distribution)


def parse_target_size(value) -> int:
    """Validates a target size read from the fleet manager."""
    if isinstance(value, bool):
        raise InvalidGroupSizeError(f"Instance group target size is not numeric: {value!r}")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise InvalidGroupSizeError(f"Instance group target size is not numeric: {value!r}")
    if value <= 0:
        raise InvalidGroupSizeError(f"Instance group target size must be positive, got {value}.")
    return value


class _Cycle:
    """Working state of one role's cycle."""

    def __init__(self, role: Role, batch: Optional[RetirementBatch] = None, resumed: bool = False):
        self.role = role
        self.batch = batch
        self.nodes: List[Node] = []
        self.group: Optional[InstanceGroup] = None
        self.original_size: Optional[int] = None
        self.report = CycleReport(role=role, resumed=resumed, tag=batch.tag if batch else None)


class CyclingOrchestrator:
    """
    Cycles all nodes of a role: tag, double capacity, wait for the new nodes,
    drain the old ones, delete their instances, wait for the count to settle.
    """

    def __init__(self, run: RunConfig, cluster: ClusterGateway, fleet: FleetGateway, drainer: NodeDrainer):
        self.run_config = run
        self.cluster = cluster
        self.fleet = fleet
        self.drainer = drainer
        self.state = CycleState.IDLE
        self._handlers: Dict[CycleState, Callable[[_Cycle], Awaitable[CycleState]]] = {
            CycleState.LABELING: self._label,
            CycleState.RESOLVING_GROUP: self._resolve_group,
            CycleState.SCALING: self._scale_up,
            CycleState.AWAITING_SCALE_UP: self._await_scale_up,
            CycleState.ZONE_BALANCE_CHECK: self._check_zone_balance,
            CycleState.DRAINING: self._drain,
            CycleState.TERMINATING: self._terminate,
            CycleState.AWAITING_SCALE_DOWN: self._await_scale_down,
        }

    # --- Public API ---

    async def run(self) -> List[CycleReport]:
        """Resumes a batch when a tag was given, otherwise cycles every requested role in order."""
        if self.run_config.resume_tag:
            return [await self.resume(self.run_config.role, self.run_config.resume_tag)]
        if self.run_config.role is None:
            return await self.cycle_all()
        return [await self.cycle(self.run_config.role)]

    async def cycle_all(self) -> List[CycleReport]:
        """Cycles masters, then workers. A failure stops the run before the next role."""
        reports = []
        for role in CYCLE_ORDER:
            reports.append(await self.cycle(role))
        return reports

    async def cycle(self, role: Role) -> CycleReport:
        """Runs the full state machine for one role."""
        logger.info("=== Cycling %s nodes ===", role.value)
        return await self._execute(_Cycle(role), CycleState.LABELING)

    async def resume(self, role: Role, tag: str) -> CycleReport:
        """
        Re-enters draining for a batch tagged by an earlier run. Nothing is
        labeled, scaled or terminated.
        """
        if role is None:
            raise PreconditionError("Resuming a batch requires a role.")
        batch = RetirementBatch(role=role, tag=tag)
        cycle = _Cycle(role, batch=batch, resumed=True)
        logger.info("=== Resuming %s batch %s ===", role.value, tag)

        self.state = CycleState.IDLE
        self._enter(cycle, CycleState.DRAINING)
        try:
            cycle.nodes = await self._await_nodes(batch.selector(self.cluster.role_label, self.cluster.retiring_label))
            cycle.report.retiring_nodes = [node.name for node in cycle.nodes]
            await self._drain(cycle)
        except NodeCyclerError as e:
            raise CyclingError(role, self.state, e) from e
        self._enter(cycle, CycleState.DONE)
        return cycle.report

    async def close(self):
        await self.cluster.close()
        await self.fleet.close()

    # --- State machine ---

    def _enter(self, cycle: _Cycle, state: CycleState) -> None:
        logger.info("[%s] %s -> %s", cycle.role.value, self.state.value, state.value)
        self.state = state
        cycle.report.state = state

    async def _execute(self, cycle: _Cycle, first: CycleState) -> CycleReport:
        self.state = CycleState.IDLE
        next_state = first
        while next_state != CycleState.DONE:
            self._enter(cycle, next_state)
            try:
                next_state = await self._handlers[next_state](cycle)
            except NodeCyclerError as e:
                logger.error("[%s] Failed in state %s: %s", cycle.role.value, self.state.value, e)
                raise CyclingError(cycle.role, self.state, e) from e
        self._enter(cycle, CycleState.DONE)
        logger.info("=== %s nodes cycled ===", cycle.role.value.capitalize())
        return cycle.report

    async def _await_nodes(self, selector: str) -> List[Node]:
        """Polls until the selector matches at least one node; an empty read is never final."""
        return await wait_until(
            lambda: self.cluster.list_nodes(selector),
            lambda nodes: len(nodes) > 0,
            self.run_config.poll,
            description=f"Nodes matching '{selector}'",
            expected="at least 1",
        )

    async def _label(self, cycle: _Cycle) -> CycleState:
        nodes = await self._await_nodes(self.cluster.role_selector(cycle.role))
        tagged = sorted({node.retiring for node in nodes if node.retiring})
        if tagged:
            raise PreconditionError(
                f"{cycle.role.value} nodes already belong to retirement batch(es) {tagged}; resume or clear them first."
            )

        cycle.batch = RetirementBatch.mint(cycle.role)
        cycle.nodes = nodes
        cycle.report.tag = cycle.batch.tag
        cycle.report.retiring_nodes = [node.name for node in nodes]
        for node in nodes:
            await self.cluster.label_and_cordon(node, cycle.batch.tag)

        logger.warning(
            "Tagged %d %s node(s) with %s=%s. Pass '--role %s --resume %s' to resume draining if this run stops.",
            len(nodes),
            cycle.role.value,
            self.cluster.retiring_label,
            cycle.batch.tag,
            cycle.role.value,
            cycle.batch.tag,
        )
        return CycleState.RESOLVING_GROUP

    async def _resolve_group(self, cycle: _Cycle) -> CycleState:
        node = cycle.nodes[0]
        logger.info("Resolving instance group from node '%s' (zone=%s, region=%s).", node.name, node.zone, node.region)
        cycle.group = await self.fleet.resolve_backing_group(node)
        cycle.report.group = cycle.group
        return CycleState.SCALING

    async def _scale_up(self, cycle: _Cycle) -> CycleState:
        size = parse_target_size(await self.fleet.target_size(cycle.group))
        cycle.original_size = size
        cycle.report.original_size = size
        logger.info("Instance group %s has target size %d; doubling to %d.", cycle.group, size, size * 2)
        await self.fleet.resize(cycle.group, size * 2)
        return CycleState.AWAITING_SCALE_UP

    async def _await_scale_up(self, cycle: _Cycle) -> CycleState:
        await wait_until(
            lambda: self.cluster.count_ready_fresh_nodes(cycle.role),
            lambda count: count >= cycle.original_size,
            self.run_config.poll,
            description=f"Ready new {cycle.role.value} nodes",
            expected=f">= {cycle.original_size}",
        )
        return CycleState.ZONE_BALANCE_CHECK

    async def _check_zone_balance(self, cycle: _Cycle) -> CycleState:
        distribution = await self.cluster.zone_distribution(cycle.role)
        cycle.report.zone_distribution = distribution
        logger.info("Zone distribution of new %s nodes: %s", cycle.role.value, distribution)
        check_zone_balance(distribution)
        return CycleState.DRAINING

    async def _drain(self, cycle: _Cycle) -> CycleState:
        total = len(cycle.nodes)
        for index, node in enumerate(cycle.nodes, start=1):
            logger.info("Draining node %d/%d: %s", index, total, node.name)
            cycle.report.drained[node.name] = await self.drainer.drain(node)
        logger.info("Drained %d %s node(s).", total, cycle.role.value)
        return CycleState.TERMINATING

    async def _terminate(self, cycle: _Cycle) -> CycleState:
        instances = [self.fleet.instance_reference(node) for node in cycle.nodes]
        logger.info("Deleting %d instance(s) from %s.", len(instances), cycle.group)
        await self.fleet.delete_instances(cycle.group, instances)
        cycle.report.deleted_instances = instances
        await self.fleet.wait_until_stable(cycle.group)
        return CycleState.AWAITING_SCALE_DOWN

    async def _await_scale_down(self, cycle: _Cycle) -> CycleState:
        await wait_until(
            lambda: self.cluster.count_nodes(cycle.role),
            lambda count: count == cycle.original_size,
            self.run_config.poll,
            description=f"Live {cycle.role.value} nodes",
            expected=f"== {cycle.original_size}",
        )
        return CycleState.DONE
