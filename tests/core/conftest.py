# tests/core/conftest.py
"""
In-memory stand-ins for the cluster and the fleet, sharing one simulated
world so the orchestrator can be driven end to end.
"""

from typing import Dict, List, Optional

import pytest

from nodecycler.core.drainer import NodeDrainer
from nodecycler.core.orchestrator import CyclingOrchestrator
from nodecycler.models.cycle import DrainOutcome
from nodecycler.models.fleet import InstanceGroup
from nodecycler.models.node import Node, Role
from nodecycler.models.run import PollPolicy, RunConfig


class FakeWorld:
    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.target_sizes: Dict[Role, object] = {}
        self.spawn_zones: Dict[Role, List[str]] = {}
        self.calls: List[tuple] = []
        self._spawned = 0

    def add_nodes(self, role: Role, zones: List[str], tag: Optional[str] = None, prefix: Optional[str] = None):
        prefix = prefix or f"{role.value}-old"
        for i, zone in enumerate(zones):
            name = f"{prefix}-{i}.c.proj.internal"
            self.nodes[name] = Node(name=name, role=role, ready=True, zone=zone, region="us-central1", retiring=tag)
        self.target_sizes.setdefault(role, len(zones))
        self.spawn_zones.setdefault(role, sorted(set(zones)))

    def spawn(self, role: Role, count: int):
        zones = self.spawn_zones[role]
        for i in range(count):
            self._spawned += 1
            name = f"{role.value}-new-{self._spawned}.c.proj.internal"
            self.nodes[name] = Node(name=name, role=role, ready=True, zone=zones[i % len(zones)], region="us-central1")

    def role_nodes(self, role: Role) -> List[Node]:
        return sorted((n for n in self.nodes.values() if n.role == role), key=lambda n: n.name)


class FakeCluster:
    role_label = "role"
    retiring_label = "retiring"

    def __init__(self, world: FakeWorld):
        self.world = world
        self.drained: List[str] = []
        self.force_deleted: List[str] = []
        self.drain_outcomes: Dict[str, DrainOutcome] = {}
        self.closed = False

    def role_selector(self, role: Role) -> str:
        return f"role={role.value}"

    def fresh_selector(self, role: Role) -> str:
        return f"role={role.value},!retiring"

    @staticmethod
    def _matches(node: Node, selector: str) -> bool:
        for term in selector.split(","):
            if term == "!retiring":
                if node.retiring:
                    return False
                continue
            key, value = term.split("=")
            if key == "role" and (node.role is None or node.role.value != value):
                return False
            if key == "retiring" and node.retiring != value:
                return False
        return True

    async def list_nodes(self, selector: str) -> List[Node]:
        self.world.calls.append(("list_nodes", selector))
        return sorted((n for n in self.world.nodes.values() if self._matches(n, selector)), key=lambda n: n.name)

    async def count_nodes(self, role: Role) -> int:
        return len(await self.list_nodes(self.role_selector(role)))

    async def count_ready_fresh_nodes(self, role: Role) -> int:
        return sum(1 for n in await self.list_nodes(self.fresh_selector(role)) if n.ready)

    async def zone_distribution(self, role: Role) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for node in await self.list_nodes(self.fresh_selector(role)):
            if node.ready:
                counts[node.zone] = counts.get(node.zone, 0) + 1
        return dict(sorted(counts.items()))

    async def label_and_cordon(self, node: Node, tag: str) -> None:
        self.world.calls.append(("label_and_cordon", node.name, tag))
        current = self.world.nodes[node.name]
        self.world.nodes[node.name] = current.model_copy(update={"retiring": tag, "unschedulable": True})

    async def drain(self, node: Node, timeout: int) -> DrainOutcome:
        self.world.calls.append(("drain", node.name))
        self.drained.append(node.name)
        return self.drain_outcomes.get(node.name, DrainOutcome.DRAINED)

    async def force_delete_pods(self, node: Node) -> int:
        self.world.calls.append(("force_delete_pods", node.name))
        self.force_deleted.append(node.name)
        return 0

    async def close(self):
        self.closed = True


class FakeFleet:
    def __init__(self, world: FakeWorld):
        self.world = world
        self.resizes: List[tuple] = []
        self.deletions: List[tuple] = []
        self.stable_waits = 0
        self.closed = False

    @staticmethod
    def _role(group: InstanceGroup) -> Role:
        return Role(group.name.split("-")[0])

    async def resolve_backing_group(self, node: Node) -> InstanceGroup:
        self.world.calls.append(("resolve_backing_group", node.name))
        return InstanceGroup(name=f"{node.role.value}-group", project="proj", location="us-central1")

    async def target_size(self, group: InstanceGroup):
        self.world.calls.append(("target_size", group.name))
        return self.world.target_sizes[self._role(group)]

    async def resize(self, group: InstanceGroup, new_size: int) -> None:
        self.world.calls.append(("resize", group.name, new_size))
        self.resizes.append((group.name, new_size))
        role = self._role(group)
        self.world.spawn(role, new_size - self.world.target_sizes[role])
        self.world.target_sizes[role] = new_size

    def instance_reference(self, node: Node) -> str:
        return f"zones/{node.zone}/instances/{node.instance_name}"

    async def delete_instances(self, group: InstanceGroup, instances) -> int:
        instances = list(instances)
        self.world.calls.append(("delete_instances", group.name, instances))
        self.deletions.append((group.name, instances))
        for name, node in list(self.world.nodes.items()):
            if self.instance_reference(node) in instances:
                del self.world.nodes[name]
        self.world.target_sizes[self._role(group)] -= len(instances)
        return 1

    async def wait_until_stable(self, group: InstanceGroup) -> None:
        self.world.calls.append(("wait_until_stable", group.name))
        self.stable_waits += 1

    async def close(self):
        self.closed = True


@pytest.fixture
def world():
    return FakeWorld()


@pytest.fixture
def cluster(world):
    return FakeCluster(world)


@pytest.fixture
def fleet(world):
    return FakeFleet(world)


@pytest.fixture
def make_orchestrator(cluster, fleet):
    def _make(role: Optional[Role] = Role.WORKER, resume_tag: Optional[str] = None) -> CyclingOrchestrator:
        run = RunConfig(project="proj", role=role, resume_tag=resume_tag, poll=PollPolicy(interval=0))
        return CyclingOrchestrator(run, cluster=cluster, fleet=fleet, drainer=NodeDrainer(cluster, timeout=30))

    return _make
