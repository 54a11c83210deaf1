# src/nodecycler/models/node.py

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Node roles that can be cycled, in the order a full run cycles them."""

    MASTER = "master"
    WORKER = "worker"


# Control plane first, then the nodes it schedules onto.
CYCLE_ORDER = (Role.MASTER, Role.WORKER)


class Node(BaseModel):
    """
    Pydantic model for a Kubernetes node as seen by the cycler.

    Attributes:
        name: Node name (the instance hostname, possibly with a domain suffix)
        role: Role label value
        ready: Whether the node's Ready condition is True
        zone: Availability zone
        region: Cloud region
        retiring: Retirement tag, if the node belongs to a retirement batch
        unschedulable: Whether the node is cordoned
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Node name")
    role: Optional[Role] = Field(None, description="Node role")
    ready: bool = Field(False, description="Ready condition")
    zone: Optional[str] = Field(None, description="Availability zone")
    region: Optional[str] = Field(None, description="Cloud region")
    retiring: Optional[str] = Field(None, description="Retirement tag")
    unschedulable: bool = Field(False, description="Cordoned")

    @property
    def instance_name(self) -> str:
        """Compute instance name: the node name without its domain suffix."""
        return self.name.split(".", 1)[0]
