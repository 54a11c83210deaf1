# src/nodecycler/models/cycle.py

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .fleet import InstanceGroup
from .node import Role


class CycleState(str, Enum):
    IDLE = "idle"
    LABELING = "labeling"
    RESOLVING_GROUP = "resolving_group"
    SCALING = "scaling"
    AWAITING_SCALE_UP = "awaiting_scale_up"
    ZONE_BALANCE_CHECK = "zone_balance_check"
    DRAINING = "draining"
    TERMINATING = "terminating"
    AWAITING_SCALE_DOWN = "awaiting_scale_down"
    DONE = "done"


class DrainOutcome(str, Enum):
    """Result of a cooperative drain."""

    DRAINED = "drained"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"


class DrainState(str, Enum):
    PENDING = "pending"
    DRAINING = "draining"
    DRAINED = "drained"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    FORCE_EVICTING = "force_evicting"
    FORCE_EVICTED = "force_evicted"


class CycleReport(BaseModel):
    """What happened to one role during a run, for the end-of-run summary."""

    role: Role
    resumed: bool = False
    tag: Optional[str] = None
    state: CycleState = CycleState.IDLE
    group: Optional[InstanceGroup] = None
    original_size: Optional[int] = None
    retiring_nodes: List[str] = Field(default_factory=list)
    drained: Dict[str, DrainState] = Field(default_factory=dict)
    deleted_instances: List[str] = Field(default_factory=list)
    zone_distribution: Dict[str, int] = Field(default_factory=dict)
