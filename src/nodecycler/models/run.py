# src/nodecycler/models/run.py
"""
Run configuration passed explicitly to every component of a cycling run.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .node import CYCLE_ORDER, Role


class PollPolicy(BaseModel):
    """How a convergence wait observes the cluster: fixed interval, optional hard deadline."""

    model_config = ConfigDict(frozen=True)

    interval: float = Field(32.0, ge=0, description="Seconds between observations")
    deadline: Optional[float] = Field(None, gt=0, description="Give up after this many seconds; None waits forever")


class RunConfig(BaseModel):
    """Everything a cycling run needs to know, resolved once before the run starts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    project: str
    context: Optional[str] = None
    role: Optional[Role] = None
    resume_tag: Optional[str] = None
    drain_timeout: int = Field(300, gt=0)
    poll: PollPolicy = Field(default_factory=PollPolicy)

    @property
    def roles(self) -> list[Role]:
        """Roles to cycle, control plane first when no role was given."""
        if self.role is not None:
            return [self.role]
        return list(CYCLE_ORDER)
