# src/nodecycler/models/batch.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .node import Role

TAG_FORMAT = "%Y%m%d%H%M%S"


class RetirementBatch(BaseModel):
    """
    All nodes of one role labeled with a single cycling run's timestamp.

    A batch is immutable: nodes are never added to or removed from an existing
    tag. A new run always mints a fresh tag, and a crashed run is resumed by
    handing its tag back.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Role
    tag: str = Field(..., min_length=1, max_length=63)

    @field_validator("tag")
    @classmethod
    def _valid_label_value(cls, value: str) -> str:
        if not all(c.isalnum() or c in "-_." for c in value) or not value[0].isalnum() or not value[-1].isalnum():
            raise ValueError(f"'{value}' is not a valid label value.")
        return value

    @classmethod
    def mint(cls, role: Role, now: Optional[datetime] = None) -> "RetirementBatch":
        now = now or datetime.now(timezone.utc)
        return cls(role=role, tag=now.strftime(TAG_FORMAT))

    def selector(self, role_label: str, retiring_label: str) -> str:
        return f"{role_label}={self.role.value},{retiring_label}={self.tag}"
