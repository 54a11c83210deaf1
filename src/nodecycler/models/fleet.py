# src/nodecycler/models/fleet.py

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import UnrecognizedCreatedByError

_CREATED_BY_RE = re.compile(
    r"^(?:https://www\.googleapis\.com/compute/v1/)?"
    r"projects/(?P<project>[^/]+)/(?P<scope>regions|zones)/(?P<location>[^/]+)"
    r"/instanceGroupManagers/(?P<name>[^/]+)$"
)


class InstanceGroup(BaseModel):
    """
    A managed instance group backing the nodes of one role.

    The target size is not part of this model. It is re-read
    from the API every time it is needed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Instance group manager name")
    project: str = Field(..., description="Project id or number owning the group")
    location: str = Field(..., description="Region (or zone) of the group")
    scope: Literal["regions", "zones"] = Field("regions", description="Location kind")

    @property
    def path(self) -> str:
        return f"projects/{self.project}/{self.scope}/{self.location}/instanceGroupManagers/{self.name}"

    def __str__(self) -> str:
        return f"{self.name} ({self.location})"


class CreatedByReference(BaseModel):
    """Parsed value of an instance's 'created-by' metadata item."""

    model_config = ConfigDict(frozen=True)

    project: str
    scope: Literal["regions", "zones"]
    location: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "CreatedByReference":
        """
        Parses 'projects/<p>/regions/<r>/instanceGroupManagers/<name>'
        (or the zonal form, or the full API URL).

        Raises:
            UnrecognizedCreatedByError: If the value is empty or has any other shape.
        """
        if not value:
            raise UnrecognizedCreatedByError("Instance has no 'created-by' metadata.")
        match = _CREATED_BY_RE.match(value.strip())
        if not match:
            raise UnrecognizedCreatedByError(f"Unrecognized 'created-by' value: '{value}'")
        return cls(**match.groupdict())

    def to_instance_group(self) -> InstanceGroup:
        return InstanceGroup(name=self.name, project=self.project, location=self.location, scope=self.scope)
