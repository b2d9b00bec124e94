"""
Request and response models for the Conditional Container API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .registry.instance_registry import RegistryEntry
from .rules.models import ContainerConfig


class MountRequest(BaseModel):
    """Request model for mounting a container instance."""
    container_id: str = Field(..., description="Logical container id")
    row_scope: Optional[str] = Field(None, description="Row of the repeating list the copy belongs to")
    config: ContainerConfig = Field(default_factory=ContainerConfig, description="Container configuration")
    profile: Optional[Dict[str, Any]] = Field(None, description="Profile attributes, absent when signed out")
    session: Optional[Dict[str, Any]] = Field(None, description="Host session payload, used when no profile is given")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Host properties used by lookups")


class InstanceResponse(BaseModel):
    """Response model for a registered instance."""
    instance_id: str
    container_id: str
    row_scope: Optional[str]
    decision: str = Field(..., description="pending, visible or hidden")
    initialized: bool
    hidden: bool
    properties: Dict[str, Any] = Field(default_factory=dict)
    registered_at: str

    @classmethod
    def from_entry(cls, entry: RegistryEntry) -> "InstanceResponse":
        return cls(**entry.to_dict())


class MountResponse(InstanceResponse):
    """Response model for a mount."""
    diagnostics: List[str] = Field(default_factory=list, description="Preview diagnostics")


class InstanceListResponse(BaseModel):
    """Response model for instance lists."""
    instances: List[InstanceResponse]
    total: int


class DecisionResponse(BaseModel):
    """Response model for a cached decision."""
    container_id: str
    row_scope: Optional[str]
    visible: bool
    pending: bool
