"""
Instance registry for rendered conditional containers.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from shared.logging import get_logger
from shared.metrics import MetricsCollector

CacheKey = Tuple[str, Optional[str]]


@dataclass(frozen=True)
class ContainerIdentity:
    """Logical id of a container plus the row it was rendered for, if any."""
    container_id: str
    row_scope: Optional[str] = None

    def __post_init__(self):
        # Ids come from markup attributes and HTTP paths as well as from code
        object.__setattr__(self, "container_id", str(self.container_id))
        if self.row_scope is not None:
            object.__setattr__(self, "row_scope", str(self.row_scope))

    @property
    def is_scoped(self) -> bool:
        return self.row_scope is not None

    @property
    def cache_key(self) -> CacheKey:
        return (self.container_id, self.row_scope)


@dataclass(frozen=True)
class Pending:
    """Decision not computed yet."""


@dataclass(frozen=True)
class Resolved:
    """Decision computed."""
    visible: bool


Decision = Union[Pending, Resolved]
PENDING = Pending()


class RegistrationRole(str, Enum):
    """What a newly registered instance has to do next."""
    OWNER = "owner"
    FOLLOWER = "follower"
    CACHED = "cached"


@dataclass
class RegistryEntry:
    """One rendered container instance."""
    instance_id: str
    identity: ContainerIdentity
    element: Any = None
    properties: Dict[str, Any] = field(default_factory=dict)
    decision: Decision = PENDING
    initialized: bool = False
    hidden: bool = True
    registered_at: datetime = field(default_factory=datetime.now)

    @property
    def container_id(self) -> str:
        return self.identity.container_id

    @property
    def row_scope(self) -> Optional[str]:
        return self.identity.row_scope

    @property
    def visible(self) -> bool:
        return isinstance(self.decision, Resolved) and self.decision.visible

    @property
    def pending(self) -> bool:
        return isinstance(self.decision, Pending)

    def lookup_value(self, key: str) -> Any:
        if key in ("instance_id", "container_id", "row_scope", "initialized", "hidden", "visible", "pending"):
            return getattr(self, key)
        return self.properties.get(key)

    def matches(self, expected: Mapping[str, Any]) -> bool:
        """Whether every expected property has the given value."""
        for key, value in expected.items():
            actual = self.lookup_value(key)
            if key in ("container_id", "row_scope") and value is not None:
                value = str(value)
            if actual != value:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "container_id": self.container_id,
            "row_scope": self.row_scope,
            "decision": "pending" if self.pending else ("visible" if self.visible else "hidden"),
            "initialized": self.initialized,
            "hidden": self.hidden,
            "properties": dict(self.properties),
            "registered_at": self.registered_at.isoformat()
        }


@dataclass
class RegistryHandle:
    """Returned by register(); tells the caller whether to evaluate."""
    entry: RegistryEntry
    role: RegistrationRole

    @property
    def is_owner(self) -> bool:
        return self.role == RegistrationRole.OWNER


Activator = Callable[[RegistryEntry], Awaitable[None]]


class InstanceRegistry:
    """
    Tracks rendered containers and their visibility decisions.

    The first instance registered for a non-scoped logical id owns the
    evaluation. Instances registered while the owner is still evaluating
    stay pending until the owner resolves; instances registered afterwards
    get the cached decision replayed. Row-scoped instances always evaluate
    for themselves and never share a decision.
    """

    def __init__(self, activator: Optional[Activator] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.activator = activator
        self.metrics = metrics
        self.logger = get_logger("conditional_container.instance_registry")

        self.entries: Dict[str, RegistryEntry] = {}  # instance_id -> entry
        self.container_entries: Dict[str, List[RegistryEntry]] = {}  # container_id -> entries
        self.decisions: Dict[CacheKey, Decision] = {}
        self.owners: Dict[CacheKey, str] = {}  # non-scoped key -> owner instance_id

    def register(self, identity: ContainerIdentity, element: Any = None,
                 properties: Optional[Dict[str, Any]] = None) -> RegistryHandle:
        """Register a freshly mounted instance."""
        entry = RegistryEntry(
            instance_id=str(uuid.uuid4()),
            identity=identity,
            element=element,
            properties=dict(properties or {})
        )
        self.entries[entry.instance_id] = entry
        self.container_entries.setdefault(identity.container_id, []).append(entry)

        key = identity.cache_key
        if identity.is_scoped:
            role = RegistrationRole.OWNER
            self.decisions.setdefault(key, PENDING)
        elif isinstance(self.decisions.get(key), Resolved):
            role = RegistrationRole.CACHED
        elif key in self.owners:
            role = RegistrationRole.FOLLOWER
        else:
            role = RegistrationRole.OWNER
            self.owners[key] = entry.instance_id
            self.decisions[key] = PENDING

        self.logger.debug(
            "Container registered",
            instance_id=entry.instance_id,
            container_id=identity.container_id,
            row_scope=identity.row_scope,
            role=role.value
        )

        return RegistryHandle(entry=entry, role=role)

    async def resolve(self, handle: RegistryHandle, visible: bool) -> None:
        """Cache the owner's decision, then apply it to every instance sharing it."""
        if not handle.is_owner:
            raise ValueError("Only the owner instance can resolve a decision")

        identity = handle.entry.identity
        decision = Resolved(visible=visible)
        self.decisions[identity.cache_key] = decision

        self.logger.info(
            "Decision cached",
            container_id=identity.container_id,
            row_scope=identity.row_scope,
            visible=visible
        )

        if identity.is_scoped:
            targets = [handle.entry]
        else:
            targets = self._shared_entries(identity.container_id)

        for entry in targets:
            await self._settle(entry, decision)

    async def apply_cached(self, handle: RegistryHandle) -> None:
        """Replay the cached decision to an instance registered after it was computed."""
        decision = self.decisions.get(handle.entry.identity.cache_key)
        if not isinstance(decision, Resolved):
            raise ValueError("No cached decision to replay")

        if self.metrics:
            self.metrics.increment_counter("container_cache_replays_total")

        await self._settle(handle.entry, decision)

    def resolve_decision(self, identity: ContainerIdentity) -> Optional[Decision]:
        """Cached decision for an identity, or None when it never registered."""
        return self.decisions.get(identity.cache_key)

    def get_decision(self, container_id: Any, row_scope: Optional[Any] = None) -> bool:
        """Visibility for an identity; pending or unknown reads as hidden."""
        decision = self.resolve_decision(ContainerIdentity(container_id, row_scope))
        return isinstance(decision, Resolved) and decision.visible

    def instances(self, container_id: Optional[Any] = None) -> List[RegistryEntry]:
        """Registered instances in registration order."""
        if container_id is None:
            return list(self.entries.values())
        return list(self.container_entries.get(str(container_id), []))

    def get_stats(self) -> Dict[str, Any]:
        resolved = [d for d in self.decisions.values() if isinstance(d, Resolved)]
        return {
            "instances": len(self.entries),
            "containers": len(self.container_entries),
            "initialized": len([e for e in self.entries.values() if e.initialized]),
            "decisions_cached": len(resolved),
            "decisions_pending": len(self.decisions) - len(resolved),
            "visible_decisions": len([d for d in resolved if d.visible])
        }

    def clear(self):
        """Forget every instance and decision."""
        self.entries.clear()
        self.container_entries.clear()
        self.decisions.clear()
        self.owners.clear()
        self.logger.info("Instance registry cleared")

    def _shared_entries(self, container_id: str) -> List[RegistryEntry]:
        return [
            entry for entry in self.container_entries.get(container_id, [])
            if not entry.identity.is_scoped
        ]

    async def _settle(self, entry: RegistryEntry, decision: Resolved) -> None:
        if entry.initialized:
            return

        # Flag first so an activator that re-enters the registry cannot settle twice
        entry.decision = decision
        entry.initialized = True

        if not decision.visible:
            return

        entry.hidden = False
        if self.activator is None:
            return

        try:
            await self.activator(entry)
        except Exception as e:
            self.logger.error(
                "Error initializing children",
                instance_id=entry.instance_id,
                container_id=entry.container_id,
                error=str(e)
            )
