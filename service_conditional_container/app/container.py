"""
Mount flow for conditional containers.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from shared.logging import get_logger, set_container_context
from shared.metrics import MetricsCollector
from .profile.resolver import ProfileSource
from .registry.instance_registry import (
    ContainerIdentity, InstanceRegistry, RegistryEntry, RegistrationRole
)
from .rules.engine import RuleSetEvaluator
from .rules.models import ContainerConfig


async def _no_children(element: Any, entry: RegistryEntry) -> None:
    return None


@dataclass
class HostBindings:
    """Collaborators supplied by the host page."""
    fetch_profile: Callable[[], Awaitable[ProfileSource]]
    initialize_children: Callable[[Any, RegistryEntry], Awaitable[None]] = _no_children
    notify_diagnostic: Optional[Callable[[str], None]] = None


class ConditionalContainerRuntime:
    """Registers mounted containers and decides whether their children render."""

    def __init__(self, host: HostBindings,
                 registry: Optional[InstanceRegistry] = None,
                 evaluator: Optional[RuleSetEvaluator] = None,
                 preview: bool = False,
                 interact: bool = False,
                 profile_fetch_timeout: float = 10.0,
                 metrics: Optional[MetricsCollector] = None):
        self.host = host
        self.metrics = metrics
        self.registry = registry or InstanceRegistry(metrics=metrics)
        if self.registry.activator is None:
            self.registry.activator = self._activate
        self.evaluator = evaluator or RuleSetEvaluator(metrics=metrics)
        self.preview = preview
        self.interact = interact
        self.profile_fetch_timeout = profile_fetch_timeout
        self.logger = get_logger("conditional_container.runtime")

    async def mount(self, identity: ContainerIdentity, element: Any, config: ContainerConfig,
                    properties: Optional[Dict[str, Any]] = None) -> RegistryEntry:
        """
        Mount one container instance.

        Returns once this instance is initialized, except for followers of a
        non-scoped id whose owner is still evaluating: those come back
        pending and are settled by the owner.
        """
        set_container_context(identity.container_id, identity.row_scope)
        handle = self.registry.register(identity, element, properties)

        if handle.role == RegistrationRole.CACHED:
            await self.registry.apply_cached(handle)
            return handle.entry

        if handle.role == RegistrationRole.FOLLOWER:
            self.logger.debug("Waiting for owner decision", instance_id=handle.entry.instance_id)
            return handle.entry

        try:
            visible = await self._decide(config)
        except BaseException:
            # The owner always settles its followers; an aborted evaluation settles hidden
            self.logger.warning("Owner evaluation aborted", instance_id=handle.entry.instance_id)
            await self.registry.resolve(handle, False)
            raise

        if self.metrics:
            self.metrics.increment_counter("container_decisions_total", decision="visible" if visible else "hidden")

        await self.registry.resolve(handle, visible)
        return handle.entry

    async def _decide(self, config: ContainerConfig) -> bool:
        # Authors must see every child while editing
        if self.interact or not config.is_conditional:
            return True

        try:
            profile = await asyncio.wait_for(self.host.fetch_profile(), timeout=self.profile_fetch_timeout)
        except Exception as e:
            self.logger.error("Error fetching profile", error=repr(e))
            return False

        diagnostic = self.host.notify_diagnostic if self.preview else None
        result = self.evaluator.evaluate(config.rules(), profile, diagnostic=self._guard(diagnostic))

        self.logger.info(
            "Container evaluated",
            visible=result.visible,
            reason=result.reason,
            evaluation_time_ms=round(result.evaluation_time_ms, 3)
        )
        return result.visible

    def _guard(self, diagnostic: Optional[Callable[[str], None]]) -> Optional[Callable[[str], None]]:
        if diagnostic is None:
            return None

        def notify(message: str):
            try:
                diagnostic(message)
            except Exception as e:
                self.logger.warning("Diagnostic sink failed", error=str(e))

        return notify

    async def _activate(self, entry: RegistryEntry) -> None:
        await self.host.initialize_children(entry.element, entry)
        self.logger.debug("Children initialized", instance_id=entry.instance_id)
