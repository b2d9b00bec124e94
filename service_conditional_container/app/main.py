"""
Conditional Container service.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Query

from shared.base_service import BaseService
from .container import ConditionalContainerRuntime, HostBindings
from .models import (
    MountRequest, MountResponse, InstanceResponse, InstanceListResponse, DecisionResponse
)
from .profile.resolver import profile_from_session
from .registry.instance_registry import ContainerIdentity, InstanceRegistry, Pending, RegistryEntry
from .registry.lookup import LookupService
from .rules.engine import RuleEvaluator, RuleSetEvaluator
from .rules.models import NotEqualPolarity


class ConditionalContainerService(BaseService):
    """Conditional container service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("conditional_container", 8020, **config_overrides)

        # Initialize components
        self.registry = InstanceRegistry(activator=self._initialize_children, metrics=self.metrics)
        self.evaluator = RuleSetEvaluator(
            RuleEvaluator(NotEqualPolarity(self.config.not_equal_polarity)),
            metrics=self.metrics
        )
        self.lookup = LookupService(
            self.registry,
            initial_delay_ms=self.config.lookup_initial_delay_ms,
            backoff_multiplier=self.config.lookup_backoff_multiplier,
            max_wait_ms=self.config.lookup_max_wait_ms,
            metrics=self.metrics
        )
        self.children_initialized = 0

        self._setup_container_routes()

    def _setup_container_routes(self):
        """Set up container-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "conditional_container",
                "message": "Conditional Container Service",
                "version": "1.0.0",
                "capabilities": ["rule_engine", "instance_registry", "lookup"]
            }

        @self.app.post("/containers/mount", response_model=MountResponse)
        async def mount_container(request: MountRequest):
            """Mount a container instance and decide its visibility."""
            diagnostics: List[str] = []
            profile = request.profile
            if profile is None and request.session is not None:
                session_profile = profile_from_session(request.session)
                profile = session_profile.attributes if session_profile else None

            runtime = self._runtime(profile, diagnostics)

            entry = await runtime.mount(
                ContainerIdentity(request.container_id, request.row_scope),
                element=None,
                config=request.config,
                properties=request.properties
            )

            return MountResponse(**entry.to_dict(), diagnostics=diagnostics)

        @self.app.get("/containers/stats")
        async def get_stats():
            """Get registry statistics."""
            return {
                "registry": self.registry.get_stats(),
                "children_initialized": self.children_initialized,
                "timestamp": datetime.now().isoformat()
            }

        @self.app.get("/containers", response_model=InstanceListResponse)
        async def list_containers(
            container_id: Optional[str] = Query(None, description="Filter by logical id"),
            row_scope: Optional[str] = Query(None, description="Filter by row scope"),
            visible: Optional[bool] = Query(None, description="Filter by visibility")
        ):
            """Get every registered instance matching the filters."""
            expected: Dict[str, Any] = {}
            if container_id is not None:
                expected["container_id"] = container_id
            if row_scope is not None:
                expected["row_scope"] = row_scope
            if visible is not None:
                expected["visible"] = visible

            entries = self.lookup.get_all(expected)
            return InstanceListResponse(
                instances=[InstanceResponse.from_entry(entry) for entry in entries],
                total=len(entries)
            )

        @self.app.get("/containers/{container_id}", response_model=InstanceResponse)
        async def get_container(
            container_id: str,
            row_scope: Optional[str] = Query(None, description="Row scope of the instance"),
            max_wait_ms: Optional[float] = Query(None, ge=0, description="Lookup wait budget")
        ):
            """Get an instance, waiting for it to mount."""
            container_filter: Any = container_id
            if row_scope is not None:
                container_filter = {"container_id": container_id, "row_scope": row_scope}

            entry = await self.lookup.get(container_filter, max_wait_ms=max_wait_ms)
            return InstanceResponse.from_entry(entry)

        @self.app.get("/containers/{container_id}/decision", response_model=DecisionResponse)
        async def get_decision(
            container_id: str,
            row_scope: Optional[str] = Query(None, description="Row scope of the instance")
        ):
            """Get the cached visibility decision."""
            decision = self.registry.resolve_decision(ContainerIdentity(container_id, row_scope))
            return DecisionResponse(
                container_id=container_id,
                row_scope=row_scope,
                visible=self.lookup.get_decision(container_id, row_scope),
                pending=isinstance(decision, Pending)
            )

    def _runtime(self, profile: Optional[Dict[str, Any]], diagnostics: List[str]) -> ConditionalContainerRuntime:
        """Runtime bound to the profile supplied with one mount request."""

        async def fetch_profile():
            return profile

        return ConditionalContainerRuntime(
            HostBindings(fetch_profile=fetch_profile, notify_diagnostic=diagnostics.append),
            registry=self.registry,
            evaluator=self.evaluator,
            preview=self.config.preview,
            interact=self.config.interact,
            profile_fetch_timeout=self.config.profile_fetch_timeout_seconds,
            metrics=self.metrics
        )

    async def _initialize_children(self, entry: RegistryEntry) -> None:
        self.children_initialized += 1
        self.logger.info(
            "Children initialized",
            instance_id=entry.instance_id,
            container_id=entry.container_id,
            row_scope=entry.row_scope
        )


def create_app(**config_overrides):
    """Create conditional container service application."""
    service = ConditionalContainerService(**config_overrides)
    return service.app


if __name__ == "__main__":
    service = ConditionalContainerService()
    service.run()
