"""
Lookup service for conditional container instances.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from shared.errors import ContainerNotFoundError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_until
from .instance_registry import InstanceRegistry, RegistryEntry

Predicate = Callable[[RegistryEntry], bool]
ContainerFilter = Union[str, int, Mapping[str, Any], Predicate]

DEFAULT_INITIAL_DELAY_MS = 10.0
DEFAULT_BACKOFF_MULTIPLIER = 1.5
DEFAULT_MAX_WAIT_MS = 5000.0


def build_predicate(container_filter: Optional[ContainerFilter]) -> Predicate:
    """Turn an id, property mapping or callable into a predicate over entries."""
    if container_filter is None:
        return lambda entry: True

    if callable(container_filter):
        return container_filter

    if isinstance(container_filter, Mapping):
        expected = dict(container_filter)
        return lambda entry: entry.matches(expected)

    container_id = str(container_filter)
    return lambda entry: entry.container_id == container_id


class LookupService:
    """
    Resolves registered instances for external callers.

    Containers mount asynchronously and in any order, so ``get`` keeps
    polling the registry with exponential backoff until an instance shows
    up or the cumulative backoff exceeds the wait budget.
    """

    def __init__(self, registry: InstanceRegistry,
                 initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
                 backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
                 max_wait_ms: float = DEFAULT_MAX_WAIT_MS,
                 metrics: Optional[MetricsCollector] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.registry = registry
        self.initial_delay_ms = initial_delay_ms
        self.backoff_multiplier = backoff_multiplier
        self.max_wait_ms = max_wait_ms
        self.metrics = metrics
        self.sleep = sleep
        self.logger = get_logger("conditional_container.lookup")

    async def get(self, container_filter: ContainerFilter,
                  max_wait_ms: Optional[float] = None) -> RegistryEntry:
        """First instance matching the filter, waiting for it to register."""
        predicate = build_predicate(container_filter)
        budget_ms = self.max_wait_ms if max_wait_ms is None else max_wait_ms

        config = RetryConfig(
            max_elapsed=budget_ms / 1000,
            base_delay=self.initial_delay_ms / 1000,
            exponential_base=self.backoff_multiplier
        )

        try:
            entry = await retry_until(
                lambda: self._first(predicate),
                config,
                name="container_lookup",
                sleep=self.sleep
            )
        except RetryError as e:
            self._record("not_found")
            elapsed_ms = e.elapsed * 1000
            self.logger.warning(
                "Conditional container not found",
                attempts=e.attempts,
                elapsed_ms=round(elapsed_ms, 2)
            )
            raise ContainerNotFoundError(container_filter, elapsed_ms) from e

        self._record("found")
        return entry

    def get_all(self, container_filter: Optional[ContainerFilter] = None) -> List[RegistryEntry]:
        """Every instance currently registered that matches the filter."""
        predicate = build_predicate(container_filter)
        return [entry for entry in self.registry.instances() if predicate(entry)]

    def get_decision(self, container_id: Any, row_scope: Optional[Any] = None) -> bool:
        return self.registry.get_decision(container_id, row_scope)

    def _first(self, predicate: Predicate) -> Optional[RegistryEntry]:
        for entry in self.registry.instances():
            if predicate(entry):
                return entry
        return None

    def _record(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("container_lookups_total", status=status)
