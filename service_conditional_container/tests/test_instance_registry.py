"""
Unit tests for InstanceRegistry.
"""

import pytest
from unittest.mock import AsyncMock

from service_conditional_container.app.registry.instance_registry import (
    ContainerIdentity, InstanceRegistry, Pending, RegistrationRole, Resolved
)


class TestContainerIdentity:
    """Test cases for ContainerIdentity."""

    def test_ids_are_normalized_to_text(self):
        identity = ContainerIdentity(42, 7)

        assert identity.container_id == "42"
        assert identity.row_scope == "7"
        assert identity == ContainerIdentity("42", "7")

    def test_cache_key(self):
        assert ContainerIdentity("a").cache_key == ("a", None)
        assert ContainerIdentity("a", "r1").cache_key == ("a", "r1")
        assert not ContainerIdentity("a").is_scoped
        assert ContainerIdentity("a", "r1").is_scoped


class TestInstanceRegistry:
    """Test cases for InstanceRegistry."""

    @pytest.fixture
    def activator(self):
        """Create activator mock standing in for child initialization."""
        return AsyncMock()

    @pytest.fixture
    def registry(self, activator):
        """Create InstanceRegistry instance."""
        return InstanceRegistry(activator=activator)

    def test_first_registration_owns(self, registry):
        handle = registry.register(ContainerIdentity("42"), element="el-1")

        assert handle.role == RegistrationRole.OWNER
        assert handle.is_owner
        assert handle.entry.pending
        assert handle.entry.hidden
        assert isinstance(registry.resolve_decision(ContainerIdentity("42")), Pending)

    def test_second_registration_follows_while_pending(self, registry):
        registry.register(ContainerIdentity("42"))
        follower = registry.register(ContainerIdentity("42"))

        assert follower.role == RegistrationRole.FOLLOWER
        assert follower.entry.pending

    @pytest.mark.asyncio
    async def test_resolve_settles_followers(self, registry, activator):
        owner = registry.register(ContainerIdentity("42"), element="el-1")
        follower = registry.register(ContainerIdentity("42"), element="el-2")

        await registry.resolve(owner, True)

        for entry in (owner.entry, follower.entry):
            assert entry.decision == Resolved(visible=True)
            assert entry.initialized
            assert not entry.hidden
        assert activator.await_count == 2
        activated = [call.args[0].element for call in activator.await_args_list]
        assert activated == ["el-1", "el-2"]

    @pytest.mark.asyncio
    async def test_hidden_decision_does_not_activate(self, registry, activator):
        owner = registry.register(ContainerIdentity("42"))
        follower = registry.register(ContainerIdentity("42"))

        await registry.resolve(owner, False)

        assert owner.entry.initialized and follower.entry.initialized
        assert owner.entry.hidden and follower.entry.hidden
        activator.assert_not_awaited()
        assert registry.get_decision("42") is False

    @pytest.mark.asyncio
    async def test_late_registration_replays_cache(self, registry, activator):
        owner = registry.register(ContainerIdentity("42"))
        await registry.resolve(owner, True)

        late = registry.register(ContainerIdentity(42))
        assert late.role == RegistrationRole.CACHED

        await registry.apply_cached(late)

        assert late.entry.visible
        assert late.entry.initialized
        assert activator.await_count == 2

    @pytest.mark.asyncio
    async def test_children_initialized_once_per_instance(self, registry, activator):
        owner = registry.register(ContainerIdentity("42"))
        await registry.resolve(owner, True)
        await registry.resolve(owner, True)

        activator.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_row_scopes_never_share(self, registry, activator):
        first = registry.register(ContainerIdentity("42", "row-1"))
        second = registry.register(ContainerIdentity("42", "row-2"))
        unscoped = registry.register(ContainerIdentity("42"))

        assert first.role == RegistrationRole.OWNER
        assert second.role == RegistrationRole.OWNER
        assert unscoped.role == RegistrationRole.OWNER

        await registry.resolve(first, True)

        assert first.entry.visible
        assert second.entry.pending
        assert unscoped.entry.pending
        assert registry.get_decision("42", "row-1") is True
        assert registry.get_decision("42", "row-2") is False
        assert registry.get_decision("42") is False

    def test_same_row_scope_evaluates_again(self, registry):
        registry.register(ContainerIdentity("42", "row-1"))
        again = registry.register(ContainerIdentity("42", "row-1"))

        assert again.role == RegistrationRole.OWNER

    @pytest.mark.asyncio
    async def test_unscoped_resolve_leaves_scoped_entries(self, registry):
        scoped = registry.register(ContainerIdentity("42", "row-1"))
        owner = registry.register(ContainerIdentity("42"))

        await registry.resolve(owner, True)

        assert owner.entry.visible
        assert scoped.entry.pending

    @pytest.mark.asyncio
    async def test_only_owner_resolves(self, registry):
        registry.register(ContainerIdentity("42"))
        follower = registry.register(ContainerIdentity("42"))

        with pytest.raises(ValueError):
            await registry.resolve(follower, True)

    @pytest.mark.asyncio
    async def test_apply_cached_requires_decision(self, registry):
        handle = registry.register(ContainerIdentity("42"))

        with pytest.raises(ValueError):
            await registry.apply_cached(handle)

    @pytest.mark.asyncio
    async def test_activation_failure_does_not_block_others(self, activator):
        activator.side_effect = [RuntimeError("render failed"), None]
        registry = InstanceRegistry(activator=activator)
        owner = registry.register(ContainerIdentity("42"))
        follower = registry.register(ContainerIdentity("42"))

        await registry.resolve(owner, True)

        assert activator.await_count == 2
        assert owner.entry.initialized and follower.entry.initialized

    def test_get_decision_unknown_is_hidden(self, registry):
        assert registry.get_decision("missing") is False
        assert registry.resolve_decision(ContainerIdentity("missing")) is None

    @pytest.mark.asyncio
    async def test_instances_and_stats(self, registry):
        owner = registry.register(ContainerIdentity("42"))
        registry.register(ContainerIdentity("42", "row-1"))
        registry.register(ContainerIdentity("7"))
        await registry.resolve(owner, True)

        assert len(registry.instances()) == 3
        assert len(registry.instances(42)) == 2

        stats = registry.get_stats()
        assert stats["instances"] == 3
        assert stats["containers"] == 2
        assert stats["initialized"] == 1
        assert stats["decisions_cached"] == 1
        assert stats["decisions_pending"] == 2
        assert stats["visible_decisions"] == 1

    def test_clear(self, registry):
        registry.register(ContainerIdentity("42"))
        registry.clear()

        assert registry.instances() == []
        assert registry.register(ContainerIdentity("42")).is_owner

    def test_entry_matches_properties(self, registry):
        handle = registry.register(ContainerIdentity("42", "row-1"), properties={"name": "promo"})

        assert handle.entry.matches({"container_id": 42, "name": "promo"})
        assert handle.entry.matches({"row_scope": "row-1", "pending": True})
        assert not handle.entry.matches({"name": "other"})
        assert not handle.entry.matches({"visible": True})
