"""
Integration tests for the conditional container flow.
"""

import asyncio

import httpx
import pytest

from service_conditional_container.app.main import ConditionalContainerService


class TestContainerFlow:
    """Mount and lookup flows through the HTTP API."""

    @pytest.fixture
    def service(self):
        """Create the service with a one second lookup budget."""
        return ConditionalContainerService(lookup_max_wait_ms=1000)

    @pytest.fixture
    def config(self):
        """Container shown to analysts, hidden from contractors."""
        return {
            "useAsConditionalContainer": [True],
            "conditions": [
                {"user_key": "employment", "logic": "equal", "user_value": "contractor", "visibility": "hide"},
                {"user_key": "roles", "logic": "contains", "user_value": "analyst", "visibility": "show"}
            ]
        }

    @pytest.mark.asyncio
    async def test_lookup_waits_for_mount(self, service, config):
        """A lookup issued before the container mounts resolves once it does."""
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            lookup = asyncio.ensure_future(client.get("/containers/dashboard"))
            await asyncio.sleep(0.05)

            mount = await client.post("/containers/mount", json={
                "container_id": "dashboard",
                "config": config,
                "profile": {"employment": "staff", "roles": '["user", "analyst"]'}
            })
            found = await lookup

        assert mount.status_code == 200
        assert found.status_code == 200
        assert found.json()["instance_id"] == mount.json()["instance_id"]
        assert found.json()["decision"] == "visible"

    @pytest.mark.asyncio
    async def test_repeated_rows_and_shared_copies(self, service, config):
        """Row copies decide per row, unscoped copies share one decision."""
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            contractor = {"employment": "contractor", "roles": ["analyst"]}
            analyst = {"employment": "staff", "roles": "user, analyst"}

            row_1 = await client.post("/containers/mount", json={
                "container_id": "card", "row_scope": "1", "config": config, "profile": contractor
            })
            row_2 = await client.post("/containers/mount", json={
                "container_id": "card", "row_scope": "2", "config": config, "profile": analyst
            })
            header = await client.post("/containers/mount", json={
                "container_id": "header", "config": config, "profile": analyst
            })
            header_copy = await client.post("/containers/mount", json={
                "container_id": "header", "config": config, "profile": contractor
            })

            rows = (await client.get("/containers", params={"container_id": "card"})).json()
            decision = (await client.get("/containers/card/decision", params={"row_scope": "2"})).json()

        assert row_1.json()["decision"] == "hidden"
        assert row_2.json()["decision"] == "visible"
        assert header.json()["decision"] == "visible"
        assert header_copy.json()["decision"] == "visible"
        assert rows["total"] == 2
        assert decision["visible"] is True
        assert service.registry.get_stats()["decisions_cached"] == 3
