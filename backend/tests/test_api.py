"""HTTP surface: routing, status codes, envelopes and the data-source header."""
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest

from leadflow.api.deps import DATA_SOURCE_HEADER
from leadflow.main import create_app
from leadflow.resilience.gateway import WorkflowGateway

API = "/api/v1"


async def _client(gateway: WorkflowGateway) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=create_app(gateway))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def client(gateway: WorkflowGateway) -> AsyncGenerator[httpx.AsyncClient, None]:
    async for c in _client(gateway):
        yield c


@pytest.fixture
async def down_client(down_gateway: WorkflowGateway) -> AsyncGenerator[httpx.AsyncClient, None]:
    async for c in _client(down_gateway):
        yield c


async def _create_template(client: httpx.AsyncClient, *weights: int, name: str = "Onboarding") -> dict:
    payload = {
        "name": name,
        "steps": [{"name": f"Step {i}", "probability_percent": w} for i, w in enumerate(weights, start=1)],
    }
    response = await client.post(f"{API}/templates", json=payload)
    assert response.status_code == 201
    return response.json()["data"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_store_health(self, client: httpx.AsyncClient, down_client: httpx.AsyncClient) -> None:
        up = (await client.get("/health/store")).json()
        down = (await down_client.get("/health/store")).json()

        assert up["available"] is True
        assert down["available"] is False
        assert down["error"]


class TestEntities:
    @pytest.mark.asyncio
    async def test_display_codes_per_kind(self, client: httpx.AsyncClient) -> None:
        lead = await client.post(f"{API}/leads", json={"title": "Lead one"})
        vc = await client.post(f"{API}/vcs", json={"title": "Fund one"})
        lead2 = await client.post(f"{API}/leads", json={"title": "Lead two"})

        assert lead.status_code == 201
        assert lead.json()["data"]["display_code"] == "#0001"
        assert vc.json()["data"]["display_code"] == "#VC001"
        assert lead2.json()["data"]["display_code"] == "#0002"
        assert lead.headers[DATA_SOURCE_HEADER] == "store"

    @pytest.mark.asyncio
    async def test_kind_is_enforced_by_path(self, client: httpx.AsyncClient) -> None:
        vc = (await client.post(f"{API}/vcs", json={"title": "Fund"})).json()["data"]

        response = await client.get(f"{API}/leads/{vc['id']}")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    @pytest.mark.asyncio
    async def test_update_list_and_delete(self, client: httpx.AsyncClient) -> None:
        lead = (await client.post(f"{API}/leads", json={"title": "Lifecycle"})).json()["data"]

        updated = await client.put(f"{API}/leads/{lead['id']}", json={"status": "won", "notes": "signed"})
        listing = await client.get(f"{API}/leads", params={"status": "won"})
        stats = await client.get(f"{API}/leads/stats")
        deleted = await client.delete(f"{API}/leads/{lead['id']}")
        missing = await client.get(f"{API}/leads/{lead['id']}")

        assert updated.json()["data"]["status"] == "won"
        assert [e["id"] for e in listing.json()["data"]] == [lead["id"]]
        assert stats.json()["data"]["by_status"] == {"won": 1}
        assert deleted.status_code == 200
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client: httpx.AsyncClient) -> None:
        response = await client.post(f"{API}/leads", json={"title": ""})

        assert response.status_code == 422


class TestStepFlow:
    @pytest.mark.asyncio
    async def test_template_driven_progress(self, client: httpx.AsyncClient) -> None:
        template = await _create_template(client, 20, 80)
        lead = (await client.post(f"{API}/leads", json={"title": "Deal", "template_id": template["id"]})).json()["data"]

        steps = (await client.get(f"{API}/leads/{lead['id']}/steps")).json()["data"]
        first = await client.put(f"{API}/steps/{steps[0]['id']}", json={"status": "completed"})
        second = await client.put(f"{API}/steps/{steps[1]['id']}", json={"status": "completed"})
        progress = (await client.get(f"{API}/leads/{lead['id']}/progress")).json()["data"]

        assert [s["name"] for s in steps] == ["Step 1", "Step 2"]
        assert first.json()["data"]["probability"] == 20
        assert second.json()["data"]["probability"] == 100
        assert progress["completed_count"] == 2
        assert progress["current_step"] is None

    @pytest.mark.asyncio
    async def test_rejected_transition_is_409(self, client: httpx.AsyncClient) -> None:
        lead = (await client.post(f"{API}/leads", json={"title": "Deal"})).json()["data"]
        steps = (await client.get(f"{API}/leads/{lead['id']}/steps")).json()["data"]
        await client.put(f"{API}/steps/{steps[0]['id']}", json={"status": "completed"})

        back = await client.put(f"{API}/steps/{steps[0]['id']}", json={"status": "pending"})
        bogus = await client.put(f"{API}/steps/{steps[1]['id']}", json={"status": "archived"})

        assert back.status_code == 409
        assert back.json()["error"] == "InvalidTransitionError"
        assert bogus.status_code == 409

    @pytest.mark.asyncio
    async def test_reorder_and_bad_reorder(self, client: httpx.AsyncClient) -> None:
        template = await _create_template(client, 50, 50)
        lead = (await client.post(f"{API}/leads", json={"title": "Deal", "template_id": template["id"]})).json()["data"]
        steps = (await client.get(f"{API}/leads/{lead['id']}/steps")).json()["data"]

        swapped = await client.put(
            f"{API}/leads/{lead['id']}/steps/reorder",
            json={"steps": [{"id": steps[0]["id"], "order": 2}, {"id": steps[1]["id"], "order": 1}]},
        )
        clash = await client.put(
            f"{API}/leads/{lead['id']}/steps/reorder",
            json={"steps": [{"id": steps[0]["id"], "order": 1}]},
        )
        refreshed = (await client.get(f"{API}/templates/{template['id']}")).json()["data"]

        assert swapped.status_code == 200
        assert swapped.json()["data"]["template_synced"] is True
        assert [s["name"] for s in swapped.json()["data"]["steps"]] == ["Step 2", "Step 1"]
        assert clash.status_code == 422
        assert [s["name"] for s in refreshed["steps"]] == ["Step 2", "Step 1"]

    @pytest.mark.asyncio
    async def test_manual_step_create_and_delete(self, client: httpx.AsyncClient) -> None:
        lead = (await client.post(f"{API}/leads", json={"title": "Deal"})).json()["data"]

        created = await client.post(f"{API}/leads/{lead['id']}/steps", json={"name": "Security review"})
        removed = await client.delete(f"{API}/steps/{created.json()['data']['id']}")

        assert created.status_code == 201
        assert created.json()["data"]["step_order"] == 11
        assert removed.json()["data"]["entity_id"] == lead["id"]

    @pytest.mark.asyncio
    async def test_change_template_resets_steps(self, client: httpx.AsyncClient) -> None:
        small = await _create_template(client, 100, name="Small")
        lead = (await client.post(f"{API}/leads", json={"title": "Deal"})).json()["data"]

        changed = await client.put(f"{API}/leads/{lead['id']}/template", json={"template_id": small["id"]})
        unknown = await client.put(f"{API}/leads/{lead['id']}/template", json={"template_id": 999})

        body = changed.json()["data"]
        assert body["removed_steps"] == 10
        assert [s["name"] for s in body["steps"]] == ["Step 1"]
        assert body["entity"]["template_id"] == small["id"]
        assert unknown.status_code == 404


class TestTemplates:
    @pytest.mark.asyncio
    async def test_crud_and_weights(self, client: httpx.AsyncClient) -> None:
        template = await _create_template(client, 30, 30)

        duplicate = await client.post(f"{API}/templates/{template['id']}/duplicate")
        updated = await client.put(
            f"{API}/templates/{template['id']}",
            json={"steps": [{"name": "Only", "probability_percent": 100}]},
        )
        report = (await client.get(f"{API}/templates/weights")).json()["data"]
        deactivated = await client.delete(f"{API}/templates/{template['id']}")
        active = (await client.get(f"{API}/templates")).json()["data"]

        assert duplicate.json()["data"]["name"] == "Onboarding (Copy)"
        assert [s["name"] for s in updated.json()["data"]["steps"]] == ["Only"]
        balanced = {r["template_id"]: r["is_balanced"] for r in report}
        assert balanced == {template["id"]: True, duplicate.json()["data"]["id"]: False}
        assert deactivated.json()["data"]["is_active"] is False
        assert [t["id"] for t in active] == [duplicate.json()["data"]["id"]]

    @pytest.mark.asyncio
    async def test_unknown_template(self, client: httpx.AsyncClient) -> None:
        response = await client.get(f"{API}/templates/404")

        assert response.status_code == 404


class TestDegraded:
    @pytest.mark.asyncio
    async def test_reads_come_from_fallback(self, down_client: httpx.AsyncClient) -> None:
        response = await down_client.get(f"{API}/leads")

        assert response.status_code == 200
        assert response.headers[DATA_SOURCE_HEADER] == "fallback"
        body = response.json()
        assert body["persisted"] is False
        assert body["warnings"]
        assert len(body["data"]) == 3

    @pytest.mark.asyncio
    async def test_steps_never_empty(self, down_client: httpx.AsyncClient) -> None:
        lead = (await down_client.get(f"{API}/leads")).json()["data"][0]

        response = await down_client.get(f"{API}/leads/{lead['id']}/steps")

        assert response.status_code == 200
        assert response.json()["data"]

    @pytest.mark.asyncio
    async def test_store_ids_get_stand_in_steps(self, down_client: httpx.AsyncClient) -> None:
        response = await down_client.get(f"{API}/leads/4/steps")

        assert response.status_code == 200
        assert response.headers[DATA_SOURCE_HEADER] == "fallback"
        assert len(response.json()["data"]) == 10

    @pytest.mark.asyncio
    async def test_writes_echo(self, down_client: httpx.AsyncClient) -> None:
        response = await down_client.post(f"{API}/vcs", json={"title": "Offline fund"})

        assert response.status_code == 201
        assert response.headers[DATA_SOURCE_HEADER] == "fallback"
        assert response.json()["persisted"] is False
        assert response.json()["data"]["display_code"] == "#VC002"

    @pytest.mark.asyncio
    async def test_template_writes_are_503(self, down_client: httpx.AsyncClient) -> None:
        response = await down_client.post(f"{API}/templates", json={"name": "Offline"})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "30"
        assert response.json()["error"] == "StoreUnavailableError"
