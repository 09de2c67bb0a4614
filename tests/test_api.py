"""Tests for the HTTP check API."""

from unittest.mock import AsyncMock

import httpx
import pytest

from alt_account_guard.api import CheckPayload, create_app
from alt_account_guard.config import Settings
from alt_account_guard.moderation import ban_account
from alt_account_guard.pipeline import CheckPipeline, StoreUnavailableError
from alt_account_guard.storage.database import DatabaseManager


def _client(settings: Settings, pipeline: CheckPipeline) -> httpx.AsyncClient:
    app = create_app(settings, pipeline=pipeline)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestCheckPayload:
    """Tests for request body parsing."""

    def test_client_field_names_are_accepted(self) -> None:
        payload = CheckPayload.model_validate(
            {
                "user_id": "u1",
                "ip_address": "203.0.113.7",
                "fingerprint_hash": "sig",
                "user_agent": "Mozilla/5.0",
                "extra": "ignored",
            }
        )

        request = payload.to_request()

        assert request.account_id == "u1"
        assert request.network_origin == "203.0.113.7"
        assert request.device_signature == "sig"
        assert request.client_string == "Mozilla/5.0"


class TestCheckEndpoint:
    """Tests for POST /check and GET /health."""

    @pytest.mark.asyncio
    async def test_health(self, settings: Settings, pipeline: CheckPipeline) -> None:
        async with _client(settings, pipeline) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_check_flow(self, settings: Settings, pipeline: CheckPipeline) -> None:
        async with _client(settings, pipeline) as client:
            first = await client.post("/check", json={"account_id": "a", "network_origin": "203.0.113.7"})
            second = await client.post("/check", json={"user_id": "b", "ip_address": "203.0.113.7"})

        assert first.status_code == 200
        assert first.json() == {"blocked": False, "new_correlations": 0}
        assert second.json() == {"blocked": False, "new_correlations": 1}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"account_id": "  "}, {"network_origin": "203.0.113.7"}])
    async def test_missing_account_is_bad_request(
        self, settings: Settings, pipeline: CheckPipeline, body: dict
    ) -> None:
        async with _client(settings, pipeline) as client:
            response = await client.post("/check", json=body)

        assert response.status_code == 400
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_overlong_account_is_bad_request(self, settings: Settings, pipeline: CheckPipeline) -> None:
        async with _client(settings, pipeline) as client:
            response = await client.post("/check", json={"account_id": "u" * 65})

        assert response.status_code == 400
        assert response.json() == {"error": "account_id must be at most 64 characters"}

    @pytest.mark.asyncio
    async def test_malformed_body_is_bad_request(self, settings: Settings, pipeline: CheckPipeline) -> None:
        async with _client(settings, pipeline) as client:
            response = await client.post("/check", json={"account_id": ["not", "a", "string"]})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(
        self, settings: Settings, pipeline: CheckPipeline, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            pipeline, "check", AsyncMock(side_effect=StoreUnavailableError("Store unavailable: down"))
        )

        async with _client(settings, pipeline) as client:
            response = await client.post("/check", json={"account_id": "a"})

        assert response.status_code == 503
        assert response.json() == {"error": "Store unavailable: down", "blocked": False}

    @pytest.mark.asyncio
    async def test_unexpected_failure_fails_open(
        self, settings: Settings, pipeline: CheckPipeline, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(pipeline, "check", AsyncMock(side_effect=KeyError("boom")))

        async with _client(settings, pipeline) as client:
            response = await client.post("/check", json={"account_id": "a"})

        assert response.status_code == 500
        assert response.json()["blocked"] is False

    @pytest.mark.asyncio
    async def test_blocked_response_carries_reason(
        self, settings: Settings, pipeline: CheckPipeline, db: DatabaseManager
    ) -> None:
        async with _client(settings, pipeline) as client:
            await client.post("/check", json={"account_id": "a", "device_signature": "sig-1"})
            await ban_account(db, "a", reason="cheating")
            response = await client.post("/check", json={"account_id": "c", "device_signature": "sig-1"})

        assert response.status_code == 200
        assert response.json() == {
            "blocked": True,
            "new_correlations": 0,
            "reason": "This device has been banned from accessing the website.",
        }
