"""Tests for the device registry and ban propagation."""

import asyncio

import pytest

from alt_account_guard.detector.device_registry import DeviceRegistry
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import DeviceRegistrationDTO, DeviceRegistrationRepository


@pytest.fixture
def registry(db: DatabaseManager) -> DeviceRegistry:
    return DeviceRegistry(db)


async def _get(db: DatabaseManager, account_id: str, signature: str) -> DeviceRegistrationDTO | None:
    async with db.get_async_session() as session:
        return await DeviceRegistrationRepository(session).get(account_id, signature)


class TestDeviceRegistry:
    """Tests for DeviceRegistry.upsert."""

    @pytest.mark.asyncio
    async def test_first_sighting_is_not_blocked(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        result = await registry.upsert("a", "sig-1", network_origin="10.0.0.1", client_string="UA/1")

        assert result.blocked is False
        assert result.propagated is False
        row = await _get(db, "a", "sig-1")
        assert row is not None
        assert row.network_origin == "10.0.0.1"
        assert row.client_string == "UA/1"

    @pytest.mark.asyncio
    async def test_existing_row_is_refreshed(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        await registry.upsert("a", "sig-1", network_origin="10.0.0.1", client_string="UA/1")
        result = await registry.upsert("a", "sig-1", network_origin="10.0.0.2", client_string="UA/2")

        assert result.blocked is False
        row = await _get(db, "a", "sig-1")
        assert row.network_origin == "10.0.0.2"
        assert row.client_string == "UA/2"

    @pytest.mark.asyncio
    async def test_blocked_row_stays_blocked_and_is_not_refreshed(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        await registry.upsert("a", "sig-1", network_origin="10.0.0.1")
        async with db.get_async_session() as session:
            await DeviceRegistrationRepository(session).mark_blocked("a", "sig-1")

        result = await registry.upsert("a", "sig-1", network_origin="10.0.0.9")

        assert result.blocked is True
        assert result.propagated is False
        row = await _get(db, "a", "sig-1")
        assert row.is_blocked is True
        assert row.network_origin == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_block_propagates_to_new_account(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        await registry.upsert("a", "sig-1")
        async with db.get_async_session() as session:
            await DeviceRegistrationRepository(session).mark_blocked("a", "sig-1")

        result = await registry.upsert("c", "sig-1")

        assert result.blocked is True
        assert result.propagated is True
        row = await _get(db, "c", "sig-1")
        assert row is not None
        assert row.is_blocked is True

    @pytest.mark.asyncio
    async def test_block_does_not_leak_to_other_signatures(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        await registry.upsert("a", "sig-1")
        async with db.get_async_session() as session:
            await DeviceRegistrationRepository(session).mark_blocked("a", "sig-1")

        result = await registry.upsert("c", "sig-2")

        assert result.blocked is False

    @pytest.mark.asyncio
    async def test_concurrent_upserts_for_same_pair(
        self, registry: DeviceRegistry, db: DatabaseManager
    ) -> None:
        results = await asyncio.gather(*(registry.upsert("a", "sig-1") for _ in range(5)))

        assert all(r.blocked is False for r in results)
        async with db.get_async_session() as session:
            assert await DeviceRegistrationRepository(session).signatures_for_account("a") == ["sig-1"]


class TestLostInsertRace:
    """Tests for upserts that lose the insert to a concurrent check of the same account."""

    @pytest.fixture
    def racing_get(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """First lookup misses, as if the other check inserted right after it."""
        original_get = DeviceRegistrationRepository.get
        calls = 0

        async def get(self, account_id: str, device_signature: str) -> DeviceRegistrationDTO | None:
            nonlocal calls
            calls += 1
            if calls == 1:
                return None
            return await original_get(self, account_id, device_signature)

        monkeypatch.setattr(DeviceRegistrationRepository, "get", get)

    async def _insert(self, db: DatabaseManager, account_id: str, *, blocked: bool = False) -> None:
        async with db.get_async_session() as session:
            await DeviceRegistrationRepository(session).insert_if_absent(
                DeviceRegistrationDTO(account_id=account_id, device_signature="sig-1", is_blocked=blocked)
            )

    @pytest.mark.asyncio
    async def test_propagated_block_survives_lost_insert(
        self, registry: DeviceRegistry, db: DatabaseManager, racing_get: None
    ) -> None:
        await self._insert(db, "a", blocked=True)
        await self._insert(db, "c")

        result = await registry.upsert("c", "sig-1")

        assert result.blocked is True
        assert result.propagated is True
        row = await _get(db, "c", "sig-1")
        assert row.is_blocked is True

    @pytest.mark.asyncio
    async def test_blocked_winner_row_is_reported(
        self, registry: DeviceRegistry, db: DatabaseManager, racing_get: None
    ) -> None:
        await self._insert(db, "c", blocked=True)

        result = await registry.upsert("c", "sig-1")

        assert result.blocked is True

    @pytest.mark.asyncio
    async def test_unblocked_winner_row_stays_unblocked(
        self, registry: DeviceRegistry, db: DatabaseManager, racing_get: None
    ) -> None:
        await self._insert(db, "c")

        result = await registry.upsert("c", "sig-1")

        assert result.blocked is False
        row = await _get(db, "c", "sig-1")
        assert row.is_blocked is False
