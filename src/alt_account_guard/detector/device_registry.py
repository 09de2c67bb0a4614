"""Device registry and ban propagation.

Every (account, device signature) pair observed by a check gets one
registration row. A device blocked for any account is blocked for every
account that presents it afterwards: the first time a new account shows up
on a blocked signature its registration is created already blocked.
"""

from __future__ import annotations

import logging

from alt_account_guard.detector.models import DeviceCheckResult
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import DeviceRegistrationDTO, DeviceRegistrationRepository

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Upserts device registrations and propagates device blocks.

    Example:
        ```python
        registry = DeviceRegistry(db)
        outcome = await registry.upsert(
            "account-1", "sig-abc", network_origin="203.0.113.7", client_string="Mozilla/5.0"
        )
        if outcome.blocked:
            ...
        ```
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert(
        self,
        account_id: str,
        device_signature: str,
        *,
        network_origin: str | None = None,
        client_string: str | None = None,
    ) -> DeviceCheckResult:
        """Record that an account presented a device signature.

        Args:
            account_id: Checked account.
            device_signature: Client-computed device identifier.
            network_origin: Origin of the current request.
            client_string: Client/user-agent string of the current request.

        Returns:
            DeviceCheckResult telling whether the pair is blocked.
        """
        async with self._db.get_async_session() as session:
            repo = DeviceRegistrationRepository(session)
            existing = await repo.get(account_id, device_signature)

            if existing is not None:
                if existing.is_blocked:
                    await repo.touch(account_id, device_signature)
                    return DeviceCheckResult(blocked=True)
                await repo.refresh(
                    account_id,
                    device_signature,
                    network_origin=network_origin,
                    client_string=client_string,
                )
                return DeviceCheckResult(blocked=False)

            propagate = await repo.has_blocked_signature(
                device_signature, exclude_account_id=account_id
            )
            inserted = await repo.insert_if_absent(
                DeviceRegistrationDTO(
                    account_id=account_id,
                    device_signature=device_signature,
                    is_blocked=propagate,
                    network_origin=network_origin,
                    client_string=client_string,
                )
            )
            if not inserted:
                # A concurrent check for the same account registered the device first.
                if propagate:
                    await repo.mark_blocked(account_id, device_signature)
                else:
                    winner = await repo.get(account_id, device_signature)
                    if winner is not None and winner.is_blocked:
                        return DeviceCheckResult(blocked=True)

        if propagate:
            logger.info(
                "Device block propagated to account %s (signature %s...)",
                account_id,
                device_signature[:8],
            )
            return DeviceCheckResult(blocked=True, propagated=True)

        # A block may have committed between the lookup and our insert.
        async with self._db.get_async_session() as session:
            repo = DeviceRegistrationRepository(session)
            if await repo.has_blocked_signature(device_signature, exclude_account_id=account_id):
                await repo.mark_blocked(account_id, device_signature)
                logger.info(
                    "Device block propagated to account %s after concurrent block (signature %s...)",
                    account_id,
                    device_signature[:8],
                )
                return DeviceCheckResult(blocked=True, propagated=True)

        return DeviceCheckResult(blocked=False)
