"""Moderator actions: bans, device blocks and correlation review.

These are the writes that feed enforcement. A ban captures every device
signature registered for the account at ban time and blocks all of those
registrations, so the ban follows the devices to any other account that
presents them later.
"""

from __future__ import annotations

import logging

from alt_account_guard.detector.models import DEFAULT_BAN_REASON, ReviewStatus
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import (
    BanEntryDTO,
    BanRepository,
    CorrelationRepository,
    DeviceRegistrationRepository,
)

logger = logging.getLogger(__name__)


async def ban_account(
    db: DatabaseManager,
    account_id: str,
    *,
    reason: str | None = None,
    source: str = "website",
    banned_by: str | None = None,
) -> BanEntryDTO:
    """Ban an account and every device it has registered.

    Args:
        db: Database manager.
        account_id: Account to ban.
        reason: Shown to the user on blocked checks.
        source: Where the ban originated (e.g. ``website``, ``game``).
        banned_by: Moderator identifier.

    Returns:
        The created ban with its device-signature scope.
    """
    async with db.get_async_session() as session:
        devices = DeviceRegistrationRepository(session)
        signatures = await devices.signatures_for_account(account_id)
        blocked = await devices.block_all_for_account(account_id)
        ban = await BanRepository(session).create(
            BanEntryDTO(
                account_id=account_id,
                reason=reason or DEFAULT_BAN_REASON,
                source=source,
                banned_by=banned_by,
                device_signatures=signatures,
            )
        )

    logger.info(
        "Account %s banned by %s (%d device signatures, %d registrations blocked)",
        account_id,
        banned_by or "unknown",
        len(signatures),
        blocked,
    )
    return ban


async def block_device(db: DatabaseManager, account_id: str, device_signature: str) -> bool:
    """Block one (account, device) registration.

    Returns:
        False if the account never registered that device.
    """
    async with db.get_async_session() as session:
        updated = await DeviceRegistrationRepository(session).mark_blocked(account_id, device_signature)

    if updated:
        logger.info("Device %s... blocked for account %s", device_signature[:8], account_id)
    else:
        logger.warning(
            "No registration to block for account %s (signature %s...)",
            account_id,
            device_signature[:8],
        )
    return updated


async def review_correlation(
    db: DatabaseManager,
    record_id: int,
    *,
    status: ReviewStatus | str,
    reviewed_by: str | None = None,
) -> bool:
    """Record a moderator decision on a correlation record.

    Raises:
        ValueError: If status is not a known review status.

    Returns:
        False if the record does not exist.
    """
    status = ReviewStatus(status)
    async with db.get_async_session() as session:
        updated = await CorrelationRepository(session).set_status(
            record_id, status=status.value, reviewed_by=reviewed_by
        )

    if updated:
        logger.info("Correlation %d marked %s by %s", record_id, status.value, reviewed_by or "unknown")
    return updated
