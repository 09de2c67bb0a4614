"""Storage layer - Database schemas and repositories."""

from alt_account_guard.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from alt_account_guard.storage.models import (
    AccountProfileModel,
    BanDeviceSignatureModel,
    BanEntryModel,
    Base,
    CorrelationRecordModel,
    DeviceRegistrationModel,
    ProvenanceRecordModel,
)
from alt_account_guard.storage.repos import (
    AccountProfileDTO,
    AccountProfileRepository,
    BanEntryDTO,
    BanRepository,
    CorrelationRecordDTO,
    CorrelationRepository,
    DeviceRegistrationDTO,
    DeviceRegistrationRepository,
    ProvenanceRecordDTO,
    ProvenanceRepository,
    canonical_pair,
)

__all__ = [
    "AccountProfileDTO",
    "AccountProfileModel",
    "AccountProfileRepository",
    "BanDeviceSignatureModel",
    "BanEntryDTO",
    "BanEntryModel",
    "BanRepository",
    "Base",
    "CorrelationRecordDTO",
    "CorrelationRecordModel",
    "CorrelationRepository",
    "DatabaseManager",
    "DeviceRegistrationDTO",
    "DeviceRegistrationModel",
    "DeviceRegistrationRepository",
    "ProvenanceRecordDTO",
    "ProvenanceRecordModel",
    "ProvenanceRepository",
    "canonical_pair",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
