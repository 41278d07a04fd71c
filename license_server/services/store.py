from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.license import License
from ..schemas.license import LicenseRecord, LicenseStats
from ..utils.exceptions import StoreUnavailableException
from ..utils.security import ensure_utc

logger = logging.getLogger(__name__)


class LicenseStore(ABC):
    """Device license records keyed by hardware ID.

    The validation flow only calls ``lookup``; the remaining methods serve the
    administrative endpoints and tooling.
    """

    @abstractmethod
    def lookup(self, hardware_id: str) -> Optional[LicenseRecord]:
        """Return the record for ``hardware_id`` or None if there is none"""

    @abstractmethod
    def save(self, record: LicenseRecord) -> LicenseRecord:
        """Create or replace a record"""

    @abstractmethod
    def deactivate(self, hardware_id: str) -> bool:
        """Suspend a license; False if the record does not exist"""

    @abstractmethod
    def list_records(self) -> List[LicenseRecord]:
        pass

    def stats(self, now: Optional[datetime] = None) -> LicenseStats:
        now = now or datetime.now(timezone.utc)
        stats = LicenseStats()
        for record in self.list_records():
            stats.total += 1
            if record.active:
                stats.active += 1
            else:
                stats.inactive += 1
            if record.expiration_date is None:
                stats.perpetual += 1
            elif ensure_utc(record.expiration_date) < now:
                stats.expired += 1
        return stats


class InMemoryLicenseStore(LicenseStore):
    def __init__(self, records: Optional[List[LicenseRecord]] = None):
        self._records: Dict[str, LicenseRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self.save(record)

    def lookup(self, hardware_id: str) -> Optional[LicenseRecord]:
        with self._lock:
            record = self._records.get(hardware_id)
            return record.model_copy(deep=True) if record else None

    def save(self, record: LicenseRecord) -> LicenseRecord:
        now = datetime.now(timezone.utc)
        with self._lock:
            existing = self._records.get(record.hardware_id)
            stored = record.model_copy(deep=True, update={
                "created_at": existing.created_at if existing else (record.created_at or now),
                "updated_at": now,
            })
            self._records[record.hardware_id] = stored
            return stored.model_copy(deep=True)

    def deactivate(self, hardware_id: str) -> bool:
        with self._lock:
            record = self._records.get(hardware_id)
            if record is None:
                return False
            self._records[hardware_id] = record.model_copy(update={
                "active": False,
                "updated_at": datetime.now(timezone.utc),
            })
            return True

    def list_records(self) -> List[LicenseRecord]:
        with self._lock:
            return [record.model_copy(deep=True) for record in self._records.values()]


class SqlAlchemyLicenseStore(LicenseStore):
    """Each call uses its own session, so reads observe the latest committed write"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: License) -> LicenseRecord:
        record = LicenseRecord.model_validate(row)
        return record.model_copy(update={
            "expiration_date": ensure_utc(record.expiration_date),
            "created_at": ensure_utc(record.created_at),
            "updated_at": ensure_utc(record.updated_at),
        })

    def lookup(self, hardware_id: str) -> Optional[LicenseRecord]:
        try:
            with self._session_factory() as db:
                row = db.get(License, hardware_id)
                return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.exception(f"License lookup failed for device {hardware_id}: {e}")
            raise StoreUnavailableException() from e

    def save(self, record: LicenseRecord) -> LicenseRecord:
        try:
            with self._session_factory() as db:
                row = db.get(License, record.hardware_id)
                if row is None:
                    row = License(hardware_id=record.hardware_id)
                    db.add(row)
                row.company_profile = record.company_profile.model_dump(by_alias=True, exclude_none=True)
                row.expiration_date = ensure_utc(record.expiration_date)
                row.features = list(record.features)
                row.active = record.active
                db.commit()
                db.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as e:
            logger.exception(f"Saving license for device {record.hardware_id} failed: {e}")
            raise StoreUnavailableException() from e

    def deactivate(self, hardware_id: str) -> bool:
        try:
            with self._session_factory() as db:
                row = db.get(License, hardware_id)
                if row is None:
                    return False
                row.active = False
                db.commit()
                return True
        except SQLAlchemyError as e:
            logger.exception(f"Revoking license for device {hardware_id} failed: {e}")
            raise StoreUnavailableException() from e

    def list_records(self) -> List[LicenseRecord]:
        try:
            with self._session_factory() as db:
                rows = db.query(License).order_by(License.created_at).all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.exception(f"Listing licenses failed: {e}")
            raise StoreUnavailableException() from e
