"""
Tests for the license stores
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from license_server.database import create_session_factory, init_db
from license_server.schemas.license import CompanyProfile, LicenseRecord
from license_server.services.store import InMemoryLicenseStore, SqlAlchemyLicenseStore
from license_server.utils.exceptions import StoreUnavailableException

@pytest.fixture
def sql_store():
    session_factory = create_session_factory("sqlite://")
    init_db(session_factory)
    return SqlAlchemyLicenseStore(session_factory)

@pytest.fixture(params=["memory", "sqlalchemy"])
def any_store(request, sql_store):
    if request.param == "memory":
        return InMemoryLicenseStore()
    return sql_store

def test_lookup_missing_returns_none(any_store):
    assert any_store.lookup("UNKNOWN") is None

def test_save_and_lookup(any_store, dev1_record):
    any_store.save(dev1_record)
    record = any_store.lookup("DEV-1")

    assert record.hardware_id == "DEV-1"
    assert record.expiration_date == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert record.features == ["export", "import"]
    assert record.company_profile.legal_name == "MiEmpresa, S.A."
    assert record.company_profile.representative_name == "Juan Pérez"
    assert record.active is True
    assert record.created_at is not None

def test_save_replaces_existing_record(any_store, dev1_record):
    any_store.save(dev1_record)
    any_store.save(dev1_record.model_copy(update={"features": ["reports"], "expiration_date": None}))

    record = any_store.lookup("DEV-1")
    assert record.features == ["reports"]
    assert record.expiration_date is None
    assert len(any_store.list_records()) == 1

def test_deactivate(any_store, dev1_record):
    any_store.save(dev1_record)
    assert any_store.deactivate("DEV-1") is True
    assert any_store.lookup("DEV-1").active is False
    assert any_store.deactivate("UNKNOWN") is False

def test_lookup_returns_copies():
    store = InMemoryLicenseStore([LicenseRecord(hardware_id="A", features=["x"])])
    record = store.lookup("A")
    record.features.append("y")
    assert store.lookup("A").features == ["x"]

def test_stats(any_store):
    now = datetime.now(timezone.utc)
    any_store.save(LicenseRecord(hardware_id="A", expiration_date=now + timedelta(days=30)))
    any_store.save(LicenseRecord(hardware_id="B", expiration_date=now - timedelta(days=1)))
    any_store.save(LicenseRecord(hardware_id="C"))
    any_store.save(LicenseRecord(hardware_id="D"))
    any_store.deactivate("D")

    stats = any_store.stats(now)
    assert stats.total == 4
    assert stats.active == 3
    assert stats.inactive == 1
    assert stats.expired == 1
    assert stats.perpetual == 2

def test_profile_keeps_unknown_fields(any_store):
    profile = CompanyProfile.model_validate({"razonSocial": "X", "telefono": "555-0100"})
    any_store.save(LicenseRecord(hardware_id="A", company_profile=profile))
    stored = any_store.lookup("A").company_profile
    assert stored.model_dump(by_alias=True, exclude_none=True) == {"razonSocial": "X", "telefono": "555-0100"}

def test_database_error_is_store_unavailable(sql_store):
    with patch.object(sql_store, "_session_factory", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        with pytest.raises(StoreUnavailableException) as exc_info:
            sql_store.lookup("DEV-1")
    assert exc_info.value.status_code == 500

def test_database_error_is_logged_with_traceback(sql_store, caplog):
    with patch.object(sql_store, "_session_factory", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        with pytest.raises(StoreUnavailableException):
            sql_store.list_records()
    failures = [r for r in caplog.records if r.name == "license_server.services.store"]
    assert failures and failures[0].exc_info is not None
