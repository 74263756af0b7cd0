from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from audit_service.services.audit_record import (
    AuditRecord,
    InvalidActorId,
    normalize_actor_id,
    parse_actor_id,
)


@pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
def test_blank_actor_ids_normalize_to_none(value):
    assert normalize_actor_id(value) is None
    assert parse_actor_id(value) is None


def test_actor_id_parsing_accepts_integers_and_numeric_strings():
    assert parse_actor_id(7) == 7
    assert parse_actor_id(" 12 ") == 12
    assert parse_actor_id("-3") == -3


@pytest.mark.parametrize("value", ["unknown", "1.5", "1_000", True, 2**31])
def test_actor_id_parsing_rejects_malformed_values(value):
    with pytest.raises(InvalidActorId):
        parse_actor_id(value)


def test_create_normalizes_inputs():
    record = AuditRecord.create(
        "  ", "DELETE", 42, "BOOKING", "Booking removed", "", "10.0.0.1"
    )

    assert record.actor_id is None
    assert record.action == "DELETE"
    assert record.target_id == "42"
    assert record.target_type == "BOOKING"
    assert record.reason == ""


def test_record_is_immutable():
    record = AuditRecord.create("7", "LOGIN")

    with pytest.raises(FrozenInstanceError):
        record.action = "LOGOUT"


def test_to_row_uses_persistence_timestamp():
    record = AuditRecord.create(
        "7", "LOGIN_SUCCESS", "7", "ADMIN", "Login for email: a@b.c", None, "::1"
    )
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)

    row = record.to_row(stamp)

    assert row == {
        "actor_id": 7,
        "action": "LOGIN_SUCCESS",
        "target_id": "7",
        "target_type": "ADMIN",
        "details": "Login for email: a@b.c",
        "reason": None,
        "timestamp": stamp,
        "ip_address": "::1",
    }


def test_to_row_surfaces_invalid_actor():
    record = AuditRecord.create("unknown", "PASSWORD_RESET_REQUEST")

    assert record.actor_id == "unknown"
    with pytest.raises(InvalidActorId):
        record.to_row(datetime.now(timezone.utc))
