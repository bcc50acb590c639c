"""Unit tests for the best-effort audit trail"""

import uuid

from sqlalchemy.exc import OperationalError

from abaya_bank.infrastructure.observability.metrics import audit_write_failures_counter
from abaya_bank.services.audit import RequestContext, list_audit_logs, record_audit


def test_record_audit_persists_context(db, admin):
    """Test audit entries keep the request id, address and user agent"""
    target = uuid.uuid4()

    entry = record_audit(
        db,
        actor_id=admin.id,
        action="account_frozen",
        target_type="account",
        target_id=target,
        reason="Fraud review",
        previous_state={"status": "active"},
        new_state={"status": "frozen"},
        context=RequestContext(ip_address="10.0.0.7", user_agent="pytest"),
    )

    assert entry is not None
    logs, total = list_audit_logs(db, action="account_frozen")
    assert total == 1
    assert logs[0].target_id == target
    assert logs[0].ip_address == "10.0.0.7"
    assert logs[0].details == {}


def test_record_audit_failure_is_swallowed(db, admin, monkeypatch):
    """Test a failed audit write is counted and logged, never raised"""

    def broken_commit():
        raise OperationalError("INSERT INTO audit_log", {}, Exception("disk full"))

    before = audit_write_failures_counter._value.get()
    monkeypatch.setattr(db, "commit", broken_commit)

    entry = record_audit(db, admin.id, "loan_rejected", "loan", uuid.uuid4(), reason="No income")

    assert entry is None
    assert audit_write_failures_counter._value.get() == before + 1


def test_list_audit_logs_filters_by_target(db, admin):
    """Test audit listing filters by target type"""
    record_audit(db, admin.id, "loan_approved", "loan", uuid.uuid4())
    record_audit(db, admin.id, "user_role_changed", "user", uuid.uuid4())

    logs, total = list_audit_logs(db, target_type="user")
    assert total == 1
    assert logs[0].action == "user_role_changed"
