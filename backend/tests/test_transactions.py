"""
Transaction boundary and retry policy tests.

Verifies:
- A unit of work never absorbs or discards writes it did not make
- Transient store failures are retried, then surface as a retryable 503
- Business-rule errors propagate on the first attempt
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from pharmapos.errors import InsufficientStock, InvalidStateError, TransientStoreError
from pharmapos.extensions import db
from pharmapos.models import Client
from pharmapos.services import inventory_service
from pharmapos.services.concurrency import run_with_retry, unit_of_work


def _locked():
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


class _Counted:
    """Callable that fails with the queued exceptions, then returns "done"."""

    def __init__(self, *failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "done"


class TestUnitOfWorkBoundary:
    def test_flushed_outer_work_is_rejected_and_kept(self, paracetamol, warehouse, admin_user):
        db.session.add(Client(first_name="Pendiente"))
        db.session.flush()

        with pytest.raises(InvalidStateError):
            inventory_service.apply_adjustment(
                product_id=paracetamol.id, warehouse_id=warehouse.id, delta=1, actor_user_id=admin_user.id
            )

        assert db.session.query(Client).filter_by(first_name="Pendiente").count() == 1
        assert inventory_service.get_record(paracetamol.id, warehouse.id) is None
        db.session.rollback()

    def test_pending_outer_work_is_rejected(self, db_session):
        db.session.add(Client(first_name="Sin guardar"))

        with pytest.raises(InvalidStateError):
            with unit_of_work():
                pass

        assert db.session.new
        db.session.rollback()

    def test_outer_work_error_is_not_retried(self, db_session):
        db.session.add(Client(first_name="Pendiente"))
        db.session.flush()

        calls = []

        def op():
            calls.append(1)
            with unit_of_work():
                pass

        with pytest.raises(InvalidStateError):
            run_with_retry(op, operation="test.outer", attempts=3, backoff_base=0)
        assert len(calls) == 1
        db.session.rollback()

    def test_clean_session_commits(self, db_session):
        with unit_of_work() as session:
            session.add(Client(first_name="Guardado"))

        db.session.rollback()
        assert Client.query.filter_by(first_name="Guardado").count() == 1


class TestRetryPolicy:
    def test_exhaustion_is_retryable_503(self, db_session):
        op = _Counted(_locked(), _locked(), _locked())

        with pytest.raises(TransientStoreError) as exc_info:
            run_with_retry(op, operation="sale.create", attempts=3, backoff_base=0)

        assert op.calls == 3
        err = exc_info.value
        assert err.status_code == 503
        assert err.details == {"operation": "sale.create", "attempts": 3, "retryable": True}
        payload = err.to_dict()
        assert "locked" not in payload["error"]
        assert "BEGIN" not in payload["error"]

    def test_recovers_after_transient_failures(self, db_session):
        op = _Counted(_locked(), StaleDataError("version mismatch"))

        assert run_with_retry(op, operation="inventory.adjust", attempts=3, backoff_base=0) == "done"
        assert op.calls == 3

    def test_failed_attempt_is_rolled_back(self, db_session):
        def op():
            db.session.add(Client(first_name="Intento"))
            db.session.flush()
            raise _locked()

        with pytest.raises(TransientStoreError):
            run_with_retry(op, operation="test.rollback", attempts=2, backoff_base=0)

        assert Client.query.filter_by(first_name="Intento").count() == 0

    def test_business_errors_are_not_retried(self, db_session):
        op = _Counted(InsufficientStock(product_id=1, warehouse_id=1, available=2, requested=5))

        with pytest.raises(InsufficientStock):
            run_with_retry(op, operation="sale.create", attempts=3, backoff_base=0)

        assert op.calls == 1

    def test_defaults_come_from_config(self, app, db_session):
        op = _Counted(*[_locked() for _ in range(5)])
        configured = app.config["TRANSACTION_RETRY_ATTEMPTS"]
        app.config["TRANSACTION_RETRY_ATTEMPTS"] = 2
        try:
            with pytest.raises(TransientStoreError) as exc_info:
                run_with_retry(op, operation="sale.cancel")
        finally:
            app.config["TRANSACTION_RETRY_ATTEMPTS"] = configured
        assert op.calls == 2
        assert exc_info.value.attempts == 2
