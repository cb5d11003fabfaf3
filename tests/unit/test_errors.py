"""Tests for lc_common.errors and lc_common.response."""

from src.lc_common.errors import (
    AlreadyFullyRefundedError,
    AppError,
    DuplicateInstrumentError,
    DuplicateRefundError,
    ExceedsRefundableError,
    LedgerInconsistencyError,
    LedgerNotFoundError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
)
from src.lc_common.response import error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500
        assert err.data is None

    def test_custom_http_status(self) -> None:
        err = AppError(code=1001, message="bad", http_status=400)
        assert err.http_status == 400

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_unbalanced_entries(self) -> None:
        err = UnbalancedEntriesError(debits=1000, credits=999)
        assert err.code == 2001
        assert err.http_status == 422
        assert "1000" in err.message
        assert err.data == {"debits_cents": 1000, "credits_cents": 999}

    def test_ledger_not_found(self) -> None:
        err = LedgerNotFoundError("abc")
        assert err.code == 1003
        assert err.http_status == 404

    def test_transaction_not_found(self) -> None:
        err = TransactionNotFoundError("sale_1")
        assert err.code == 2003
        assert err.http_status == 404

    def test_already_fully_refunded_is_idempotent_conflict(self) -> None:
        err = AlreadyFullyRefundedError("tx-1", "refund-1")
        assert err.http_status == 409
        assert err.data == {
            "original_transaction_id": "tx-1",
            "transaction_id": "refund-1",
            "idempotent": True,
        }

    def test_exceeds_refundable_carries_remaining(self) -> None:
        err = ExceedsRefundableError(requested=2000, remaining=999)
        assert err.code == 3002
        assert err.data is not None
        assert err.data["remaining_refundable_cents"] == 999

    def test_duplicate_refund(self) -> None:
        err = DuplicateRefundError("tx-9", "refund:key")
        assert err.http_status == 409
        assert err.data == {"transaction_id": "tx-9", "idempotent": True}

    def test_ledger_inconsistency(self) -> None:
        err = LedgerInconsistencyError("re_123", "refund:abc")
        assert err.code == 3006
        assert err.http_status == 500
        assert err.data is not None
        assert err.data["processor_refund_id"] == "re_123"

    def test_duplicate_instrument(self) -> None:
        err = DuplicateInstrumentError("inst-1")
        assert err.http_status == 409
        assert err.data == {"existing_instrument_id": "inst-1"}


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(3002, "Refund exceeds remaining")
        assert resp.code == 3002
        assert resp.data is None

    def test_error_with_data(self) -> None:
        resp = error_response(3001, "Sale already fully refunded", {"idempotent": True})
        assert resp.data == {"idempotent": True}

    def test_serialization(self) -> None:
        d = success_response({"amount_cents": 2999}).model_dump()
        for key in ("code", "message", "data", "timestamp", "request_id"):
            assert key in d
        assert d["request_id"].startswith("req_")
