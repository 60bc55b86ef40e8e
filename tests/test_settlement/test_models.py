"""Tests for settlement status models."""

from datetime import datetime, timezone

import pytest

from app.settlement.models import (
    SettlementOutcome,
    TransferStatus,
    WaitResult,
)


class TestTransferStatus:
    """Test cases for TransferStatus."""

    def test_should_not_regress_fulfilled_on_stale_observation(self):
        """A later stale poll never undoes fulfillment."""
        best = TransferStatus(executed=True, fulfilled=True)

        merged = best.merge(TransferStatus(executed=False, fulfilled=False))

        assert merged.fulfilled is True
        assert merged.executed is True

    def test_should_advance_flags_from_later_observation(self):
        merged = TransferStatus().merge(TransferStatus(executed=True))

        assert merged.executed is True
        assert merged.fulfilled is False
        assert merged.is_terminal is True

    def test_should_prefer_later_amounts_when_present(self):
        earlier = TransferStatus(amount_in=10, amount_out=9, requested_at=1)
        later = TransferStatus(amount_in=None, amount_out=8)

        merged = earlier.merge(later)

        assert merged.amount_in == 10
        assert merged.amount_out == 8
        assert merged.requested_at == 1

    def test_should_parse_api_payload_with_string_amounts(self):
        """Amounts larger than a float can hold survive parsing exactly."""
        status = TransferStatus.from_api(
            {
                "executed": True,
                "fulfilled": False,
                "requestedAt": 1717000000,
                "amountIn": "100000000000000000000000001",
                "amountOut": 99,
            }
        )

        assert status.executed is True
        assert status.fulfilled is False
        assert status.requested_at == 1717000000
        assert status.amount_in == 100000000000000000000000001
        assert status.amount_out == 99

    def test_should_ignore_malformed_amounts(self):
        status = TransferStatus.from_api({"amountIn": "1.5", "amountOut": True})

        assert status.amount_in is None
        assert status.amount_out is None
        assert status.is_terminal is False

    @pytest.mark.parametrize("flag", ["false", "true", 1, "1", None])
    def test_should_only_accept_boolean_true_flags(self, flag):
        """Loosely typed flags never count as settlement."""
        status = TransferStatus.from_api({"executed": flag, "fulfilled": flag})

        assert status.executed is False
        assert status.fulfilled is False


class TestWaitResult:
    """Test cases for WaitResult."""

    def test_should_report_confirmed_only_for_settled_outcomes(self):
        observed_at = datetime.now(timezone.utc)

        for outcome, confirmed in (
            (SettlementOutcome.FULFILLED, True),
            (SettlementOutcome.EXECUTED, True),
            (SettlementOutcome.TIMED_OUT, False),
        ):
            result = WaitResult(
                outcome=outcome,
                observed_at=observed_at,
                elapsed=0.0,
                status=TransferStatus(),
                polls=1,
            )
            assert result.confirmed is confirmed
