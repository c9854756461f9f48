"""
Unit Tests for the Ledger Service

Tests cover:
1. Balance credit/debit primitives
2. Earnings posting and reversal
3. Withdrawal escrow and resolution
4. Balance summary
5. End-to-end earning → withdrawal → rejection scenario
"""

import pytest
from decimal import Decimal
from uuid import UUID

from label_ledger.models import WithdrawalStatus
from label_ledger.money import MAX_CENTS, from_cents, to_cents
from label_ledger.service import (
    LedgerService,
    EarningNotFoundError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    UserNotFoundError,
    WithdrawalNotFoundError,
)


MISSING_ID = UUID("00000000-0000-0000-0000-000000000000")


def _artist(service: LedgerService, email: str = "artist@example.com"):
    return service.create_user(email, artist_name="Test Artist")


class TestBalanceAccessor:
    """Tests for the credit/debit primitives."""

    def test_new_user_starts_at_zero(self):
        """A freshly created user has no funds."""
        service = LedgerService()
        user = _artist(service)

        assert service.get_balance(user.id).current_balance == Decimal("0.00")

    def test_credit_then_debit(self):
        """Credit and debit move the balance by exactly the amount."""
        service = LedgerService()
        user = _artist(service)

        assert service.balances.credit(user.id, Decimal("75.50")) == Decimal("75.50")
        assert service.balances.debit(user.id, Decimal("25.25")) == Decimal("50.25")
        assert service.get_balance(user.id).current_balance == Decimal("50.25")

    def test_debit_more_than_balance_fails_without_side_effect(self):
        """An overdraft raises and leaves the balance untouched."""
        service = LedgerService()
        user = _artist(service)
        service.balances.credit(user.id, Decimal("10.00"))

        with pytest.raises(InsufficientFundsError):
            service.balances.debit(user.id, Decimal("10.01"))

        assert service.get_balance(user.id).current_balance == Decimal("10.00")

    def test_debit_exact_balance_reaches_zero(self):
        """Spending everything is allowed; balance never goes negative."""
        service = LedgerService()
        user = _artist(service)
        service.balances.credit(user.id, Decimal("42.00"))

        assert service.balances.debit(user.id, Decimal("42.00")) == Decimal("0.00")
        with pytest.raises(InsufficientFundsError):
            service.balances.debit(user.id, Decimal("0.01"))

    def test_unknown_user(self):
        """Crediting or debiting a missing user raises UserNotFoundError."""
        service = LedgerService()

        with pytest.raises(UserNotFoundError):
            service.balances.credit(MISSING_ID, Decimal("1.00"))
        with pytest.raises(UserNotFoundError):
            service.balances.debit(MISSING_ID, Decimal("1.00"))

    def test_rejects_non_positive_and_sub_cent_amounts(self):
        """Amounts must be positive and expressible in cents."""
        service = LedgerService()
        user = _artist(service)

        with pytest.raises(ValueError):
            service.balances.credit(user.id, Decimal("0"))
        with pytest.raises(ValueError):
            service.balances.credit(user.id, Decimal("-5.00"))
        with pytest.raises(ValueError):
            service.balances.credit(user.id, Decimal("0.005"))

    def test_rejects_amounts_beyond_storage_range(self):
        """Amounts whose cents do not fit a 64-bit integer are refused up front."""
        service = LedgerService()
        user = _artist(service)

        with pytest.raises(ValueError):
            to_cents("100000000000000000000")
        with pytest.raises(ValueError):
            service.create_earning(user.id, "2024-01", Decimal("100000000000000000000"))

        assert service.get_balance(user.id).current_balance == Decimal("0.00")
        assert service.list_earnings(user.id) == []

    def test_credit_cannot_overflow_balance(self):
        """A credit that would push the balance past the storable maximum fails cleanly."""
        service = LedgerService()
        user = _artist(service)
        top = from_cents(MAX_CENTS)
        service.balances.credit(user.id, top)

        with pytest.raises(ValueError):
            service.balances.credit(user.id, Decimal("0.01"))

        assert service.get_user(user.id).balance == top

    def test_repeated_small_credits_do_not_drift(self):
        """Ten credits of 0.10 add up to exactly 1.00."""
        service = LedgerService()
        user = _artist(service)

        for _ in range(10):
            service.balances.credit(user.id, Decimal("0.10"))

        assert service.get_balance(user.id).current_balance == Decimal("1.00")


class TestEarningsFlow:
    """Tests for posting and reversing earnings."""

    def test_create_earning_credits_balance(self):
        """Posting an earning credits the owner's balance in the same step."""
        service = LedgerService()
        user = _artist(service)

        earning = service.create_earning(user.id, "2024-03", Decimal("125.40"), streams=48210, downloads=37)

        assert earning.amount == Decimal("125.40")
        assert earning.streams == 48210
        assert earning.downloads == 37
        assert service.get_balance(user.id).current_balance == Decimal("125.40")

    def test_create_earning_for_unknown_user_fails(self):
        """No earning row is left behind when the user does not exist."""
        service = LedgerService()

        with pytest.raises(UserNotFoundError):
            service.create_earning(MISSING_ID, "2024-03", Decimal("10.00"))

        assert service.list_all_earnings() == []

    def test_delete_earning_round_trip(self):
        """Create then delete restores the balance exactly."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("33.33"))
        before = service.get_balance(user.id).current_balance

        earning = service.create_earning(user.id, "2024-02", Decimal("19.99"))
        service.delete_earning(earning.id)

        assert service.get_balance(user.id).current_balance == before
        assert [e.month for e in service.list_earnings(user.id)] == ["2024-01"]

    def test_delete_missing_earning(self):
        """Deleting an unknown earning raises EarningNotFoundError."""
        service = LedgerService()

        with pytest.raises(EarningNotFoundError):
            service.delete_earning(MISSING_ID)

    def test_delete_earning_already_spent_is_refused(self):
        """If the money was withdrawn, the reversal fails and nothing changes."""
        service = LedgerService()
        user = _artist(service)
        earning = service.create_earning(user.id, "2024-01", Decimal("100.00"))
        service.create_withdrawal(user.id, Decimal("80.00"), "IBAN")

        with pytest.raises(InsufficientFundsError):
            service.delete_earning(earning.id)

        assert service.get_balance(user.id).current_balance == Decimal("20.00")
        assert len(service.list_earnings(user.id)) == 1

    def test_earnings_listed_newest_month_first(self):
        """User earnings come back newest month first."""
        service = LedgerService()
        user = _artist(service)
        for month in ("2024-01", "2024-03", "2024-02"):
            service.create_earning(user.id, month, Decimal("1.00"))

        assert [e.month for e in service.list_earnings(user.id)] == ["2024-03", "2024-02", "2024-01"]

    def test_total_lifetime_earnings(self):
        """Lifetime total sums every user's earnings."""
        service = LedgerService()
        first = _artist(service, "a@example.com")
        second = _artist(service, "b@example.com")
        service.create_earning(first.id, "2024-01", Decimal("10.10"))
        service.create_earning(second.id, "2024-01", Decimal("20.20"))

        assert service.earnings.total_lifetime_earnings() == Decimal("30.30")


class TestWithdrawalFlow:
    """Tests for withdrawal escrow and resolution."""

    def test_create_withdrawal_escrows_amount(self):
        """Requesting a withdrawal debits the balance immediately."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))

        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN", "DE89 3704 0044 0532 0130 00")

        assert withdrawal.status == WithdrawalStatus.PENDING
        assert withdrawal.amount == Decimal("60.00")
        assert withdrawal.processed_at is None
        assert service.get_balance(user.id).current_balance == Decimal("40.00")

    def test_withdrawal_over_balance_fails(self):
        """An oversized request raises and creates no withdrawal."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))

        with pytest.raises(InsufficientFundsError):
            service.create_withdrawal(user.id, Decimal("150.00"), "IBAN")

        assert service.get_balance(user.id).current_balance == Decimal("100.00")
        assert service.list_withdrawals(user.id) == []

    def test_reject_refunds_once(self):
        """REJECTED refunds the escrow; repeating REJECTED does nothing."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")

        rejected = service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.REJECTED, "IBAN mismatch")
        assert rejected.status == WithdrawalStatus.REJECTED
        assert rejected.note == "IBAN mismatch"
        assert rejected.processed_at is not None
        assert service.get_balance(user.id).current_balance == Decimal("100.00")

        again = service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.REJECTED, "retry")
        assert again.status == WithdrawalStatus.REJECTED
        assert service.get_balance(user.id).current_balance == Decimal("100.00")

    def test_resolve_reports_whether_status_moved(self):
        """Only the call that leaves PENDING reports a change."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")

        first, changed = service.resolve_withdrawal(withdrawal.id, WithdrawalStatus.REJECTED)
        assert changed is True
        assert first.status == WithdrawalStatus.REJECTED

        second, changed = service.resolve_withdrawal(withdrawal.id, WithdrawalStatus.REJECTED)
        assert changed is False
        assert second.processed_at == first.processed_at

    def test_complete_keeps_escrow(self):
        """COMPLETED only records the payout; the balance stays debited."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")

        completed = service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.COMPLETED)

        assert completed.status == WithdrawalStatus.COMPLETED
        assert completed.processed_at is not None
        assert service.get_balance(user.id).current_balance == Decimal("40.00")

    def test_cannot_reject_completed_withdrawal(self):
        """Moving between terminal states is refused and refunds nothing."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")
        service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.COMPLETED)

        with pytest.raises(InvalidStateTransitionError):
            service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.REJECTED)

        assert service.get_balance(user.id).current_balance == Decimal("40.00")
        assert service.get_withdrawal(withdrawal.id).status == WithdrawalStatus.COMPLETED

    def test_cannot_reopen_withdrawal(self):
        """PENDING is never a valid target status."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")

        with pytest.raises(InvalidStateTransitionError):
            service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.PENDING)

    def test_update_missing_withdrawal(self):
        """Resolving an unknown withdrawal raises WithdrawalNotFoundError."""
        service = LedgerService()

        with pytest.raises(WithdrawalNotFoundError):
            service.update_withdrawal_status(MISSING_ID, WithdrawalStatus.REJECTED)

    def test_admin_listing_filters_by_status(self):
        """Admin listing covers every user and can filter by status."""
        service = LedgerService()
        first = _artist(service, "a@example.com")
        second = _artist(service, "b@example.com")
        for user in (first, second):
            service.create_earning(user.id, "2024-01", Decimal("100.00"))
        done = service.create_withdrawal(first.id, Decimal("50.00"), "IBAN")
        service.create_withdrawal(second.id, Decimal("70.00"), "PAYPAL")
        service.update_withdrawal_status(done.id, WithdrawalStatus.COMPLETED)

        assert len(service.list_all_withdrawals()) == 2
        pending = service.list_all_withdrawals(WithdrawalStatus.PENDING)
        assert [w.user_id for w in pending] == [second.id]


class TestBalanceSummary:
    """Tests for the balance summary figures."""

    def test_summary_totals(self):
        """Earned, withdrawn and pending totals are reported alongside the balance."""
        service = LedgerService()
        user = _artist(service)
        service.create_earning(user.id, "2024-01", Decimal("200.00"))
        paid = service.create_withdrawal(user.id, Decimal("50.00"), "IBAN")
        service.create_withdrawal(user.id, Decimal("30.00"), "IBAN")
        service.update_withdrawal_status(paid.id, WithdrawalStatus.COMPLETED)

        summary = service.get_balance(user.id)

        assert summary.current_balance == Decimal("120.00")
        assert summary.total_earned == Decimal("200.00")
        assert summary.total_withdrawn == Decimal("50.00")
        assert summary.pending_withdrawals == Decimal("30.00")

    def test_summary_for_unknown_user(self):
        service = LedgerService()

        with pytest.raises(UserNotFoundError):
            service.get_balance(MISSING_ID)


class TestLedgerScenario:
    """Earning → withdrawal → rejection → oversized withdrawal."""

    def test_full_cycle(self):
        service = LedgerService()
        user = _artist(service)

        service.create_earning(user.id, "2024-01", Decimal("100.00"))
        assert service.get_balance(user.id).current_balance == Decimal("100.00")

        withdrawal = service.create_withdrawal(user.id, Decimal("60.00"), "IBAN")
        assert service.get_balance(user.id).current_balance == Decimal("40.00")
        assert service.get_withdrawal(withdrawal.id).status == WithdrawalStatus.PENDING

        service.update_withdrawal_status(withdrawal.id, WithdrawalStatus.REJECTED)
        assert service.get_balance(user.id).current_balance == Decimal("100.00")
        assert service.get_withdrawal(withdrawal.id).status == WithdrawalStatus.REJECTED

        with pytest.raises(InsufficientFundsError):
            service.create_withdrawal(user.id, Decimal("150.00"), "IBAN")
        assert service.get_balance(user.id).current_balance == Decimal("100.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
