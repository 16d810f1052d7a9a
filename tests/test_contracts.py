"""
Test suite for contracts module

Tests record validation, derived dates and legacy status handling.
"""

import pytest
from decimal import Decimal
from datetime import date

from lending_engine.schedule import RepaymentCycle
from lending_engine.contracts import (
    LoanContract, CreditContract, Payout, BadDebt,
    LoanStatus, CreditStatus, PayoutType,
    normalize_loan_status, split_archived_status
)


def make_loan(**overrides):
    fields = dict(
        id="L-1", debtor_id="D-1", principal=Decimal('100000'), annual_rate=Decimal('12'),
        tenure_months=12, origination_date=date(2024, 1, 15), repayment_cycle="monthly"
    )
    fields.update(overrides)
    return LoanContract(**fields)


class TestLoanStatusNames:
    """Test canonical and legacy loan status values"""

    def test_canonical(self):
        assert normalize_loan_status("performing") == LoanStatus.PERFORMING
        assert normalize_loan_status(" FULL_PROVISION ") == LoanStatus.FULL_PROVISION
        assert normalize_loan_status(LoanStatus.PRELIQUIDATED) == LoanStatus.PRELIQUIDATED

    def test_legacy_aliases(self):
        assert normalize_loan_status("active") == LoanStatus.PERFORMING
        assert normalize_loan_status("partial_repaid") == LoanStatus.PERFORMING
        assert normalize_loan_status("overdue") == LoanStatus.NON_PERFORMING
        assert normalize_loan_status("defaulted") == LoanStatus.FULL_PROVISION
        assert normalize_loan_status("repaid") == LoanStatus.PRELIQUIDATED

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown loan status"):
            normalize_loan_status("written_off")
        with pytest.raises(ValueError):
            normalize_loan_status(None)

    def test_archived_is_a_flag(self):
        assert split_archived_status("archived") == (LoanStatus.PERFORMING, True)
        assert split_archived_status("overdue", archived=True) == (LoanStatus.NON_PERFORMING, True)
        assert split_archived_status("performing") == (LoanStatus.PERFORMING, False)


class TestLoanContract:
    """Test loan record construction"""

    def test_derives_dates(self):
        loan = make_loan()

        assert loan.maturity_date == date(2025, 1, 15)
        assert loan.first_repayment_date == date(2024, 2, 15)
        assert loan.disbursement_date == date(2024, 1, 15)
        assert loan.repayment_cycle == RepaymentCycle.MONTHLY
        assert loan.status == LoanStatus.PERFORMING

    def test_stored_dates_are_kept(self):
        loan = make_loan(maturity_date="2025-02-01", first_repayment_date="2024-03-01")

        assert loan.maturity_date == date(2025, 2, 1)
        assert loan.first_repayment_date == date(2024, 3, 1)

    def test_without_cycle(self):
        loan = make_loan(repayment_cycle=None)

        assert loan.maturity_date == date(2025, 1, 15)
        assert loan.first_repayment_date is None

    def test_coerces_stored_values(self):
        loan = make_loan(
            principal="20,000.00", annual_rate=12.5, tenure_months="6",
            origination_date="2024-01-15T09:00:00", status="overdue", amount_repaid=None
        )

        assert loan.principal == Decimal('20000.00')
        assert loan.annual_rate == Decimal('12.5')
        assert loan.tenure_months == 6
        assert loan.origination_date == date(2024, 1, 15)
        assert loan.status == LoanStatus.NON_PERFORMING
        assert loan.amount_repaid == Decimal('0')

    def test_legacy_archived_status(self):
        loan = make_loan(status="archived")

        assert loan.status == LoanStatus.PERFORMING
        assert loan.archived
        assert not loan.is_receivable

    def test_validation(self):
        with pytest.raises(ValueError, match="principal must be positive"):
            make_loan(principal=0)
        with pytest.raises(ValueError, match="between 0 and 100"):
            make_loan(annual_rate=150)
        with pytest.raises(ValueError, match="tenure"):
            make_loan(tenure_months=0)
        with pytest.raises(ValueError, match="origination_date"):
            make_loan(origination_date="someday")
        with pytest.raises(ValueError, match="Disbursement date"):
            make_loan(disbursement_date=date(2024, 1, 1))
        with pytest.raises(ValueError, match="repayment cycle"):
            make_loan(repayment_cycle="weekly")
        with pytest.raises(ValueError, match="cannot be negative"):
            make_loan(interest_repaid=-1)

    def test_outstanding_principal(self):
        assert make_loan(amount_repaid=Decimal('8333.33')).outstanding_principal == Decimal('91666.67')
        # Over-repayment is surfaced, not rejected
        assert make_loan(amount_repaid=Decimal('100000.50')).outstanding_principal == Decimal('-0.50')

    def test_receivable_statuses(self):
        assert make_loan(status="performing").is_receivable
        assert make_loan(status="non_performing").is_receivable
        assert not make_loan(status="full_provision").is_receivable
        assert not make_loan(status="preliquidated").is_receivable

    def test_immutable(self):
        loan = make_loan()
        with pytest.raises(AttributeError):
            loan.amount_repaid = Decimal('1')


class TestCreditContract:
    """Test creditor placement construction"""

    def test_defaults(self):
        credit = CreditContract(
            id="CR-1", creditor_id="C-1", principal=50000, annual_rate=10,
            tenure_months=6, start_date="2024-01-01"
        )

        assert credit.end_date == date(2024, 7, 1)
        assert credit.remaining_principal == Decimal('50000')
        assert credit.status == CreditStatus.ACTIVE
        assert credit.is_open

    def test_status_from_string(self):
        credit = CreditContract(
            id="CR-1", creditor_id="C-1", principal=50000, annual_rate=10,
            tenure_months=6, start_date=date(2024, 1, 1), status="Matured"
        )
        assert credit.status == CreditStatus.MATURED
        assert credit.is_open

    def test_remaining_principal_bounds(self):
        with pytest.raises(ValueError, match="cannot exceed"):
            CreditContract(
                id="CR-1", creditor_id="C-1", principal=50000, annual_rate=10,
                tenure_months=6, start_date=date(2024, 1, 1), remaining_principal=60000
            )
        with pytest.raises(ValueError, match="cannot be negative"):
            CreditContract(
                id="CR-1", creditor_id="C-1", principal=50000, annual_rate=10,
                tenure_months=6, start_date=date(2024, 1, 1), remaining_principal=-1
            )

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            CreditContract(
                id="CR-1", creditor_id="C-1", principal=50000, annual_rate=10,
                tenure_months=6, start_date=date(2024, 1, 1), status="frozen"
            )


class TestPayoutAndBadDebt:
    """Test payout and bad debt records"""

    def test_payout(self):
        payout = Payout(
            id="P-1", credit_id="CR-1", principal_amount="0", interest_amount="250.50",
            payout_type="interest_only", paid_at="2024-02-01"
        )

        assert payout.payout_type == PayoutType.INTEREST_ONLY
        assert payout.total_amount == Decimal('250.50')
        assert payout.paid_at == date(2024, 2, 1)

    def test_empty_payout(self):
        with pytest.raises(ValueError, match="Nothing to pay out"):
            Payout(
                id="P-1", credit_id="CR-1", principal_amount=0, interest_amount=0,
                payout_type=PayoutType.INTEREST_ONLY, paid_at=date(2024, 2, 1)
            )

    def test_bad_debt(self):
        bad_debt = BadDebt(id="BD-1", loan_id="L-4", declared_date=date(2024, 9, 1), amount=15000)

        assert bad_debt.outstanding_amount == Decimal('15000')
        assert not bad_debt.is_fully_recovered

    def test_bad_debt_recovery_bounds(self):
        with pytest.raises(ValueError, match="cannot exceed"):
            BadDebt(id="BD-1", loan_id="L-4", declared_date=date(2024, 9, 1),
                    amount=15000, recovered_amount=15001)
        with pytest.raises(ValueError, match="must be positive"):
            BadDebt(id="BD-1", loan_id="L-4", declared_date=date(2024, 9, 1), amount=0)

    def test_fully_recovered_flag(self):
        recovered = BadDebt(id="BD-1", loan_id="L-4", declared_date=date(2024, 9, 1),
                            amount=15000, recovered_amount=15000)
        assert recovered.is_fully_recovered

        # Once set the flag is kept
        sticky = BadDebt(id="BD-2", loan_id="L-5", declared_date=date(2024, 9, 1),
                         amount=15000, recovered_amount=7500, is_fully_recovered=True)
        assert sticky.is_fully_recovered
