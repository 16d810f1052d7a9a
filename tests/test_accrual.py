"""
Test suite for accrual module

Tests actual/365 simple interest, the end-date freeze, net accrual against
settled interest and the per-contract accrual positions.
"""

from decimal import Decimal
from datetime import date, timedelta

from lending_engine.money import quantize_amount
from lending_engine.contracts import CreditContract, LoanContract
from lending_engine.accrual import (
    days_elapsed, gross_accrued_interest, accrued_interest, current_value,
    maturity_interest, maturity_value, loan_accrual, credit_accrual
)


def six_month_credit(**overrides):
    """50,000 placed at 10% for 6 months from 2024-01-01"""
    fields = dict(
        id="CR-1", creditor_id="C-1", principal=Decimal('50000'),
        annual_rate=Decimal('10'), tenure_months=6, start_date=date(2024, 1, 1)
    )
    fields.update(overrides)
    return CreditContract(**fields)


class TestDaysElapsed:
    """Test the accrual window"""

    def test_whole_days(self):
        assert days_elapsed(date(2024, 1, 1), date(2024, 7, 1)) == 182
        assert days_elapsed(date(2024, 1, 1), date(2024, 1, 1)) == 0

    def test_never_negative(self):
        assert days_elapsed(date(2024, 1, 1), date(2023, 12, 1)) == 0

    def test_frozen_at_end_date(self):
        assert days_elapsed(date(2024, 1, 1), date(2025, 1, 1), end_date=date(2024, 7, 1)) == 182
        assert days_elapsed(date(2024, 1, 1), date(2024, 3, 1), end_date=date(2024, 7, 1)) == 60


class TestAccruedInterest:
    """Test the accrual formula"""

    def test_half_year(self):
        gross = gross_accrued_interest(Decimal('50000'), Decimal('10'), date(2024, 1, 1), date(2024, 7, 1))

        # 50000 x 0.10 x 182/365, unrounded
        assert gross == Decimal('50000') * Decimal('0.1') * (Decimal('182') / Decimal('365'))
        assert quantize_amount(gross) == Decimal('2493.15')

    def test_full_year(self):
        gross = gross_accrued_interest(Decimal('1000'), Decimal('12'), date(2023, 1, 1), date(2024, 1, 1))
        assert gross == Decimal('120')

    def test_net_of_settled(self):
        net = accrued_interest(
            Decimal('50000'), Decimal('10'), date(2024, 1, 1), date(2024, 7, 1),
            already_settled_interest=Decimal('1000')
        )
        assert quantize_amount(net) == Decimal('1493.15')

    def test_over_settlement_is_negative(self):
        net = accrued_interest(
            Decimal('50000'), Decimal('10'), date(2024, 1, 1), date(2024, 2, 1),
            already_settled_interest=Decimal('3000')
        )
        assert net < 0

    def test_before_start_is_zero(self):
        assert gross_accrued_interest(1000, 12, date(2024, 1, 1), date(2023, 6, 1)) == Decimal('0')

    def test_float_inputs(self):
        gross = gross_accrued_interest(50000.0, 10.0, date(2024, 1, 1), date(2024, 7, 1))
        assert quantize_amount(gross) == Decimal('2493.15')

    def test_monotone_then_frozen(self):
        start = date(2024, 1, 1)
        end = date(2024, 7, 1)
        previous = Decimal('0')
        for offset in range(0, 400, 7):
            as_of = start + timedelta(days=offset)
            gross = gross_accrued_interest(Decimal('50000'), Decimal('10'), start, as_of, end_date=end)
            assert gross >= previous
            previous = gross
        assert previous == gross_accrued_interest(Decimal('50000'), Decimal('10'), start, end)


class TestValues:
    """Test current and maturity values"""

    def test_current_value(self):
        assert current_value(Decimal('50000'), Decimal('2493.15')) == Decimal('52493.15')
        assert current_value(Decimal('0'), Decimal('-10')) == Decimal('-10')

    def test_maturity_value(self):
        assert maturity_interest(Decimal('50000'), Decimal('10'), 6) == Decimal('2500')
        assert maturity_value(Decimal('50000'), Decimal('10'), 6) == Decimal('52500')
        assert maturity_value(Decimal('100000'), Decimal('12'), 12) == Decimal('112000')


class TestCreditAccrual:
    """Test accrual positions of creditor placements"""

    def test_six_month_placement(self):
        result = credit_accrual(six_month_credit(), date(2024, 7, 1))

        assert result.days_elapsed == 182
        assert quantize_amount(result.gross_interest) == Decimal('2493.15')
        assert result.net_interest == result.gross_interest
        assert quantize_amount(result.current_value) == Decimal('52493.15')
        assert result.maturity_value == Decimal('52500')

    def test_frozen_after_end_date(self):
        credit = six_month_credit()
        assert credit_accrual(credit, date(2025, 1, 1)) == credit_accrual(credit, date(2024, 7, 1))

    def test_accrues_on_remaining_principal(self):
        credit = six_month_credit(remaining_principal=Decimal('25000'))
        result = credit_accrual(credit, date(2024, 7, 1))

        assert result.principal_base == Decimal('25000')
        assert quantize_amount(result.gross_interest) == Decimal('1246.58')
        # Maturity value stays on the original placement
        assert result.maturity_value == Decimal('52500')

    def test_interest_paid_out_is_netted(self):
        credit = six_month_credit(interest_paid_out=Decimal('500'), total_paid_out=Decimal('500'))
        result = credit_accrual(credit, date(2024, 7, 1))

        assert result.settled_interest == Decimal('500')
        assert quantize_amount(result.net_interest) == Decimal('1993.15')
        assert quantize_amount(result.current_value) == Decimal('51993.15')

    def test_deterministic(self):
        credit = six_month_credit()
        assert credit_accrual(credit, date(2024, 3, 10)) == credit_accrual(credit, date(2024, 3, 10))


class TestLoanAccrual:
    """Test accrual positions of loans"""

    def test_from_disbursement_date(self):
        loan = LoanContract(
            id="L-1", debtor_id="D-1", principal=Decimal('20000'), annual_rate=Decimal('12'),
            tenure_months=12, origination_date=date(2024, 1, 1), disbursement_date=date(2024, 1, 11)
        )
        result = loan_accrual(loan, date(2024, 1, 21))

        assert result.days_elapsed == 10
        assert result.gross_interest == Decimal('20000') * Decimal('0.12') * (Decimal('10') / Decimal('365'))

    def test_accrues_on_outstanding_principal(self):
        loan = LoanContract(
            id="L-1", debtor_id="D-1", principal=Decimal('20000'), annual_rate=Decimal('12'),
            tenure_months=12, origination_date=date(2024, 1, 1),
            amount_repaid=Decimal('5000'), interest_repaid=Decimal('600')
        )
        result = loan_accrual(loan, date(2024, 7, 1))

        assert result.principal_base == Decimal('15000')
        assert quantize_amount(result.gross_interest) == Decimal('897.53')
        assert quantize_amount(result.net_interest) == Decimal('297.53')
        assert result.current_value == Decimal('15000') + result.net_interest
        # Maturity value stays on the disbursed principal
        assert result.maturity_value == Decimal('22400')

    def test_closed_loan_stops_accruing(self):
        loan = LoanContract(
            id="L-1", debtor_id="D-1", principal=Decimal('20000'), annual_rate=Decimal('12'),
            tenure_months=12, origination_date=date(2024, 1, 1), status="preliquidated",
            amount_repaid=Decimal('20000'), closed_date=date(2024, 6, 30)
        )
        assert loan_accrual(loan, date(2024, 12, 31)) == loan_accrual(loan, date(2024, 6, 30))
        assert loan_accrual(loan, date(2024, 12, 31)).days_elapsed == 181
        assert loan_accrual(loan, date(2024, 12, 31)).principal_base == Decimal('20000')

    def test_closed_loan_without_closing_date_stops_at_maturity(self):
        loan = LoanContract(
            id="L-1", debtor_id="D-1", principal=Decimal('20000'), annual_rate=Decimal('12'),
            tenure_months=12, origination_date=date(2024, 1, 1), status="repaid",
            amount_repaid=Decimal('20000'), interest_repaid=Decimal('2400')
        )
        result = loan_accrual(loan, date(2026, 6, 1))

        assert result == loan_accrual(loan, date(2025, 1, 1))
        assert result.days_elapsed == 366
        assert quantize_amount(result.net_interest) == Decimal('6.58')
