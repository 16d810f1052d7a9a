"""
Interest Accrual Module

Simple interest on an actual/365 basis: Principal x (Rate/100) x (Days/365),
where Days is the number of whole days elapsed. Every dashboard, report and
payout figure goes through these functions so the same contract always shows
the same accrued value.

Results are unrounded Decimals. Net accrual (gross minus interest already
settled) can be negative when more interest was settled than has accrued;
that is reported as-is, not clamped.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Optional

from .contracts import CreditContract, LoanContract
from .money import AmountLike, ZERO, to_decimal


DAYS_IN_YEAR = Decimal('365')
MONTHS_IN_YEAR = Decimal('12')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class AccrualResult:
    """Accrual position of one contract at an instant"""
    principal_base: Decimal       # Principal interest accrues on
    days_elapsed: int
    gross_interest: Decimal       # Accrued before settlement
    settled_interest: Decimal     # Interest already repaid / paid out
    net_interest: Decimal         # gross - settled, may be negative
    current_value: Decimal        # Outstanding principal + net interest
    maturity_value: Decimal       # Principal + full-tenure interest


def days_elapsed(start_date: date, as_of: date, end_date: Optional[date] = None) -> int:
    """Whole days of accrual, frozen at end_date and never negative"""
    effective = as_of
    if end_date is not None and end_date < effective:
        effective = end_date
    return max(0, (effective - start_date).days)


def gross_accrued_interest(
    principal_base: AmountLike,
    annual_rate_percent: AmountLike,
    start_date: date,
    as_of: date,
    end_date: Optional[date] = None
) -> Decimal:
    """Raw simple interest accrued from start_date to as_of (capped at end_date)"""
    days = days_elapsed(start_date, as_of, end_date)
    rate = to_decimal(annual_rate_percent) / HUNDRED
    return to_decimal(principal_base) * rate * (Decimal(days) / DAYS_IN_YEAR)


def accrued_interest(
    principal_base: AmountLike,
    annual_rate_percent: AmountLike,
    start_date: date,
    as_of: date,
    already_settled_interest: AmountLike = ZERO,
    end_date: Optional[date] = None
) -> Decimal:
    """
    Interest accrued to date net of interest already settled.

    Args:
        principal_base: Principal the interest accrues on
        annual_rate_percent: Annual rate in percent (12 for 12%)
        start_date: Accrual start (disbursement or placement date)
        as_of: Instant of measurement
        already_settled_interest: Interest already repaid or paid out
        end_date: Fixed end of the contract, after which nothing accrues

    Returns:
        Net accrued interest; negative signals over-settlement
    """
    gross = gross_accrued_interest(principal_base, annual_rate_percent, start_date, as_of, end_date)
    return gross - to_decimal(already_settled_interest)


def current_value(principal: AmountLike, accrued_interest_net: AmountLike) -> Decimal:
    """Outstanding or remaining principal plus net accrued interest"""
    return to_decimal(principal) + to_decimal(accrued_interest_net)


def maturity_interest(original_principal: AmountLike, annual_rate_percent: AmountLike, tenure_months: int) -> Decimal:
    """Interest earned over the full tenure: P x (Rate/100) x (Months/12)"""
    return (
        to_decimal(original_principal) * to_decimal(annual_rate_percent) * Decimal(tenure_months)
        / (HUNDRED * MONTHS_IN_YEAR)
    )


def maturity_value(original_principal: AmountLike, annual_rate_percent: AmountLike, tenure_months: int) -> Decimal:
    """Total expected repayment at full term, independent of elapsed time"""
    return to_decimal(original_principal) + maturity_interest(original_principal, annual_rate_percent, tenure_months)


def loan_accrual(loan: LoanContract, as_of: date) -> AccrualResult:
    """
    Accrual position of a loan.

    An open loan accrues on its outstanding principal from the disbursement
    date. A preliquidated loan is frozen at its closing date (its maturity
    date when no closing date was recorded) on the disbursed principal, so
    a loan settled with its full accrual reads net zero from then on.
    """
    if loan.is_closed:
        base = loan.principal
        end_date = loan.closed_date or loan.maturity_date
    else:
        base = loan.outstanding_principal
        end_date = None

    gross = gross_accrued_interest(base, loan.annual_rate, loan.disbursement_date, as_of, end_date)
    net = gross - loan.interest_repaid
    return AccrualResult(
        principal_base=base,
        days_elapsed=days_elapsed(loan.disbursement_date, as_of, end_date),
        gross_interest=gross,
        settled_interest=loan.interest_repaid,
        net_interest=net,
        current_value=current_value(loan.outstanding_principal, net),
        maturity_value=maturity_value(loan.principal, loan.annual_rate, loan.tenure_months),
    )


def credit_accrual(credit: CreditContract, as_of: date) -> AccrualResult:
    """
    Accrual position of a creditor placement.

    Interest accrues on the remaining principal from the start date and is
    frozen at the credit's end date.
    """
    gross = gross_accrued_interest(
        credit.remaining_principal, credit.annual_rate, credit.start_date, as_of, credit.end_date
    )
    net = gross - credit.interest_paid_out
    return AccrualResult(
        principal_base=credit.remaining_principal,
        days_elapsed=days_elapsed(credit.start_date, as_of, credit.end_date),
        gross_interest=gross,
        settled_interest=credit.interest_paid_out,
        net_interest=net,
        current_value=current_value(credit.remaining_principal, net),
        maturity_value=maturity_value(credit.principal, credit.annual_rate, credit.tenure_months),
    )
