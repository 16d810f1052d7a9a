"""
Reporting Module

Rolls per-contract accrual figures up into dashboard statistics and the
firm's balance sheet. Inputs are already-loaded contract snapshots; the
caller is responsible for reading them from one consistent point in time.

Figures stay unrounded until to_dict(), which is the display boundary.
Empty inputs produce zero totals, and every ratio guards its denominator.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import date, timedelta
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence
from enum import Enum

from .accrual import credit_accrual, loan_accrual
from .contracts import BadDebt, CreditContract, CreditStatus, LoanContract, LoanStatus
from .money import Currency, ZERO, quantize_amount
from .config import get_config
from .logging_config import get_logger, log_action


logger = get_logger("lending_engine.reporting")

HUNDRED = Decimal('100')
PERCENT_PLACES = Decimal('0.1')


class TimePeriod(Enum):
    """Dashboard time period presets"""
    WEEK = ("week", 7)
    MONTH = ("month", 30)
    THREE_MONTHS = ("3months", 90)
    SIX_MONTHS = ("6months", 180)
    YEAR = ("year", 365)
    ALL = ("all", 0)  # No lower bound

    def __init__(self, key: str, days: int):
        self.key = key
        self.days = days

    @classmethod
    def from_key(cls, key: str) -> 'TimePeriod':
        for period in cls:
            if period.key == key:
                return period
        raise ValueError(f"Unknown time period: {key}")


@dataclass(frozen=True)
class DateRange:
    """Inclusive date filter; a missing bound is open"""
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("Date range start must not be after its end")

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    @classmethod
    def for_period(cls, period: TimePeriod, today: date) -> 'DateRange':
        if period == TimePeriod.ALL:
            return cls()
        return cls(start=today - timedelta(days=period.days), end=None)


def _total(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == ZERO:
        return ZERO
    return numerator / denominator


def _display_currency(currency: Optional[Currency]) -> Currency:
    return currency or Currency.from_code(get_config().currency)


def _in_range(date_range: Optional[DateRange], value: date) -> bool:
    return date_range is None or date_range.contains(value)


@dataclass(frozen=True)
class PortfolioStats:
    """Creditor portfolio performance"""
    total_invested: Decimal           # Original principal placed in the period
    total_returns: Decimal            # Paid out to creditors in the period
    total_interest_paid_out: Decimal
    net_profit: Decimal               # returns - invested
    return_pct: Decimal               # net_profit / invested x 100
    average_principal: Decimal
    contracts_funded: int
    active_portfolio_value: Decimal   # Present exposure, never date-filtered
    active_contracts: int

    def to_dict(self, currency: Optional[Currency] = None) -> Dict[str, Any]:
        currency = _display_currency(currency)
        return {
            'total_invested': quantize_amount(self.total_invested, currency),
            'total_returns': quantize_amount(self.total_returns, currency),
            'total_interest_paid_out': quantize_amount(self.total_interest_paid_out, currency),
            'net_profit': quantize_amount(self.net_profit, currency),
            'return_pct': self.return_pct.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP),
            'average_principal': quantize_amount(self.average_principal, currency),
            'contracts_funded': self.contracts_funded,
            'active_portfolio_value': quantize_amount(self.active_portfolio_value, currency),
            'active_contracts': self.active_contracts,
            'currency': currency.code,
        }


def portfolio_stats(
    credits: Sequence[CreditContract],
    as_of: date,
    date_range: Optional[DateRange] = None
) -> PortfolioStats:
    """
    Historical flow figures over credits started within date_range, plus the
    live value of every active or matured credit regardless of the filter.
    """
    in_period = [c for c in credits if _in_range(date_range, c.start_date)]

    total_invested = _total(c.principal for c in in_period)
    total_returns = _total(c.total_paid_out for c in in_period)
    net_profit = total_returns - total_invested

    live = [c for c in credits if c.is_open]
    active_value = _total(credit_accrual(c, as_of).current_value for c in live)

    return PortfolioStats(
        total_invested=total_invested,
        total_returns=total_returns,
        total_interest_paid_out=_total(c.interest_paid_out for c in in_period),
        net_profit=net_profit,
        return_pct=_ratio(net_profit, total_invested) * HUNDRED,
        average_principal=_ratio(total_invested, Decimal(len(in_period))),
        contracts_funded=len(in_period),
        active_portfolio_value=active_value,
        active_contracts=len(live),
    )


@dataclass(frozen=True)
class BalanceSheet:
    """Firm position at an instant; equity is always assets - liabilities"""
    as_of: date
    loans_receivable: Decimal
    loans_receivable_count: int
    accrued_interest_receivable: Decimal
    credits_payable: Decimal
    credits_payable_count: int
    accrued_interest_payable: Decimal

    @property
    def total_assets(self) -> Decimal:
        return self.loans_receivable + self.accrued_interest_receivable

    @property
    def total_liabilities(self) -> Decimal:
        return self.credits_payable + self.accrued_interest_payable

    @property
    def equity(self) -> Decimal:
        return self.total_assets - self.total_liabilities

    def to_dict(self, currency: Optional[Currency] = None) -> Dict[str, Any]:
        """Display figures; totals are built from the rounded lines so they add up"""
        currency = _display_currency(currency)
        loans_receivable = quantize_amount(self.loans_receivable, currency)
        interest_receivable = quantize_amount(self.accrued_interest_receivable, currency)
        credits_payable = quantize_amount(self.credits_payable, currency)
        interest_payable = quantize_amount(self.accrued_interest_payable, currency)
        total_assets = loans_receivable + interest_receivable
        total_liabilities = credits_payable + interest_payable
        return {
            'as_of': self.as_of.isoformat(),
            'loans_receivable': loans_receivable,
            'loans_receivable_count': self.loans_receivable_count,
            'accrued_interest_receivable': interest_receivable,
            'total_assets': total_assets,
            'credits_payable': credits_payable,
            'credits_payable_count': self.credits_payable_count,
            'accrued_interest_payable': interest_payable,
            'total_liabilities': total_liabilities,
            'equity': total_assets - total_liabilities,
            'currency': currency.code,
        }


def balance_sheet(
    loans: Sequence[LoanContract],
    credits: Sequence[CreditContract],
    as_of: date
) -> BalanceSheet:
    """
    Assets are the outstanding principal and net accrued interest of
    performing and non-performing loans; liabilities are the remaining
    principal and net accrued interest of active and matured credits.
    Contracts that start after as_of are left out.
    """
    receivable = [l for l in loans if l.is_receivable and l.disbursement_date <= as_of]
    payable = [c for c in credits if c.is_open and c.start_date <= as_of]

    sheet = BalanceSheet(
        as_of=as_of,
        loans_receivable=_total(l.outstanding_principal for l in receivable),
        loans_receivable_count=len(receivable),
        accrued_interest_receivable=_total(loan_accrual(l, as_of).net_interest for l in receivable),
        credits_payable=_total(c.remaining_principal for c in payable),
        credits_payable_count=len(payable),
        accrued_interest_payable=_total(credit_accrual(c, as_of).net_interest for c in payable),
    )
    log_action(logger, "debug", "Balance sheet computed",
               action="balance_sheet",
               extra={"as_of": as_of, "loans": len(receivable), "credits": len(payable)})
    return sheet


@dataclass(frozen=True)
class DebtorStats:
    """Loan book grouped by status"""
    total_debtors: int
    performing_count: int
    performing_value: Decimal         # Outstanding principal
    non_performing_count: int
    non_performing_value: Decimal     # Outstanding principal
    full_provision_count: int
    full_provision_value: Decimal     # Original principal
    preliquidated_count: int
    preliquidated_value: Decimal      # Original principal
    interest_accrued: Decimal         # Net, performing loans only

    @property
    def total_value(self) -> Decimal:
        return (self.performing_value + self.non_performing_value
                + self.full_provision_value + self.preliquidated_value)

    def to_dict(self, currency: Optional[Currency] = None) -> Dict[str, Any]:
        currency = _display_currency(currency)
        result = {}
        for name, value in self.__dict__.items():
            result[name] = quantize_amount(value, currency) if isinstance(value, Decimal) else value
        result['total_value'] = quantize_amount(self.total_value, currency)
        result['currency'] = currency.code
        return result


def debtor_stats(
    loans: Sequence[LoanContract],
    as_of: date,
    date_range: Optional[DateRange] = None
) -> DebtorStats:
    """Statistics over non-archived loans originated within date_range"""
    selected = [l for l in loans if not l.archived and _in_range(date_range, l.origination_date)]

    def with_status(status: LoanStatus) -> List[LoanContract]:
        return [l for l in selected if l.status == status]

    performing = with_status(LoanStatus.PERFORMING)
    non_performing = with_status(LoanStatus.NON_PERFORMING)
    full_provision = with_status(LoanStatus.FULL_PROVISION)
    preliquidated = with_status(LoanStatus.PRELIQUIDATED)

    return DebtorStats(
        total_debtors=len({l.debtor_id for l in selected}),
        performing_count=len(performing),
        performing_value=_total(l.outstanding_principal for l in performing),
        non_performing_count=len(non_performing),
        non_performing_value=_total(l.outstanding_principal for l in non_performing),
        full_provision_count=len(full_provision),
        full_provision_value=_total(l.principal for l in full_provision),
        preliquidated_count=len(preliquidated),
        preliquidated_value=_total(l.principal for l in preliquidated),
        interest_accrued=_total(loan_accrual(l, as_of).net_interest for l in performing),
    )


@dataclass(frozen=True)
class CreditorStats:
    """Credit book grouped by status"""
    total_creditors: int
    active_count: int
    active_value: Decimal
    matured_count: int
    matured_value: Decimal
    withdrawn_count: int
    withdrawn_value: Decimal
    interest_accrued: Decimal         # Net, active credits only

    @property
    def total_value(self) -> Decimal:
        return self.active_value + self.matured_value + self.withdrawn_value

    def to_dict(self, currency: Optional[Currency] = None) -> Dict[str, Any]:
        currency = _display_currency(currency)
        result = {}
        for name, value in self.__dict__.items():
            result[name] = quantize_amount(value, currency) if isinstance(value, Decimal) else value
        result['total_value'] = quantize_amount(self.total_value, currency)
        result['currency'] = currency.code
        return result


def creditor_stats(
    credits: Sequence[CreditContract],
    as_of: date,
    date_range: Optional[DateRange] = None
) -> CreditorStats:
    """Statistics over credits started within date_range (values are original principal)"""
    selected = [c for c in credits if _in_range(date_range, c.start_date)]
    active = [c for c in selected if c.status == CreditStatus.ACTIVE]
    matured = [c for c in selected if c.status == CreditStatus.MATURED]
    withdrawn = [c for c in selected if c.status == CreditStatus.WITHDRAWN]

    return CreditorStats(
        total_creditors=len({c.creditor_id for c in selected}),
        active_count=len(active),
        active_value=_total(c.principal for c in active),
        matured_count=len(matured),
        matured_value=_total(c.principal for c in matured),
        withdrawn_count=len(withdrawn),
        withdrawn_value=_total(c.principal for c in withdrawn),
        interest_accrued=_total(credit_accrual(c, as_of).net_interest for c in active),
    )


@dataclass(frozen=True)
class BadDebtStats:
    """Write-offs and recoveries"""
    total_count: int
    total_amount: Decimal
    recovered_count: int              # Fully recovered
    recovered_amount: Decimal         # Recovered so far, across all
    outstanding_count: int
    outstanding_amount: Decimal

    @property
    def recovery_rate(self) -> Decimal:
        """Recovered share of written-off amounts, in percent"""
        return _ratio(self.recovered_amount, self.total_amount) * HUNDRED

    def to_dict(self, currency: Optional[Currency] = None) -> Dict[str, Any]:
        currency = _display_currency(currency)
        return {
            'total_count': self.total_count,
            'total_amount': quantize_amount(self.total_amount, currency),
            'recovered_count': self.recovered_count,
            'recovered_amount': quantize_amount(self.recovered_amount, currency),
            'outstanding_count': self.outstanding_count,
            'outstanding_amount': quantize_amount(self.outstanding_amount, currency),
            'recovery_rate': self.recovery_rate.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP),
            'currency': currency.code,
        }


def bad_debt_stats(bad_debts: Sequence[BadDebt]) -> BadDebtStats:
    fully_recovered = [bd for bd in bad_debts if bd.is_fully_recovered]
    return BadDebtStats(
        total_count=len(bad_debts),
        total_amount=_total(bd.amount for bd in bad_debts),
        recovered_count=len(fully_recovered),
        recovered_amount=_total(bd.recovered_amount for bd in bad_debts),
        outstanding_count=len(bad_debts) - len(fully_recovered),
        outstanding_amount=_total(bd.outstanding_amount for bd in bad_debts),
    )
