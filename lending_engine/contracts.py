"""
Contract Records Module

Loan, credit, payout and bad-debt records as the engine receives them from
the ledger store. Records are immutable: recording operations in the
lifecycle module return new instances instead of mutating these.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Optional, Tuple
from enum import Enum

from .dates import add_months, parse_iso_date
from .money import ZERO, to_decimal
from .schedule import RepaymentCycle, calculate_loan_dates, coerce_tenure


class LoanStatus(Enum):
    """Canonical loan lifecycle states"""
    PERFORMING = "performing"            # Repaying as agreed
    NON_PERFORMING = "non_performing"    # Behind on repayments
    FULL_PROVISION = "full_provision"    # Fully provisioned, candidate bad debt
    PRELIQUIDATED = "preliquidated"      # Principal fully repaid (terminal)


class CreditStatus(Enum):
    """Creditor placement lifecycle states"""
    ACTIVE = "active"          # Earning interest
    MATURED = "matured"        # Tenure elapsed, awaiting payout
    WITHDRAWN = "withdrawn"    # Remaining principal paid out (terminal)


class PayoutType(Enum):
    """Kinds of payout made to a creditor"""
    INTEREST_ONLY = "interest_only"
    PARTIAL_PRINCIPAL = "partial_principal"
    FULL_MATURITY = "full_maturity"
    EARLY_WITHDRAWAL = "early_withdrawal"


# Status values written by older versions of the ledger
LEGACY_LOAN_STATUS_ALIASES = {
    "active": LoanStatus.PERFORMING,
    "partial_repaid": LoanStatus.PERFORMING,
    "overdue": LoanStatus.NON_PERFORMING,
    "defaulted": LoanStatus.FULL_PROVISION,
    "repaid": LoanStatus.PRELIQUIDATED,
}

ARCHIVED_STATUS = "archived"


def normalize_loan_status(value: Any) -> LoanStatus:
    """Map a stored loan status, canonical or legacy, onto LoanStatus"""
    if isinstance(value, LoanStatus):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unknown loan status: {value!r}")
    key = value.strip().lower()
    if key in LEGACY_LOAN_STATUS_ALIASES:
        return LEGACY_LOAN_STATUS_ALIASES[key]
    try:
        return LoanStatus(key)
    except ValueError:
        raise ValueError(f"Unknown loan status: {value!r}")


def split_archived_status(value: Any, archived: bool = False) -> Tuple[LoanStatus, bool]:
    """
    Separate the archive flag from a stored status.

    Some rows carry "archived" in the status column itself; archiving is a
    soft delete on top of the lifecycle, so such rows read as performing
    with the archive flag set.
    """
    if isinstance(value, str) and value.strip().lower() == ARCHIVED_STATUS:
        return LoanStatus.PERFORMING, True
    return normalize_loan_status(value), archived


def _require_date(value: Any, field_name: str) -> date:
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValueError(f"{field_name} must be a valid date")
    return parsed


def _validate_rate(rate: Decimal) -> None:
    if rate < ZERO or rate > Decimal('100'):
        raise ValueError("Annual interest rate must be between 0 and 100 percent")


@dataclass(frozen=True)
class LoanContract:
    """Loan disbursed to a debtor"""
    id: str
    debtor_id: str
    principal: Decimal
    annual_rate: Decimal                  # Percent, e.g. 12 for 12%
    tenure_months: int
    origination_date: date
    disbursement_date: Optional[date] = None
    repayment_cycle: Optional[RepaymentCycle] = None
    status: LoanStatus = LoanStatus.PERFORMING
    amount_repaid: Decimal = ZERO         # Principal repaid to date
    interest_repaid: Decimal = ZERO       # Interest repaid to date
    maturity_date: Optional[date] = None
    first_repayment_date: Optional[date] = None
    closed_date: Optional[date] = None    # Set when preliquidated; accrual stops here
    archived: bool = False

    def __post_init__(self):
        principal = to_decimal(self.principal)
        if principal <= ZERO:
            raise ValueError("Loan principal must be positive")
        object.__setattr__(self, 'principal', principal)

        rate = to_decimal(self.annual_rate)
        _validate_rate(rate)
        object.__setattr__(self, 'annual_rate', rate)

        tenure = coerce_tenure(self.tenure_months)
        if tenure is None:
            raise ValueError("Loan tenure must be a positive number of months")
        object.__setattr__(self, 'tenure_months', tenure)

        origination = _require_date(self.origination_date, "origination_date")
        object.__setattr__(self, 'origination_date', origination)
        disbursement = parse_iso_date(self.disbursement_date) or origination
        if disbursement < origination:
            raise ValueError("Disbursement date cannot precede origination date")
        object.__setattr__(self, 'disbursement_date', disbursement)

        if self.repayment_cycle is not None:
            cycle = RepaymentCycle.parse(self.repayment_cycle)
            if cycle is None:
                raise ValueError(f"Unknown repayment cycle: {self.repayment_cycle!r}")
            object.__setattr__(self, 'repayment_cycle', cycle)

        status, archived = split_archived_status(self.status, self.archived)
        object.__setattr__(self, 'status', status)
        object.__setattr__(self, 'archived', archived)

        for name in ('amount_repaid', 'interest_repaid'):
            amount = to_decimal(getattr(self, name))
            if amount < ZERO:
                raise ValueError(f"{name} cannot be negative")
            object.__setattr__(self, name, amount)

        maturity = parse_iso_date(self.maturity_date)
        first_repayment = parse_iso_date(self.first_repayment_date)
        if maturity is None or (first_repayment is None and self.repayment_cycle is not None):
            dates = calculate_loan_dates(origination, tenure, self.repayment_cycle or RepaymentCycle.BULLET)
            maturity = maturity or dates.maturity_date
            if self.repayment_cycle is not None:
                first_repayment = first_repayment or dates.first_repayment_date
        object.__setattr__(self, 'maturity_date', maturity)
        object.__setattr__(self, 'first_repayment_date', first_repayment)
        object.__setattr__(self, 'closed_date', parse_iso_date(self.closed_date))

    @property
    def outstanding_principal(self) -> Decimal:
        """Principal still owed; negative if more than the principal was repaid"""
        return self.principal - self.amount_repaid

    @property
    def is_closed(self) -> bool:
        return self.status == LoanStatus.PRELIQUIDATED

    @property
    def is_receivable(self) -> bool:
        """Counts toward loans receivable on the balance sheet"""
        return not self.archived and self.status in (LoanStatus.PERFORMING, LoanStatus.NON_PERFORMING)


@dataclass(frozen=True)
class CreditContract:
    """Placement recorded from a creditor"""
    id: str
    creditor_id: str
    principal: Decimal                       # Original placement, immutable
    annual_rate: Decimal                     # Percent
    tenure_months: int
    start_date: date
    remaining_principal: Optional[Decimal] = None
    end_date: Optional[date] = None          # Maturity; derived when absent
    status: CreditStatus = CreditStatus.ACTIVE
    total_paid_out: Decimal = ZERO           # Principal + interest paid to date
    interest_paid_out: Decimal = ZERO        # Interest part of total_paid_out

    def __post_init__(self):
        principal = to_decimal(self.principal)
        if principal <= ZERO:
            raise ValueError("Credit principal must be positive")
        object.__setattr__(self, 'principal', principal)

        rate = to_decimal(self.annual_rate)
        _validate_rate(rate)
        object.__setattr__(self, 'annual_rate', rate)

        tenure = coerce_tenure(self.tenure_months)
        if tenure is None:
            raise ValueError("Credit tenure must be a positive number of months")
        object.__setattr__(self, 'tenure_months', tenure)

        start = _require_date(self.start_date, "start_date")
        object.__setattr__(self, 'start_date', start)
        object.__setattr__(self, 'end_date', parse_iso_date(self.end_date) or add_months(start, tenure))

        remaining = principal if self.remaining_principal is None else to_decimal(self.remaining_principal)
        if remaining < ZERO:
            raise ValueError("Remaining principal cannot be negative")
        if remaining > principal:
            raise ValueError("Remaining principal cannot exceed the original principal")
        object.__setattr__(self, 'remaining_principal', remaining)

        if not isinstance(self.status, CreditStatus):
            object.__setattr__(self, 'status', CreditStatus(str(self.status).strip().lower()))

        for name in ('total_paid_out', 'interest_paid_out'):
            amount = to_decimal(getattr(self, name))
            if amount < ZERO:
                raise ValueError(f"{name} cannot be negative")
            object.__setattr__(self, name, amount)

    @property
    def is_open(self) -> bool:
        """Still owed to the creditor (active or matured)"""
        return self.status in (CreditStatus.ACTIVE, CreditStatus.MATURED)


@dataclass(frozen=True)
class Payout:
    """Append-only record of money paid to a creditor"""
    id: str
    credit_id: str
    principal_amount: Decimal
    interest_amount: Decimal
    payout_type: PayoutType
    paid_at: date

    def __post_init__(self):
        for name in ('principal_amount', 'interest_amount'):
            amount = to_decimal(getattr(self, name))
            if amount < ZERO:
                raise ValueError(f"{name} cannot be negative")
            object.__setattr__(self, name, amount)
        if self.total_amount <= ZERO:
            raise ValueError("Nothing to pay out")

        if not isinstance(self.payout_type, PayoutType):
            object.__setattr__(self, 'payout_type', PayoutType(str(self.payout_type).strip().lower()))
        object.__setattr__(self, 'paid_at', _require_date(self.paid_at, "paid_at"))

    @property
    def total_amount(self) -> Decimal:
        return self.principal_amount + self.interest_amount


@dataclass(frozen=True)
class BadDebt:
    """Loan written off as non-recoverable"""
    id: str
    loan_id: str
    declared_date: date
    amount: Decimal                          # Written-off amount
    recovered_amount: Decimal = ZERO
    recovery_date: Optional[date] = None
    reason: Optional[str] = None
    is_fully_recovered: bool = False

    def __post_init__(self):
        amount = to_decimal(self.amount)
        if amount <= ZERO:
            raise ValueError("Written-off amount must be positive")
        object.__setattr__(self, 'amount', amount)

        recovered = to_decimal(self.recovered_amount)
        if recovered < ZERO:
            raise ValueError("Recovered amount cannot be negative")
        if recovered > amount:
            raise ValueError("Recovered amount cannot exceed the written-off amount")
        object.__setattr__(self, 'recovered_amount', recovered)

        object.__setattr__(self, 'declared_date', _require_date(self.declared_date, "declared_date"))
        object.__setattr__(self, 'recovery_date', parse_iso_date(self.recovery_date))

        # Once fully recovered, always fully recovered
        object.__setattr__(self, 'is_fully_recovered', bool(self.is_fully_recovered) or recovered >= amount)

    @property
    def outstanding_amount(self) -> Decimal:
        return self.amount - self.recovered_amount
