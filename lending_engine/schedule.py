"""
Repayment Schedule Module

Computes maturity and first-repayment dates at contract creation time and
generates the installment schedule shown to staff and debtors. Installments
split principal and total simple interest evenly; this is the schedule shape
existing contracts were issued with, so it is not a declining-balance
amortization.
"""

from decimal import Decimal, ROUND_FLOOR
from datetime import date
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Sequence
from enum import Enum

from .dates import DateLike, add_months, add_weeks, format_iso_date, parse_iso_date
from .money import AmountLike, Currency, ZERO, quantize_amount, to_decimal
from .config import get_config
from .logging_config import get_logger, log_action


logger = get_logger("lending_engine.schedule")

FORTNIGHTS_PER_MONTH = Decimal('4.34') / Decimal('2')


class RepaymentCycle(Enum):
    """How often a debtor repays"""
    FORTNIGHTLY = "fortnightly"      # Every 2 weeks
    MONTHLY = "monthly"              # Every month
    BI_MONTHLY = "bi_monthly"        # Every 2 months
    QUARTERLY = "quarterly"          # Every 3 months
    QUADRIMESTER = "quadrimester"    # Every 4 months
    SEMIANNUAL = "semiannual"        # Every 6 months
    ANNUALLY = "annually"            # Every 12 months
    BULLET = "bullet"                # Single payment at maturity

    @property
    def period_months(self) -> Optional[int]:
        """Months between repayments, None for week-based and bullet cycles"""
        return {
            RepaymentCycle.MONTHLY: 1,
            RepaymentCycle.BI_MONTHLY: 2,
            RepaymentCycle.QUARTERLY: 3,
            RepaymentCycle.QUADRIMESTER: 4,
            RepaymentCycle.SEMIANNUAL: 6,
            RepaymentCycle.ANNUALLY: 12,
        }.get(self)

    @property
    def period_weeks(self) -> Optional[int]:
        return 2 if self == RepaymentCycle.FORTNIGHTLY else None

    @classmethod
    def parse(cls, value: Any) -> Optional['RepaymentCycle']:
        """Resolve a stored cycle value, None when empty or unrecognized"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class InstallmentStatus(Enum):
    """Payment state of a single installment"""
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class RepaymentInstallment:
    """Single row of a repayment schedule"""
    installment_no: int             # 1-based
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_at: Optional[date] = None
    principal_paid: Decimal = ZERO  # Applied by repayments so far
    interest_paid: Decimal = ZERO

    @property
    def total_amount(self) -> Decimal:
        return self.principal_amount + self.interest_amount

    @property
    def principal_due(self) -> Decimal:
        return self.principal_amount - self.principal_paid

    @property
    def interest_due(self) -> Decimal:
        return self.interest_amount - self.interest_paid

    @property
    def is_settled(self) -> bool:
        return self.status == InstallmentStatus.PAID

    def to_dict(self) -> dict:
        """Row as persisted in the repayment_schedules table"""
        return {
            'installment_no': self.installment_no,
            'due_date': format_iso_date(self.due_date),
            'principal_amount': str(self.principal_amount),
            'interest_amount': str(self.interest_amount),
            'total_amount': str(self.total_amount),
            'principal_paid': str(self.principal_paid),
            'interest_paid': str(self.interest_paid),
            'status': self.status.value,
            'paid_at': format_iso_date(self.paid_at) if self.paid_at else None,
        }


@dataclass(frozen=True)
class LoanDates:
    """Dates frozen onto a contract when it is created"""
    maturity_date: date
    first_repayment_date: date

    @property
    def formatted_maturity_date(self) -> str:
        return format_iso_date(self.maturity_date)

    @property
    def formatted_first_repayment_date(self) -> str:
        return format_iso_date(self.first_repayment_date)


def coerce_tenure(value: Any) -> Optional[int]:
    """Return tenure as a positive int, or None when it is not one"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        tenure = value
    elif isinstance(value, str) and value.strip().isdigit():
        tenure = int(value.strip())
    elif isinstance(value, (float, Decimal)):
        try:
            tenure = int(value)
        except (ValueError, OverflowError):
            return None
        if tenure != value:
            return None
    else:
        return None
    return tenure if tenure >= 1 else None


def _unavailable(operation: str, reason: str, **details) -> None:
    log_action(
        logger, "warning", f"Schedule unavailable: {reason}",
        action=operation,
        extra={k: str(v) for k, v in details.items()}
    )
    return None


def cycle_date(start_date: date, cycle: RepaymentCycle, periods: int) -> date:
    """Date `periods` cycle periods after start_date (not defined for bullet)"""
    if cycle.period_weeks:
        return add_weeks(start_date, cycle.period_weeks * periods)
    if cycle.period_months:
        return add_months(start_date, cycle.period_months * periods)
    raise ValueError("Bullet cycle has no regular period")


def compute_maturity(origination_date: DateLike, tenure_months: Any) -> Optional[date]:
    """Origination date plus tenure months"""
    start = parse_iso_date(origination_date)
    tenure = coerce_tenure(tenure_months)
    if start is None:
        return _unavailable("compute_maturity", "missing origination date")
    if tenure is None:
        return _unavailable("compute_maturity", "tenure is not a positive integer",
                            tenure_months=tenure_months)
    return add_months(start, tenure)


def compute_first_repayment_date(
    origination_date: DateLike,
    cycle: Any,
    maturity_date: DateLike
) -> Optional[date]:
    """
    First due date: origination plus one cycle period.

    Bullet loans repay at maturity. A cycle longer than the tenure falls due
    at maturity too, since nothing can be owed after the contract ends.
    """
    start = parse_iso_date(origination_date)
    maturity = parse_iso_date(maturity_date)
    repayment_cycle = RepaymentCycle.parse(cycle)

    if start is None:
        return _unavailable("compute_first_repayment_date", "missing origination date")
    if repayment_cycle is None:
        return _unavailable("compute_first_repayment_date", "unrecognized cycle", cycle=cycle)
    if maturity is None:
        return _unavailable("compute_first_repayment_date", "missing maturity date")

    if repayment_cycle == RepaymentCycle.BULLET:
        return maturity
    return min(cycle_date(start, repayment_cycle, 1), maturity)


def calculate_loan_dates(
    origination_date: DateLike,
    tenure_months: Any,
    cycle: Any
) -> Optional[LoanDates]:
    """Maturity and first repayment dates for a new contract, or None if unavailable"""
    if RepaymentCycle.parse(cycle) is None:
        return _unavailable("calculate_loan_dates", "unrecognized cycle", cycle=cycle)

    maturity = compute_maturity(origination_date, tenure_months)
    if maturity is None:
        return None

    first_repayment = compute_first_repayment_date(origination_date, cycle, maturity)
    if first_repayment is None:
        return None

    return LoanDates(maturity_date=maturity, first_repayment_date=first_repayment)


def installment_count(tenure_months: int, cycle: RepaymentCycle) -> int:
    """Number of installments a tenure yields under a cycle (at least 1)"""
    if cycle == RepaymentCycle.BULLET:
        return 1
    if cycle == RepaymentCycle.FORTNIGHTLY:
        count = (Decimal(tenure_months) * FORTNIGHTS_PER_MONTH).to_integral_value(rounding=ROUND_FLOOR)
        return max(1, int(count))
    return max(1, tenure_months // cycle.period_months)


def total_schedule_interest(principal: AmountLike, annual_rate: AmountLike, tenure_months: int) -> Decimal:
    """Simple interest over the full tenure: P x (rate/100/12) x months"""
    monthly_rate = to_decimal(annual_rate) / Decimal('100') / Decimal('12')
    return to_decimal(principal) * monthly_rate * Decimal(tenure_months)


def generate_schedule(
    principal: AmountLike,
    annual_rate: AmountLike,
    tenure_months: Any,
    cycle: Any,
    start_date: DateLike,
    currency: Optional[Currency] = None
) -> Optional[List[RepaymentInstallment]]:
    """
    Generate the equal-split installment schedule.

    Each installment carries principal/count and total_interest/count, rounded
    to the currency unit; the final installment absorbs the rounding remainder
    so each column sums exactly to its rounded total.

    Returns:
        Installments ordered by number, or None when the inputs cannot
        produce a schedule
    """
    start = parse_iso_date(start_date)
    tenure = coerce_tenure(tenure_months)
    repayment_cycle = RepaymentCycle.parse(cycle)

    if start is None:
        return _unavailable("generate_schedule", "missing start date")
    if tenure is None:
        return _unavailable("generate_schedule", "tenure is not a positive integer",
                            tenure_months=tenure_months)
    if repayment_cycle is None:
        return _unavailable("generate_schedule", "unrecognized cycle", cycle=cycle)

    if currency is None:
        currency = Currency.from_code(get_config().currency)

    principal_total = quantize_amount(principal, currency)
    interest_total = quantize_amount(total_schedule_interest(principal, annual_rate, tenure), currency)
    maturity = add_months(start, tenure)
    count = installment_count(tenure, repayment_cycle)

    principal_share = quantize_amount(principal_total / count, currency)
    interest_share = quantize_amount(interest_total / count, currency)

    schedule = []
    for number in range(1, count + 1):
        if number == count:
            principal_amount = principal_total - principal_share * (count - 1)
            interest_amount = interest_total - interest_share * (count - 1)
        else:
            principal_amount = principal_share
            interest_amount = interest_share

        if repayment_cycle == RepaymentCycle.BULLET:
            due_date = maturity
        else:
            due_date = min(cycle_date(start, repayment_cycle, number), maturity)

        schedule.append(RepaymentInstallment(
            installment_no=number,
            due_date=due_date,
            principal_amount=principal_amount,
            interest_amount=interest_amount
        ))

    log_action(
        logger, "debug", "Schedule generated",
        action="generate_schedule",
        extra={
            "cycle": repayment_cycle.value,
            "installments": count,
            "principal_total": principal_total,
            "interest_total": interest_total,
        }
    )
    return schedule


def allocate_payment_to_schedule(
    schedule: Sequence[RepaymentInstallment],
    principal_paid: AmountLike,
    interest_paid: AmountLike,
    paid_at: Optional[date] = None,
    tolerance: AmountLike = None
) -> List[RepaymentInstallment]:
    """
    Apply a repayment to the installments it covers.

    Unpaid installments are walked in order and each one takes what is
    still due on it from the remaining principal and interest, on top of
    whatever earlier repayments already applied. An installment whose
    running totals cover it becomes PAID; the first one left short becomes
    PARTIAL and allocation stops there.
    """
    if tolerance is None:
        tolerance = get_config().settlement_tolerance
    tolerance = to_decimal(tolerance)
    remaining_principal = to_decimal(principal_paid)
    remaining_interest = to_decimal(interest_paid)

    updated = []
    allocating = True
    for item in schedule:
        if not allocating or item.status == InstallmentStatus.PAID:
            updated.append(item)
            continue
        if remaining_principal <= ZERO and remaining_interest <= ZERO:
            updated.append(item)
            allocating = False
            continue

        principal_applied = max(ZERO, min(remaining_principal, item.principal_due))
        interest_applied = max(ZERO, min(remaining_interest, item.interest_due))
        remaining_principal -= principal_applied
        remaining_interest -= interest_applied

        item = replace(
            item,
            principal_paid=item.principal_paid + principal_applied,
            interest_paid=item.interest_paid + interest_applied,
            paid_at=paid_at
        )
        if item.principal_due < tolerance and item.interest_due < tolerance:
            updated.append(replace(item, status=InstallmentStatus.PAID))
        else:
            updated.append(replace(item, status=InstallmentStatus.PARTIAL))
            allocating = False

    return updated


def mark_overdue_installments(
    schedule: Sequence[RepaymentInstallment],
    as_of: date
) -> List[RepaymentInstallment]:
    """Flag unpaid installments whose due date has passed"""
    return [
        replace(item, status=InstallmentStatus.OVERDUE)
        if item.status in (InstallmentStatus.PENDING, InstallmentStatus.PARTIAL) and item.due_date < as_of
        else item
        for item in schedule
    ]
