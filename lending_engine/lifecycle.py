"""
Contract Lifecycle Module

Status rules for loans, creditor placements and bad debts, plus the pure
recording operations the repayment and payout workflows run after a new row
has been persisted. Loan status changes are staff decisions; the delinquency
classification here is advisory and only ever returns a suggestion.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Union

from .contracts import (
    BadDebt, CreditContract, CreditStatus, LoanContract, LoanStatus, Payout,
    PayoutType, normalize_loan_status
)
from .money import AmountLike, ZERO, amounts_match, to_decimal
from .schedule import InstallmentStatus, RepaymentInstallment, allocate_payment_to_schedule
from .config import get_config
from .logging_config import get_logger, log_action


logger = get_logger("lending_engine.lifecycle")


class InvalidTransitionError(ValueError):
    """Requested status change is not allowed from the current state"""


# Staff edits permitted from each loan state
LOAN_TRANSITIONS: Dict[LoanStatus, Set[LoanStatus]] = {
    LoanStatus.PERFORMING: {LoanStatus.NON_PERFORMING, LoanStatus.PRELIQUIDATED},
    LoanStatus.NON_PERFORMING: {LoanStatus.PERFORMING, LoanStatus.FULL_PROVISION, LoanStatus.PRELIQUIDATED},
    LoanStatus.FULL_PROVISION: {LoanStatus.PRELIQUIDATED},
    LoanStatus.PRELIQUIDATED: set(),
}

CREDIT_TRANSITIONS: Dict[CreditStatus, Set[CreditStatus]] = {
    CreditStatus.ACTIVE: {CreditStatus.MATURED, CreditStatus.WITHDRAWN},
    CreditStatus.MATURED: {CreditStatus.WITHDRAWN},
    CreditStatus.WITHDRAWN: set(),
}


def _tolerance(tolerance: AmountLike) -> Decimal:
    if tolerance is None:
        return to_decimal(get_config().settlement_tolerance)
    return to_decimal(tolerance)


def _principal_settled(principal: Decimal, amount_repaid: Decimal, tolerance: Decimal) -> bool:
    """Whether the unrepaid principal is within the settlement tolerance"""
    return principal - amount_repaid < tolerance


# --- Loan status -----------------------------------------------------------

def can_transition_loan(current: Union[LoanStatus, str], target: Union[LoanStatus, str]) -> bool:
    """Check whether a loan may move from current to target (legacy names accepted)"""
    current_status = normalize_loan_status(current)
    target_status = normalize_loan_status(target)
    if current_status == target_status:
        return True
    return target_status in LOAN_TRANSITIONS[current_status]


def validate_loan_transition(current: Union[LoanStatus, str], target: Union[LoanStatus, str]) -> LoanStatus:
    """Return the canonical target status or raise InvalidTransitionError"""
    if not can_transition_loan(current, target):
        raise InvalidTransitionError(
            f"Loan cannot move from {normalize_loan_status(current).value} "
            f"to {normalize_loan_status(target).value}"
        )
    return normalize_loan_status(target)


def change_loan_status(
    loan: LoanContract,
    target: Union[LoanStatus, str],
    changed_on: Optional[date] = None
) -> LoanContract:
    """
    Apply a staff status edit.

    Moving to PRELIQUIDATED closes the loan on changed_on, which freezes its
    interest accrual.
    """
    try:
        status = validate_loan_transition(loan.status, target)
    except InvalidTransitionError:
        log_action(logger, "warning", "Rejected loan status change",
                   action="change_loan_status", resource=loan.id,
                   extra={"from": loan.status.value, "to": str(target)})
        raise

    if status == loan.status:
        return loan

    closed_date = loan.closed_date
    if status == LoanStatus.PRELIQUIDATED:
        if changed_on is None:
            raise ValueError("A closing date is required to preliquidate a loan")
        closed_date = changed_on

    log_action(logger, "info", "Loan status changed",
               action="change_loan_status", resource=loan.id,
               extra={"from": loan.status.value, "to": status.value})
    return replace(loan, status=status, closed_date=closed_date)


def archive_loan(loan: LoanContract) -> LoanContract:
    """Soft-remove a loan from active views; its status is kept"""
    return loan if loan.archived else replace(loan, archived=True)


def is_bad_debt_eligible(loan: LoanContract) -> bool:
    """A loan may be written off only once fully provisioned"""
    return loan.status == LoanStatus.FULL_PROVISION


# --- Delinquency -----------------------------------------------------------

@dataclass(frozen=True)
class DelinquencyPolicy:
    """Days past due after which a loan is classified worse"""
    non_performing_after_days: int = 30
    full_provision_after_days: int = 90

    def __post_init__(self):
        if self.non_performing_after_days < 0:
            raise ValueError("Thresholds cannot be negative")
        if self.full_provision_after_days < self.non_performing_after_days:
            raise ValueError("Full provision threshold must not be below the non-performing threshold")

    @classmethod
    def from_config(cls) -> 'DelinquencyPolicy':
        config = get_config()
        return cls(
            non_performing_after_days=config.non_performing_after_days,
            full_provision_after_days=config.full_provision_after_days
        )


DueItems = Sequence[Union[RepaymentInstallment, date]]


def oldest_unpaid_due_date(due_items: DueItems, as_of: date) -> Optional[date]:
    """
    Earliest due date before as_of that is still unpaid.

    Plain dates are treated as unpaid; installments marked PAID are skipped.
    """
    unpaid = []
    for item in due_items:
        if isinstance(item, RepaymentInstallment):
            if item.status == InstallmentStatus.PAID:
                continue
            due = item.due_date
        else:
            due = item
        if due < as_of:
            unpaid.append(due)
    return min(unpaid) if unpaid else None


def days_past_due(due_items: DueItems, as_of: date) -> int:
    """Days since the oldest unpaid due date, 0 when nothing is past due"""
    oldest = oldest_unpaid_due_date(due_items, as_of)
    if oldest is None:
        return 0
    return (as_of - oldest).days


def classify_loan_status(
    loan: LoanContract,
    schedule: Optional[DueItems],
    as_of: date,
    policy: Optional[DelinquencyPolicy] = None,
    tolerance: AmountLike = None
) -> LoanStatus:
    """
    Suggest a loan status from its repayment record.

    PRELIQUIDATED when the principal is repaid; otherwise FULL_PROVISION when
    the oldest unpaid installment is more than full_provision_after_days
    late, NON_PERFORMING when more than non_performing_after_days late, and
    PERFORMING otherwise. Without a schedule the maturity date is the only
    due date.
    """
    if policy is None:
        policy = DelinquencyPolicy.from_config()

    if _principal_settled(loan.principal, loan.amount_repaid, _tolerance(tolerance)):
        return LoanStatus.PRELIQUIDATED

    due_items = schedule if schedule else [loan.maturity_date]
    overdue_days = days_past_due(due_items, as_of)

    if overdue_days > policy.full_provision_after_days:
        return LoanStatus.FULL_PROVISION
    if overdue_days > policy.non_performing_after_days:
        return LoanStatus.NON_PERFORMING
    return LoanStatus.PERFORMING


# --- Repayments ------------------------------------------------------------

@dataclass(frozen=True)
class RepaymentOutcome:
    """Loan and schedule after a repayment has been recorded"""
    loan: LoanContract
    schedule: Optional[List[RepaymentInstallment]]
    payment_type: str               # "full" or "partial"
    status_changed: bool


def record_repayment(
    loan: LoanContract,
    principal_paid: AmountLike,
    interest_paid: AmountLike,
    paid_on: date,
    schedule: Optional[Sequence[RepaymentInstallment]] = None,
    tolerance: AmountLike = None
) -> RepaymentOutcome:
    """
    Apply a repayment to a loan.

    Repaid totals accumulate. The loan is preliquidated and closed on paid_on
    once its principal is repaid; a principal payment on a non-performing
    loan cures it back to performing. Installments covered by the payment
    are marked on the schedule when one is given.

    Raises:
        ValueError: If the payment is empty, negative, or repays more
            principal than is outstanding
        InvalidTransitionError: If the loan is already preliquidated
    """
    tol = _tolerance(tolerance)
    principal_amount = to_decimal(principal_paid)
    interest_amount = to_decimal(interest_paid)

    if principal_amount < ZERO or interest_amount < ZERO:
        raise ValueError("Repayment amounts cannot be negative")
    if principal_amount <= ZERO and interest_amount <= ZERO:
        raise ValueError("Repayment must include principal or interest")
    if loan.is_closed:
        raise InvalidTransitionError("Loan is already preliquidated")
    if principal_amount > loan.outstanding_principal + tol:
        raise ValueError(
            f"Principal amount {principal_amount} exceeds outstanding principal {loan.outstanding_principal}"
        )

    new_amount_repaid = loan.amount_repaid + principal_amount
    new_interest_repaid = loan.interest_repaid + interest_amount

    status = loan.status
    closed_date = loan.closed_date
    if _principal_settled(loan.principal, new_amount_repaid, tol):
        status = LoanStatus.PRELIQUIDATED
        closed_date = paid_on
    elif principal_amount > ZERO and can_transition_loan(loan.status, LoanStatus.PERFORMING):
        status = LoanStatus.PERFORMING

    updated = replace(
        loan,
        amount_repaid=new_amount_repaid,
        interest_repaid=new_interest_repaid,
        status=status,
        closed_date=closed_date
    )

    updated_schedule = None
    if schedule is not None:
        updated_schedule = allocate_payment_to_schedule(
            schedule, principal_amount, interest_amount, paid_at=paid_on, tolerance=tol
        )

    payment_type = "full" if status == LoanStatus.PRELIQUIDATED else "partial"
    log_action(logger, "info", "Repayment recorded",
               action="record_repayment", resource=loan.id,
               extra={
                   "principal": principal_amount,
                   "interest": interest_amount,
                   "payment_type": payment_type,
                   "status": status.value,
               })

    return RepaymentOutcome(
        loan=updated,
        schedule=updated_schedule,
        payment_type=payment_type,
        status_changed=status != loan.status
    )


# --- Credits ---------------------------------------------------------------

def can_transition_credit(current: CreditStatus, target: CreditStatus) -> bool:
    return current == target or target in CREDIT_TRANSITIONS[current]


def credit_status_for(credit: CreditContract, as_of: date) -> CreditStatus:
    """
    Status a credit should carry at as_of.

    Withdrawn once nothing remains to pay out, matured once its tenure has
    elapsed, otherwise unchanged.
    """
    if credit.status == CreditStatus.WITHDRAWN or credit.remaining_principal <= ZERO:
        return CreditStatus.WITHDRAWN
    if as_of >= credit.end_date:
        return CreditStatus.MATURED
    return credit.status


def refresh_credit_status(credit: CreditContract, as_of: date) -> CreditContract:
    status = credit_status_for(credit, as_of)
    if status == credit.status:
        return credit
    return replace(credit, status=status)


def record_payout(credit: CreditContract, payout: Payout, tolerance: AmountLike = None) -> CreditContract:
    """
    Apply a payout to its credit.

    Remaining principal drops by the payout's principal; total paid out and
    interest paid out grow by the payout's amounts.

    Raises:
        ValueError: If the payout belongs to another credit, pays principal
            on an interest-only payout, leaves principal behind on a
            full-maturity payout, or exceeds the remaining principal
        InvalidTransitionError: If the credit is already withdrawn
    """
    tol = _tolerance(tolerance)
    if payout.credit_id != credit.id:
        raise ValueError(f"Payout {payout.id} belongs to credit {payout.credit_id}, not {credit.id}")
    if credit.status == CreditStatus.WITHDRAWN:
        raise InvalidTransitionError("Credit is already withdrawn")
    if payout.payout_type == PayoutType.INTEREST_ONLY and payout.principal_amount > ZERO:
        raise ValueError("Interest-only payout cannot include principal")
    if payout.principal_amount > credit.remaining_principal:
        raise ValueError(
            f"Payout principal {payout.principal_amount} exceeds remaining principal {credit.remaining_principal}"
        )

    remaining = credit.remaining_principal - payout.principal_amount
    if payout.payout_type == PayoutType.FULL_MATURITY and not amounts_match(remaining, ZERO, tol):
        raise ValueError("Full maturity payout must pay out the remaining principal")

    updated = replace(
        credit,
        remaining_principal=remaining,
        total_paid_out=credit.total_paid_out + payout.total_amount,
        interest_paid_out=credit.interest_paid_out + payout.interest_amount
    )
    updated = refresh_credit_status(updated, payout.paid_at)

    log_action(logger, "info", "Payout recorded",
               action="record_payout", resource=credit.id,
               extra={
                   "payout_type": payout.payout_type.value,
                   "principal": payout.principal_amount,
                   "interest": payout.interest_amount,
                   "status": updated.status.value,
               })
    return updated


# --- Bad debts -------------------------------------------------------------

def declare_bad_debt(
    loan: LoanContract,
    declared_date: date,
    amount: AmountLike = None,
    reason: Optional[str] = None,
    bad_debt_id: Optional[str] = None
) -> BadDebt:
    """
    Write off a fully provisioned loan.

    The written-off amount defaults to the loan's outstanding principal.
    """
    if not is_bad_debt_eligible(loan):
        log_action(logger, "warning", "Rejected bad debt declaration",
                   action="declare_bad_debt", resource=loan.id,
                   extra={"status": loan.status.value})
        raise InvalidTransitionError(
            f"Only {LoanStatus.FULL_PROVISION.value} loans can be declared bad debt, "
            f"loan {loan.id} is {loan.status.value}"
        )

    written_off = loan.outstanding_principal if amount is None else to_decimal(amount)
    return BadDebt(
        id=bad_debt_id or f"{loan.id}-bad-debt",
        loan_id=loan.id,
        declared_date=declared_date,
        amount=written_off,
        reason=reason
    )


def record_recovery(bad_debt: BadDebt, amount: AmountLike, recovered_on: date) -> BadDebt:
    """
    Add a recovery to a bad debt.

    Raises:
        ValueError: If the amount is not positive or would recover more than
            was written off
    """
    recovery = to_decimal(amount)
    if recovery <= ZERO:
        raise ValueError("Recovery amount must be positive")

    recovered = bad_debt.recovered_amount + recovery
    if recovered > bad_debt.amount:
        raise ValueError(
            f"Recovery of {recovery} exceeds outstanding bad debt {bad_debt.outstanding_amount}"
        )

    log_action(logger, "info", "Bad debt recovery recorded",
               action="record_recovery", resource=bad_debt.id,
               extra={"recovered": recovered, "written_off": bad_debt.amount})
    return replace(
        bad_debt,
        recovered_amount=recovered,
        recovery_date=recovered_on,
        is_fully_recovered=bad_debt.is_fully_recovered or recovered >= bad_debt.amount
    )
