import logging

from constants import (
    STATUS_PAID, STATUS_PARTIAL, STATUS_UNPAID,
    MESSAGE_VERIFIED, MESSAGE_REJECTED,
)
from utils.errors import InvalidRequestError, ConflictError
from utils.payment_utils import format_currency

# Set up a module-level logger
log = logging.getLogger(__name__)

def _amount(tenant: dict, field: str) -> float:
    return float(tenant.get(field) or 0)

def cycle_charge(tenant: dict) -> float:
    """Rent plus extra expenses for the current cycle, without carried-over debt."""
    return _amount(tenant, 'rentAmount') + _amount(tenant, 'extraExpenses')

def total_due(tenant: dict) -> float:
    """Everything owed this cycle: rent + extras + debt carried over from earlier cycles."""
    return cycle_charge(tenant) + _amount(tenant, 'debt')

def balance(tenant: dict) -> float:
    """Outstanding amount: rent + extras + debt - paid. Negative when overpaid."""
    return total_due(tenant) - _amount(tenant, 'amountPaid')

def apply_payment(tenant: dict, amount: float) -> dict:
    """
    Returns the tenant updates for a payment of `amount`.
    The tenant becomes 'paid' once everything owed is covered, 'partial' otherwise.
    """
    if amount <= 0:
        raise InvalidRequestError("Amount must be greater than 0")
    if tenant.get('status') == STATUS_PAID:
        raise ConflictError(f"{tenant.get('name', 'Tenant')} has already paid in full for this cycle.")

    new_amount_paid = _amount(tenant, 'amountPaid') + amount
    new_status = STATUS_PAID if new_amount_paid >= total_due(tenant) else STATUS_PARTIAL
    return {
        'amountPaid': new_amount_paid,
        'status': new_status,
    }

def mark_paid(tenant: dict) -> tuple[dict, float]:
    """
    Settles the tenant in full: the cycle charge counts as paid and all debt is cleared.
    Returns (tenant updates, amount still to be recorded as a payment).
    """
    if tenant.get('status') == STATUS_PAID:
        raise ConflictError(f"{tenant.get('name', 'Tenant')} is already marked as paid for this cycle.")
    amount_to_record = balance(tenant)
    updates = {
        'amountPaid': cycle_charge(tenant),
        'status': STATUS_PAID,
        'debt': 0,
    }
    return updates, max(amount_to_record, 0)

def mark_unpaid(tenant: dict) -> dict:
    """
    Starts a new cycle for the tenant: the outstanding balance becomes debt and
    the paid amount resets. Overpayments are not carried as credit.
    """
    outstanding = balance(tenant)
    return {
        'amountPaid': 0,
        'status': STATUS_UNPAID,
        'debt': outstanding if outstanding > 0 else 0,
    }

def validate_claim(tenant: dict, amount: float) -> float:
    """A tenant may only claim or pay a positive amount no larger than their current balance."""
    outstanding = balance(tenant)
    if amount <= 0 or amount > outstanding:
        raise InvalidRequestError(
            f"Please enter an amount greater than {format_currency(0)} and up to {format_currency(max(outstanding, 0))}"
        )
    return amount

def resolve_claim(claimed_amount: float, recorded_amount: float, discrepancy_reason: str | None) -> dict:
    """
    Decides how a tenant's payment notification is closed once the owner records a payment for it.
    Recording less than was claimed requires a reason and rejects the claim with it.
    """
    if recorded_amount < claimed_amount:
        if not discrepancy_reason:
            raise InvalidRequestError("A reason is required for the amount discrepancy.")
        log.info(f"Recorded {recorded_amount} against a claim of {claimed_amount}; rejecting claim.")
        return {
            'status': MESSAGE_REJECTED,
            'rejectionReason': discrepancy_reason,
        }
    return {'status': MESSAGE_VERIFIED}

def with_balance(tenant: dict) -> dict:
    """Copy of the tenant document with its derived totals attached."""
    return {
        **tenant,
        'totalDue': total_due(tenant),
        'balance': balance(tenant),
    }
