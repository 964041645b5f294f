from datetime import datetime
from urllib.parse import quote
import logging

from constants import (
    STATUS_PAID, STATUS_UNPAID, STATUS_PARTIAL,
    MESSAGE_UNREAD, TENANT_FILTERS,
    QR_CODE_URL_TEMPLATE, CURRENCY_CODE,
)
from logic.balance_logic import total_due, with_balance, validate_claim
from utils.errors import InvalidRequestError
from utils.payment_utils import format_amount

# Set up a module-level logger
log = logging.getLogger(__name__)

def _timestamp_key(item: dict, field: str = 'createdAt') -> float:
    """Sort key for Firestore timestamps; pending server timestamps sort last."""
    value = item.get(field)
    if isinstance(value, datetime):
        return value.timestamp()
    return 0

def get_dashboard_summary(tenants: list) -> dict:
    """
    Totals for the owner's current cycle across all tenants.
    """
    total_due_this_cycle = sum(total_due(t) for t in tenants)
    amount_received = sum(float(t.get('amountPaid') or 0) for t in tenants)
    return {
        'totalDue': total_due_this_cycle,
        'amountReceived': amount_received,
        'pending': max(0, total_due_this_cycle - amount_received),
        'paidCount': len([t for t in tenants if t.get('status') == STATUS_PAID]),
        'unpaidCount': len([t for t in tenants if t.get('status') in (STATUS_UNPAID, STATUS_PARTIAL)]),
        'tenantCount': len(tenants),
    }

def filter_tenants(tenants: list, tenant_filter: str = 'all') -> list:
    """
    Filters tenants by payment status ('unpaid' includes partial payers), sorted by name,
    each annotated with its total due and balance.
    """
    if tenant_filter not in TENANT_FILTERS:
        raise InvalidRequestError(f"Unknown filter '{tenant_filter}'. Use one of: {', '.join(TENANT_FILTERS)}")

    if tenant_filter == 'paid':
        selected = [t for t in tenants if t.get('status') == STATUS_PAID]
    elif tenant_filter == 'unpaid':
        selected = [t for t in tenants if t.get('status') in (STATUS_UNPAID, STATUS_PARTIAL)]
    else:
        selected = list(tenants)

    selected.sort(key=lambda t: (t.get('name') or '').casefold())
    return [with_balance(t) for t in selected]

def get_unread_messages(messages_by_tenant: dict) -> list:
    """
    Flattens {tenant_id: [message, ...]} into the owner's unread payment notifications,
    newest first, each tagged with the tenant it belongs to.
    """
    unread = [
        {**message, 'tenantId': tenant_id}
        for tenant_id, messages in messages_by_tenant.items()
        for message in messages
        if message.get('status') == MESSAGE_UNREAD
    ]
    unread.sort(key=_timestamp_key, reverse=True)
    return unread

def build_activity_feed(payments: list, messages: list) -> list:
    """
    Merges a tenant's payments and payment notifications into one feed, newest first.
    """
    activity = [{**p, 'type': 'payment'} for p in payments] + [{**m, 'type': 'message'} for m in messages]
    activity.sort(key=_timestamp_key, reverse=True)
    return activity

def build_payment_link(owner: dict, tenant: dict, amount: float) -> dict:
    """
    Builds the UPI deep link and QR code URL a tenant scans to pay the owner.
    """
    if not owner.get('upiId'):
        log.warning(f"Owner {owner.get('id')} has no UPI ID configured.")
        raise InvalidRequestError("The owner has not set up a UPI ID yet.")
    validate_claim(tenant, amount)

    upi_link = (
        f"upi://pay?pa={owner['upiId']}"
        f"&pn={quote(owner.get('name', ''), safe='')}"
        f"&am={format_amount(amount)}"
        f"&cu={CURRENCY_CODE}"
    )
    return {
        'upiLink': upi_link,
        'qrCodeUrl': QR_CODE_URL_TEMPLATE.format(data=quote(upi_link, safe='')),
        'amount': amount,
    }
