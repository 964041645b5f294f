from firebase_functions import scheduler_fn, https_fn
from firebase_functions.options import set_global_options
from firebase_admin import initialize_app, firestore
from pydantic import ValidationError
import firebase_admin
import functools
import json
import logging
import os
from datetime import date, datetime

from constants import (
    TERMINOLOGY, DEFAULT_USE_CASE, REMINDER_DUE_DESCRIPTION,
    STATUS_UNPAID, STATUS_PARTIAL,
    MESSAGE_UNREAD, MESSAGE_REJECTED,
    RECORDED_BY_OWNER,
)
from models.schemas import (
    OwnerRegistration, OwnerProfileUpdate,
    TenantCreate, TenantUpdate, TenantReference,
    PaymentRecord, PaymentRejection,
    RoomCodeLogin, TenantOnboarding, PaymentClaim,
)
from logic.balance_logic import (
    apply_payment, mark_paid, mark_unpaid,
    balance, validate_claim, resolve_claim, with_balance,
)
from logic.activity_logic import (
    get_dashboard_summary, filter_tenants,
    get_unread_messages, build_activity_feed, build_payment_link,
)
from services.auth_service import verify_owner_token
from services.db_service import (
    get_terminology,
    get_owner_by_uid, get_owner, get_all_owners, create_owner, update_owner,
    get_tenants, get_tenant, find_tenant_by_room_code,
    add_tenant as create_tenant, update_tenant, delete_tenant as remove_tenant,
    record_payment as save_payment, get_payments, roll_over_tenants,
    get_message, get_messages, get_unread_messages_by_tenant, add_message, update_message,
)
from services.email_service import send_reminder_email, is_email_configured
from services.cloud_tasks_service import enqueue_reminder_tasks
from utils.errors import (
    RentTrackerError, InvalidRequestError, NotFoundError,
    NotRegisteredError, ConflictError, ServiceNotConfiguredError,
)
from utils.payment_utils import format_currency
from utils.template_renderer import template_env


# Set up a module-level logger
log = logging.getLogger(__name__)

try:
    firebase_admin.get_app()
except ValueError:
    initialize_app()
set_global_options(max_instances=int(os.environ.get('MAX_INSTANCES', 10)))


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is firestore.SERVER_TIMESTAMP:
        # Not resolved until the write lands; clients re-read for the real value.
        return None
    return str(value)

def _json_response(payload: dict, status: int = 200) -> https_fn.Response:
    return https_fn.Response(
        json.dumps(payload, default=_json_default),
        status=status,
        headers={"Content-Type": "application/json"},
    )

def _request_data(req: https_fn.Request) -> dict:
    """Query parameters overlaid with the JSON body, if any."""
    data = dict(req.args) if req.args else {}
    data.update(req.get_json(silent=True) or {})
    return data

def _json_endpoint(handler):
    """
    Runs an HTTP handler and turns its result or error into a JSON response.
    Handlers return a payload dict, or (payload, status).
    """
    @functools.wraps(handler)
    def wrapper(req: https_fn.Request) -> https_fn.Response:
        try:
            result = handler(req, _request_data(req))
        except ValidationError as e:
            log.warning(f"Invalid request to {handler.__name__}: {e.error_count()} error(s)")
            return _json_response({'error': 'Invalid request.', 'details': e.errors(include_url=False)}, status=400)
        except RentTrackerError as e:
            log.warning(f"{handler.__name__} failed with {e.status}: {e.message}")
            return _json_response({'error': e.message}, status=e.status)
        except Exception as e:
            log.error(f"An unexpected error occurred in {handler.__name__}: {e}")
            return _json_response({'error': 'An error occurred.'}, status=500)

        if isinstance(result, tuple):
            payload, status = result
            return _json_response(payload, status=status)
        return _json_response(result)
    return wrapper

def _authenticated_owner(req: https_fn.Request, data: dict) -> tuple[dict, str | None]:
    """
    Resolves the owner document of the signed-in user. Returns (owner, use_case).
    """
    use_case = data.get('useCase')
    terminology = get_terminology(use_case)
    token = verify_owner_token(req.headers.get('Authorization'))
    owner = get_owner_by_uid(token['uid'], use_case)
    if not owner:
        raise NotFoundError(
            f"No {terminology['owner_singular'].lower()} account found for this use case. Please sign up."
        )
    return owner, use_case

def _tenant_by_room_code(room_code: str, use_case: str | None, require_registered: bool = True) -> tuple[str, dict]:
    """
    Resolves a tenant from their room code. Returns (owner_id, tenant).
    """
    terminology = get_terminology(use_case)
    found = find_tenant_by_room_code(room_code, use_case)
    if not found:
        raise NotFoundError(f"Invalid {terminology['room_code_singular']}. Please check and try again.")
    owner_id, tenant = found
    if require_registered and not tenant.get('isRegistered'):
        raise NotRegisteredError("You have not completed onboarding yet. Please register first.")
    return owner_id, tenant

def _pending_message(owner_id: str, tenant_id: str, message_id: str, use_case: str | None) -> dict:
    message = get_message(owner_id, tenant_id, message_id, use_case)
    if message.get('status') != MESSAGE_UNREAD:
        raise ConflictError(f"This payment notification has already been {message.get('status')}.")
    return message


# --- Owner account ---

@https_fn.on_request()
@_json_endpoint
def register_owner(req: https_fn.Request, data: dict):
    """
    Creates the owner document for a user who has signed up with Firebase Auth.
    """
    use_case = data.get('useCase')
    get_terminology(use_case)
    token = verify_owner_token(req.headers.get('Authorization'))
    registration = OwnerRegistration.model_validate(data)

    owner = create_owner(token['uid'], {
        'name': registration.full_name,
        'email': registration.email,
        'mobileNumber': registration.mobile_number,
        'address': registration.address,
        'upiId': registration.upi_id,
    }, use_case)
    return {'owner': owner}, 201

@https_fn.on_request()
@_json_endpoint
def update_owner_profile(req: https_fn.Request, data: dict):
    owner, use_case = _authenticated_owner(req, data)
    profile = OwnerProfileUpdate.model_validate(data)
    update_owner(owner['id'], profile.to_document(), use_case)
    return {'owner': {**owner, **profile.to_document()}, 'message': 'Profile Updated Successfully'}

@https_fn.on_request()
@_json_endpoint
def get_owner_dashboard(req: https_fn.Request, data: dict):
    """
    Everything the owner dashboard shows: profile, tenants with balances, cycle totals
    and unread payment notifications.
    """
    owner, use_case = _authenticated_owner(req, data)
    tenants = get_tenants(owner['id'], use_case)
    filtered = filter_tenants(tenants, data.get('filter') or 'all')
    messages_by_tenant = get_unread_messages_by_tenant(owner['id'], [t['id'] for t in tenants], use_case)

    return {
        'owner': owner,
        'tenants': filtered,
        'summary': get_dashboard_summary(tenants),
        'notifications': get_unread_messages(messages_by_tenant),
    }


# --- Tenant management ---

@https_fn.on_request()
@_json_endpoint
def add_tenant(req: https_fn.Request, data: dict):
    owner, use_case = _authenticated_owner(req, data)
    new_tenant = TenantCreate.model_validate(data)
    tenant = create_tenant(owner['id'], new_tenant.to_document(), use_case)
    return {
        'tenant': with_balance(tenant),
        'message': f"{new_tenant.name} has been added to your list.",
    }, 201

@https_fn.on_request()
@_json_endpoint
def edit_tenant(req: https_fn.Request, data: dict):
    """
    Updates a tenant's details. The room code is never changed.
    """
    owner, use_case = _authenticated_owner(req, data)
    changes = TenantUpdate.model_validate(data)
    tenant = get_tenant(owner['id'], changes.tenant_id, use_case)
    update_tenant(owner['id'], changes.tenant_id, changes.to_document(), use_case)
    return {
        'tenant': with_balance({**tenant, **changes.to_document()}),
        'message': f"{changes.name}'s details have been updated.",
    }

@https_fn.on_request()
@_json_endpoint
def delete_tenant(req: https_fn.Request, data: dict):
    owner, use_case = _authenticated_owner(req, data)
    reference = TenantReference.model_validate(data)
    tenant = get_tenant(owner['id'], reference.tenant_id, use_case)
    remove_tenant(owner['id'], reference.tenant_id, use_case)
    return {'message': f"{tenant.get('name')} and all their data have been permanently removed."}


# --- Payments ---

@https_fn.on_request()
@_json_endpoint
def record_payment(req: https_fn.Request, data: dict):
    """
    Records a payment received by the owner. When it answers a tenant's payment
    notification (messageId), the notification is verified, or rejected with the
    discrepancy reason if less than the claimed amount was received.
    """
    owner, use_case = _authenticated_owner(req, data)
    payment = PaymentRecord.model_validate(data)
    tenant = get_tenant(owner['id'], payment.tenant_id, use_case)
    tenant_updates = apply_payment(tenant, payment.amount)

    message_updates = None
    if payment.message_id:
        message = _pending_message(owner['id'], payment.tenant_id, payment.message_id, use_case)
        message_updates = resolve_claim(float(message.get('amount') or 0), payment.amount, payment.discrepancy_reason)

    save_payment(
        owner['id'], payment.tenant_id, tenant_updates, payment.amount, RECORDED_BY_OWNER,
        message_id=payment.message_id, message_updates=message_updates, use_case=use_case,
    )
    return {
        'tenant': with_balance({**tenant, **tenant_updates}),
        'message': f"Payment of {format_currency(payment.amount)} for {tenant.get('name')} has been recorded.",
    }

@https_fn.on_request()
@_json_endpoint
def mark_tenant_paid(req: https_fn.Request, data: dict):
    """
    Settles the tenant in full, recording a payment for whatever was still outstanding.
    """
    owner, use_case = _authenticated_owner(req, data)
    reference = TenantReference.model_validate(data)
    tenant = get_tenant(owner['id'], reference.tenant_id, use_case)
    tenant_updates, amount_to_record = mark_paid(tenant)
    save_payment(owner['id'], reference.tenant_id, tenant_updates, amount_to_record, RECORDED_BY_OWNER, use_case=use_case)
    return {
        'tenant': with_balance({**tenant, **tenant_updates}),
        'recordedAmount': amount_to_record,
        'message': f"{tenant.get('name')} marked as fully paid.",
    }

@https_fn.on_request()
@_json_endpoint
def mark_tenant_unpaid(req: https_fn.Request, data: dict):
    """
    Starts a new cycle for the tenant, carrying the outstanding balance over as debt.
    """
    owner, use_case = _authenticated_owner(req, data)
    reference = TenantReference.model_validate(data)
    tenant = get_tenant(owner['id'], reference.tenant_id, use_case)
    if tenant.get('status') == STATUS_UNPAID and not float(tenant.get('amountPaid') or 0):
        # Nothing has been paid since the last rollover.
        raise ConflictError(f"{tenant.get('name')} is already marked as unpaid for this cycle.")
    tenant_updates = mark_unpaid(tenant)
    update_tenant(owner['id'], reference.tenant_id, tenant_updates, use_case)
    return {
        'tenant': with_balance({**tenant, **tenant_updates}),
        'message': f"{tenant.get('name')} marked as unpaid. Balance carried over to next cycle.",
    }

@https_fn.on_request()
@_json_endpoint
def reject_payment_notification(req: https_fn.Request, data: dict):
    owner, use_case = _authenticated_owner(req, data)
    rejection = PaymentRejection.model_validate(data)
    message = _pending_message(owner['id'], rejection.tenant_id, rejection.message_id, use_case)
    update_message(owner['id'], rejection.tenant_id, rejection.message_id, {
        'status': MESSAGE_REJECTED,
        'rejectionReason': rejection.rejection_reason,
    }, use_case)
    return {'message': f"The payment notification from {message.get('tenantName')} has been rejected."}

@https_fn.on_request()
@_json_endpoint
def get_payment_history(req: https_fn.Request, data: dict):
    owner, use_case = _authenticated_owner(req, data)
    reference = TenantReference.model_validate(data)
    get_tenant(owner['id'], reference.tenant_id, use_case)
    return {'payments': get_payments(owner['id'], reference.tenant_id, use_case)}


# --- Reminders ---

@https_fn.on_request()
@_json_endpoint
def send_reminder(req: https_fn.Request, data: dict):
    """
    Emails the tenant a reminder for their outstanding balance.
    """
    owner, use_case = _authenticated_owner(req, data)
    reference = TenantReference.model_validate(data)
    if not is_email_configured():
        raise ServiceNotConfiguredError("Email is not configured. Please set SENDER_EMAIL and the AWS secrets.")

    tenant = get_tenant(owner['id'], reference.tenant_id, use_case)
    amount_due = balance(tenant)
    if amount_due <= 0:
        raise ConflictError(f"{tenant.get('name')} has nothing outstanding.")

    if not send_reminder_email(tenant, owner, amount_due, template_env, REMINDER_DUE_DESCRIPTION):
        return {'error': 'Failed to send reminder.'}, 500
    return {'message': f"A reminder has been sent to {tenant.get('name')}."}

@https_fn.on_request()
@_json_endpoint
def send_reminders_to_unpaid(req: https_fn.Request, data: dict):
    """
    Queues a reminder for every tenant who still owes money this cycle.
    """
    owner, use_case = _authenticated_owner(req, data)
    if not is_email_configured():
        raise ServiceNotConfiguredError("Email is not configured. Please set SENDER_EMAIL and the AWS secrets.")

    reminders = [
        {'ownerId': owner['id'], 'tenantId': tenant['id'], 'useCase': use_case}
        for tenant in get_tenants(owner['id'], use_case)
        if tenant.get('status') in (STATUS_UNPAID, STATUS_PARTIAL) and balance(tenant) > 0
    ]
    if not reminders:
        log.info(f"No tenants with outstanding balances for owner {owner['id']}.")
        return {'queued': 0, 'message': 'Everyone is paid up.'}

    queued = enqueue_reminder_tasks(reminders)
    if queued < len(reminders):
        log.warning(f"Queued {queued} of {len(reminders)} reminders for owner {owner['id']}.")
    return {'queued': queued, 'message': f"Queued reminders for {queued} of {len(reminders)} tenants."}

@https_fn.on_request(invoker="private")
@_json_endpoint
def send_reminder_worker(req: https_fn.Request, data: dict):
    """
    Cloud Tasks target: sends one queued reminder, re-reading the tenant so the amount is current.
    """
    owner_id = data.get('ownerId')
    tenant_id = data.get('tenantId')
    if not owner_id or not tenant_id:
        log.error("Reminder task without ownerId or tenantId.")
        raise InvalidRequestError("Missing ownerId or tenantId.")

    use_case = data.get('useCase')
    owner = get_owner(owner_id, use_case)
    tenant = get_tenant(owner_id, tenant_id, use_case)
    amount_due = balance(tenant)
    if amount_due <= 0:
        log.info(f"Tenant {tenant_id} paid before the reminder went out. Skipping.")
        return {'message': 'Nothing outstanding.'}

    if not send_reminder_email(tenant, owner, amount_due, template_env, REMINDER_DUE_DESCRIPTION):
        return {'error': 'Failed to send reminder.'}, 500
    return {'message': 'Reminder sent.'}


# --- Tenant portal ---

@https_fn.on_request()
@_json_endpoint
def tenant_login(req: https_fn.Request, data: dict):
    """
    Logs a tenant in with their room code. Unregistered tenants must onboard first.
    """
    login = RoomCodeLogin.model_validate(data)
    use_case = data.get('useCase')
    owner_id, tenant = _tenant_by_room_code(login.room_code, use_case)
    log.info(f"Tenant {tenant['id']} of owner {owner_id} logged in.")
    return {
        'ownerId': owner_id,
        'tenantId': tenant['id'],
        'useCase': use_case or DEFAULT_USE_CASE,
        'name': tenant.get('name'),
    }

@https_fn.on_request()
@_json_endpoint
def tenant_onboarding(req: https_fn.Request, data: dict):
    """
    Registers a tenant the owner has added, claiming the room code with their name and email.
    """
    onboarding = TenantOnboarding.model_validate(data)
    use_case = data.get('useCase')
    owner_id, tenant = _tenant_by_room_code(onboarding.room_code, use_case, require_registered=False)
    if tenant.get('isRegistered'):
        raise ConflictError("This code has already been used. Please log in.")

    update_tenant(owner_id, tenant['id'], {
        'name': onboarding.full_name,
        'email': onboarding.email,
        'isRegistered': True,
    }, use_case)
    return {'message': 'Registration complete. You can now log in.'}, 201

@https_fn.on_request()
@_json_endpoint
def get_tenant_dashboard(req: https_fn.Request, data: dict):
    """
    The tenant's balance, their owner's payment details and their activity feed.
    """
    login = RoomCodeLogin.model_validate(data)
    use_case = data.get('useCase')
    owner_id, tenant = _tenant_by_room_code(login.room_code, use_case)
    owner = get_owner(owner_id, use_case)
    payments = get_payments(owner_id, tenant['id'], use_case, order_by='createdAt')
    messages = get_messages(owner_id, tenant['id'], use_case)

    return {
        'tenant': with_balance(tenant),
        'owner': {
            'name': owner.get('name'),
            'email': owner.get('email'),
            'mobileNumber': owner.get('mobileNumber'),
            'address': owner.get('address'),
            'upiId': owner.get('upiId'),
        },
        'activity': build_activity_feed(payments, messages),
    }

@https_fn.on_request()
@_json_endpoint
def notify_payment(req: https_fn.Request, data: dict):
    """
    Tells the owner the tenant has paid; the owner then verifies or rejects the claim.
    """
    claim = PaymentClaim.model_validate(data)
    use_case = data.get('useCase')
    owner_id, tenant = _tenant_by_room_code(claim.room_code, use_case)
    validate_claim(tenant, claim.amount)
    message = add_message(owner_id, tenant['id'], claim.amount, tenant.get('name', ''), use_case)
    owner_noun = get_terminology(use_case)['owner_singular'].lower()
    return {'notification': message, 'message': f"Your {owner_noun} has been notified of your payment."}, 201

@https_fn.on_request()
@_json_endpoint
def get_payment_link(req: https_fn.Request, data: dict):
    claim = PaymentClaim.model_validate(data)
    use_case = data.get('useCase')
    owner_id, tenant = _tenant_by_room_code(claim.room_code, use_case)
    owner = get_owner(owner_id, use_case)
    return build_payment_link(owner, tenant, claim.amount)


# --- Scheduled ---

@scheduler_fn.on_schedule(
    schedule="0 0 1 * *",
    timezone=scheduler_fn.Timezone("Asia/Kolkata"),
)
def start_rent_cycle(event: scheduler_fn.ScheduledEvent) -> None:
    """
    Monthly cycle rollover: every tenant's outstanding balance becomes debt and
    their paid amount resets. Only runs when AUTO_CYCLE_ROLLOVER is enabled.
    """
    if os.environ.get('AUTO_CYCLE_ROLLOVER', 'false').lower() != 'true':
        log.info("AUTO_CYCLE_ROLLOVER is disabled. Skipping rent cycle rollover.")
        return

    log.info("Starting monthly rent cycle rollover.")
    for use_case in TERMINOLOGY:
        for owner in get_all_owners(use_case):
            try:
                tenants = get_tenants(owner['id'], use_case)
                updates_by_tenant = {tenant['id']: mark_unpaid(tenant) for tenant in tenants}
                if updates_by_tenant:
                    roll_over_tenants(owner['id'], updates_by_tenant, use_case)
            except Exception as e:
                log.error(f"Error rolling over tenants of {use_case} owner {owner['id']}: {e}")
    log.info("Finished monthly rent cycle rollover.")
