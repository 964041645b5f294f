# functions/services/db_service.py

from firebase_admin import firestore
import logging

from constants import (
    TERMINOLOGY, DEFAULT_USE_CASE,
    PAYMENTS_SUBCOLLECTION, MESSAGES_SUBCOLLECTION,
    STATUS_UNPAID, MESSAGE_UNREAD,
    AVATAR_URL_TEMPLATE, ROOM_CODE_MAX_ATTEMPTS,
)
from utils.errors import InvalidRequestError, NotFoundError, ConflictError
from utils.payment_utils import generate_room_code

log = logging.getLogger(__name__)

# Firestore caps a batched write at 500 operations.
BATCH_LIMIT = 500

def get_terminology(use_case: str | None = None) -> dict:
    """
    Returns the collection names and nouns for a use case ('room' or 'library').
    """
    use_case = use_case or DEFAULT_USE_CASE
    terminology = TERMINOLOGY.get(use_case)
    if not terminology:
        raise InvalidRequestError(f"Unknown use case '{use_case}'.")
    return terminology

def _owners(use_case: str | None):
    return firestore.client().collection(get_terminology(use_case)['owners_collection'])

def _tenants(owner_id: str, use_case: str | None):
    return _owners(use_case).document(owner_id).collection(get_terminology(use_case)['tenants_collection'])

def _tenant_ref(owner_id: str, tenant_id: str, use_case: str | None):
    return _tenants(owner_id, use_case).document(tenant_id)

def _to_dict(snapshot) -> dict:
    return {'id': snapshot.id, **(snapshot.to_dict() or {})}

# --- Owners ---

def get_owner_by_uid(uid: str, use_case: str | None = None) -> dict | None:
    """
    Gets the owner document linked to a Firebase Auth uid.
    """
    query = _owners(use_case).where(filter=firestore.FieldFilter('uid', '==', uid)).limit(1)
    for snapshot in query.stream():
        return _to_dict(snapshot)
    return None

def get_owner(owner_id: str, use_case: str | None = None) -> dict:
    snapshot = _owners(use_case).document(owner_id).get()
    if not snapshot.exists:
        raise NotFoundError(f"{get_terminology(use_case)['owner_singular']} not found.")
    return _to_dict(snapshot)

def get_all_owners(use_case: str | None = None) -> list:
    """
    Gets every owner of a use case.
    """
    return [_to_dict(snapshot) for snapshot in _owners(use_case).stream()]

def create_owner(uid: str, owner_data: dict, use_case: str | None = None) -> dict:
    """
    Creates the owner document for a uid. One owner document per uid per use case.
    """
    if get_owner_by_uid(uid, use_case):
        raise ConflictError("An account with this email already exists for this use case. Please log in.")

    document = {
        **owner_data,
        'uid': uid,
        'createdAt': firestore.SERVER_TIMESTAMP,
    }
    _, owner_ref = _owners(use_case).add(document)
    log.info(f"Created owner {owner_ref.id} for uid {uid}")
    return {'id': owner_ref.id, **document}

def update_owner(owner_id: str, owner_data: dict, use_case: str | None = None):
    try:
        _owners(use_case).document(owner_id).update(owner_data)
        log.info(f"Updated profile of owner {owner_id}")
    except Exception as e:
        log.error(f"Error updating profile of owner {owner_id}: {e}")
        raise

# --- Tenants ---

def get_tenants(owner_id: str, use_case: str | None = None) -> list:
    """
    Gets all tenants of an owner.
    """
    return [_to_dict(snapshot) for snapshot in _tenants(owner_id, use_case).stream()]

def get_tenant(owner_id: str, tenant_id: str, use_case: str | None = None) -> dict:
    snapshot = _tenant_ref(owner_id, tenant_id, use_case).get()
    if not snapshot.exists:
        raise NotFoundError(f"{get_terminology(use_case)['tenant_singular']} not found.")
    return _to_dict(snapshot)

def find_tenant_by_room_code(room_code: str, use_case: str | None = None) -> tuple[str, dict] | None:
    """
    Looks up a tenant by room code across all owners.
    Returns (owner_id, tenant) or None.
    """
    tenants_collection = get_terminology(use_case)['tenants_collection']
    query = (
        firestore.client()
        .collection_group(tenants_collection)
        .where(filter=firestore.FieldFilter('roomCode', '==', room_code))
        .limit(1)
    )
    for snapshot in query.stream():
        owner_ref = snapshot.reference.parent.parent
        return owner_ref.id, _to_dict(snapshot)
    return None

def _unused_room_code(use_case: str | None) -> str:
    for _ in range(ROOM_CODE_MAX_ATTEMPTS):
        room_code = generate_room_code()
        if not find_tenant_by_room_code(room_code, use_case):
            return room_code
        log.warning(f"Room code collision on {room_code}, regenerating.")
    raise ConflictError("Could not generate a unique room code. Please try again.")

def add_tenant(owner_id: str, tenant_data: dict, use_case: str | None = None) -> dict:
    """
    Adds a tenant with a fresh cycle (nothing paid, no debt) and a unique room code.
    """
    document = {
        **tenant_data,
        'amountPaid': 0,
        'status': STATUS_UNPAID,
        'debt': 0,
        'avatar': AVATAR_URL_TEMPLATE.format(email=tenant_data.get('email', '')),
        'roomCode': _unused_room_code(use_case),
        'isRegistered': False,
        'createdAt': firestore.SERVER_TIMESTAMP,
    }
    _, tenant_ref = _tenants(owner_id, use_case).add(document)
    log.info(f"Added tenant {tenant_ref.id} for owner {owner_id}")
    return {'id': tenant_ref.id, **document}

def update_tenant(owner_id: str, tenant_id: str, tenant_data: dict, use_case: str | None = None):
    try:
        _tenant_ref(owner_id, tenant_id, use_case).update(tenant_data)
        log.info(f"Updated tenant {tenant_id} of owner {owner_id}: {sorted(tenant_data)}")
    except Exception as e:
        log.error(f"Error updating tenant {tenant_id} of owner {owner_id}: {e}")
        raise

def _delete_collection(collection_ref) -> int:
    """Deletes every document of a collection in batches. Returns the number deleted."""
    db = firestore.client()
    deleted = 0
    batch = db.batch()
    pending = 0
    for snapshot in collection_ref.stream():
        batch.delete(snapshot.reference)
        pending += 1
        if pending == BATCH_LIMIT:
            batch.commit()
            deleted += pending
            batch = db.batch()
            pending = 0
    if pending:
        batch.commit()
        deleted += pending
    return deleted

def delete_tenant(owner_id: str, tenant_id: str, use_case: str | None = None):
    """
    Permanently removes a tenant with its payment history and messages.
    """
    tenant_ref = _tenant_ref(owner_id, tenant_id, use_case)
    try:
        payments_deleted = _delete_collection(tenant_ref.collection(PAYMENTS_SUBCOLLECTION))
        messages_deleted = _delete_collection(tenant_ref.collection(MESSAGES_SUBCOLLECTION))
        tenant_ref.delete()
        log.info(f"Deleted tenant {tenant_id} of owner {owner_id} ({payments_deleted} payments, {messages_deleted} messages)")
    except Exception as e:
        log.error(f"Error deleting tenant {tenant_id} of owner {owner_id}: {e}")
        raise

# --- Payments ---

def _payment_document(amount: float, recorded_by: str) -> dict:
    return {
        'amount': amount,
        'paymentDate': firestore.SERVER_TIMESTAMP,
        'createdAt': firestore.SERVER_TIMESTAMP,
        'recordedBy': recorded_by,
    }

def record_payment(owner_id: str, tenant_id: str, tenant_updates: dict, amount: float, recorded_by: str,
                   message_id: str | None = None, message_updates: dict | None = None,
                   use_case: str | None = None):
    """
    Atomically updates the tenant's balance, writes the payment and, when the payment
    answers a tenant's notification, closes that message.
    """
    db = firestore.client()
    tenant_ref = _tenant_ref(owner_id, tenant_id, use_case)
    try:
        batch = db.batch()
        batch.update(tenant_ref, tenant_updates)
        if amount > 0:
            batch.set(tenant_ref.collection(PAYMENTS_SUBCOLLECTION).document(), _payment_document(amount, recorded_by))
        if message_id and message_updates:
            batch.update(tenant_ref.collection(MESSAGES_SUBCOLLECTION).document(message_id), message_updates)
        batch.commit()
        log.info(f"Recorded payment of {amount} for tenant {tenant_id} of owner {owner_id} (status: {tenant_updates.get('status')})")
    except Exception as e:
        log.error(f"Error recording payment for tenant {tenant_id} of owner {owner_id}: {e}")
        raise

def get_payments(owner_id: str, tenant_id: str, use_case: str | None = None, order_by: str = 'paymentDate') -> list:
    """
    Gets a tenant's payment history, newest first.
    """
    query = (
        _tenant_ref(owner_id, tenant_id, use_case)
        .collection(PAYMENTS_SUBCOLLECTION)
        .order_by(order_by, direction=firestore.Query.DESCENDING)
    )
    return [_to_dict(snapshot) for snapshot in query.stream()]

def roll_over_tenants(owner_id: str, updates_by_tenant: dict, use_case: str | None = None) -> int:
    """
    Applies per-tenant cycle rollover updates for one owner in batched writes.
    """
    db = firestore.client()
    tenants_ref = _tenants(owner_id, use_case)
    items = list(updates_by_tenant.items())
    for start in range(0, len(items), BATCH_LIMIT):
        batch = db.batch()
        for tenant_id, updates in items[start:start + BATCH_LIMIT]:
            batch.update(tenants_ref.document(tenant_id), updates)
        batch.commit()
    log.info(f"Rolled over {len(items)} tenants for owner {owner_id}")
    return len(items)

# --- Messages ---

def get_message(owner_id: str, tenant_id: str, message_id: str, use_case: str | None = None) -> dict:
    snapshot = _tenant_ref(owner_id, tenant_id, use_case).collection(MESSAGES_SUBCOLLECTION).document(message_id).get()
    if not snapshot.exists:
        raise NotFoundError("Payment notification not found.")
    return {**_to_dict(snapshot), 'tenantId': tenant_id}

def get_messages(owner_id: str, tenant_id: str, use_case: str | None = None) -> list:
    messages_ref = _tenant_ref(owner_id, tenant_id, use_case).collection(MESSAGES_SUBCOLLECTION)
    return [_to_dict(snapshot) for snapshot in messages_ref.stream()]

def get_unread_messages_by_tenant(owner_id: str, tenant_ids: list, use_case: str | None = None) -> dict:
    """
    Gets unread payment notifications for each of the owner's tenants.
    Returns {tenant_id: [message, ...]} for tenants that have any.
    """
    messages_by_tenant = {}
    for tenant_id in tenant_ids:
        query = (
            _tenant_ref(owner_id, tenant_id, use_case)
            .collection(MESSAGES_SUBCOLLECTION)
            .where(filter=firestore.FieldFilter('status', '==', MESSAGE_UNREAD))
        )
        messages = [_to_dict(snapshot) for snapshot in query.stream()]
        if messages:
            messages_by_tenant[tenant_id] = messages
    return messages_by_tenant

def add_message(owner_id: str, tenant_id: str, amount: float, tenant_name: str, use_case: str | None = None) -> dict:
    """
    Adds a tenant's payment notification for the owner to verify.
    """
    document = {
        'amount': amount,
        'tenantName': tenant_name,
        'createdAt': firestore.SERVER_TIMESTAMP,
        'status': MESSAGE_UNREAD,
    }
    _, message_ref = _tenant_ref(owner_id, tenant_id, use_case).collection(MESSAGES_SUBCOLLECTION).add(document)
    log.info(f"Tenant {tenant_id} notified owner {owner_id} of a payment of {amount}")
    return {'id': message_ref.id, **document}

def update_message(owner_id: str, tenant_id: str, message_id: str, message_data: dict, use_case: str | None = None):
    try:
        _tenant_ref(owner_id, tenant_id, use_case).collection(MESSAGES_SUBCOLLECTION).document(message_id).update(message_data)
        log.info(f"Updated message {message_id} of tenant {tenant_id}: {message_data.get('status')}")
    except Exception as e:
        log.error(f"Error updating message {message_id} of tenant {tenant_id}: {e}")
        raise
