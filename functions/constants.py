import os

# Use cases share one data model but live in separate collections.
TERMINOLOGY = {
    "room": {
        "app_name": "Roommate Hub",
        "owners_collection": "roomOwners",
        "tenants_collection": "tenants",
        "owner_singular": "Owner",
        "tenant_singular": "Tenant",
        "room_code_singular": "Room Code",
    },
    "library": {
        "app_name": "Library Hub",
        "owners_collection": "librarians",
        "tenants_collection": "students",
        "owner_singular": "Librarian",
        "tenant_singular": "Student",
        "room_code_singular": "Student ID",
    },
}

DEFAULT_USE_CASE = os.environ.get("DEFAULT_USE_CASE", "room")

PAYMENTS_SUBCOLLECTION = "payments"
MESSAGES_SUBCOLLECTION = "messages"

# Tenant.status
STATUS_PAID = "paid"
STATUS_UNPAID = "unpaid"
STATUS_PARTIAL = "partial"

# Message.status
MESSAGE_UNREAD = "unread"
MESSAGE_VERIFIED = "verified"
MESSAGE_REJECTED = "rejected"

# Payment.recordedBy
RECORDED_BY_OWNER = "owner"
RECORDED_BY_TENANT = "tenant"

TENANT_FILTERS = ("all", "paid", "unpaid")

ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_CODE_LENGTH = 6
ROOM_CODE_MAX_ATTEMPTS = 5

AVATAR_URL_TEMPLATE = "https://robohash.org/{email}"
QR_CODE_URL_TEMPLATE = "https://api.qrserver.com/v1/create-qr-code/?size=200x200&data={data}"
CURRENCY_CODE = "INR"

REMINDER_DUE_DESCRIPTION = os.environ.get("REMINDER_DUE_DESCRIPTION", "this month")
