from datetime import datetime, timezone
from unittest.mock import MagicMock

OWNER = {
    "id": "owner-1",
    "uid": "uid-owner-1",
    "name": "Asha Verma",
    "email": "asha@example.com",
    "mobileNumber": "9876543210",
    "address": "12 MG Road, Pune",
    "upiId": "asha@okbank",
}

TENANTS = {
    "tenant-paid": {
        "id": "tenant-paid",
        "name": "Rohan Mehta",
        "email": "rohan@example.com",
        "room": "Room 101",
        "rentAmount": 8000,
        "extraExpenses": 500,
        "amountPaid": 8500,
        "debt": 0,
        "status": "paid",
        "avatar": "https://robohash.org/rohan@example.com",
        "roomCode": "RM1010",
        "isRegistered": True,
    },
    "tenant-partial": {
        "id": "tenant-partial",
        "name": "priya Nair",
        "email": "priya@example.com",
        "room": "Room 102",
        "rentAmount": 7000,
        "extraExpenses": 0,
        "amountPaid": 3000,
        "debt": 1000,
        "status": "partial",
        "avatar": "https://robohash.org/priya@example.com",
        "roomCode": "PN1020",
        "isRegistered": True,
    },
    "tenant-unpaid": {
        "id": "tenant-unpaid",
        "name": "Karan Singh",
        "email": "karan@example.com",
        "room": "Room 103",
        "rentAmount": 6000,
        "amountPaid": 0,
        "debt": 0,
        "status": "unpaid",
        "avatar": "https://robohash.org/karan@example.com",
        "roomCode": "KS1030",
        "isRegistered": False,
    },
}

def at(day: int, hour: int = 9) -> datetime:
    return datetime(2025, 6, day, hour, 0, tzinfo=timezone.utc)

MESSAGES = {
    "tenant-partial": [
        {"id": "msg-1", "amount": 2000, "tenantName": "priya Nair", "status": "unread", "createdAt": at(3)},
        {"id": "msg-2", "amount": 1500, "tenantName": "priya Nair", "status": "verified", "createdAt": at(1)},
    ],
    "tenant-unpaid": [
        {"id": "msg-3", "amount": 6000, "tenantName": "Karan Singh", "status": "unread", "createdAt": at(5)},
    ],
}

def tenant(tenant_id: str, **overrides) -> dict:
    return {**TENANTS[tenant_id], **overrides}

def make_snapshot(doc_id: str, data: dict | None, exists: bool = True) -> MagicMock:
    """A stand-in for a Firestore DocumentSnapshot."""
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = dict(data) if data is not None else None
    return snapshot

class MockRequest:
    """Simulates firebase_functions.https_fn.Request."""
    def __init__(self, json_data=None, args_data=None, headers=None):
        self._json_data = json_data
        self._args_data = args_data if args_data is not None else {}
        self.headers = headers if headers is not None else {}
        self.method = "POST"

    def get_json(self, silent=True):
        return self._json_data

    @property
    def args(self):
        return self._args_data

class MockEvent:
    """A mock event object for testing scheduled Cloud Functions."""
    def __init__(self):
        self.headers = {}
