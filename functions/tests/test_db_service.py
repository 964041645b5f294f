import unittest
from unittest.mock import patch, MagicMock, call
import sys
import os

# Add the functions directory to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.db_service import (
    get_terminology, get_owner_by_uid, create_owner, get_tenant, find_tenant_by_room_code,
    add_tenant, delete_tenant, record_payment, roll_over_tenants, get_unread_messages_by_tenant,
    BATCH_LIMIT,
)
from utils.errors import InvalidRequestError, NotFoundError, ConflictError
from fixtures import OWNER, MESSAGES, tenant, make_snapshot

class TestTerminology(unittest.TestCase):

    def test_library_collections(self):
        terminology = get_terminology("library")
        self.assertEqual(terminology['owners_collection'], "librarians")
        self.assertEqual(terminology['tenants_collection'], "students")

    def test_defaults_to_room(self):
        self.assertEqual(get_terminology(None)['owners_collection'], "roomOwners")

    def test_unknown_use_case(self):
        with self.assertRaises(InvalidRequestError):
            get_terminology("hostel")


@patch('services.db_service.firestore.client')
class TestOwners(unittest.TestCase):

    def test_get_owner_by_uid_not_found(self, mock_client):
        mock_db = mock_client.return_value
        mock_db.collection.return_value.where.return_value.limit.return_value.stream.return_value = []

        self.assertIsNone(get_owner_by_uid("uid-unknown"))
        mock_db.collection.assert_called_with("roomOwners")

    def test_get_owner_by_uid(self, mock_client):
        mock_db = mock_client.return_value
        owner_data = {k: v for k, v in OWNER.items() if k != 'id'}
        mock_db.collection.return_value.where.return_value.limit.return_value.stream.return_value = [
            make_snapshot("owner-1", owner_data)
        ]

        self.assertEqual(get_owner_by_uid("uid-owner-1"), OWNER)

    @patch('services.db_service.get_owner_by_uid', return_value=OWNER)
    def test_create_owner_conflict(self, mock_get_owner, mock_client):
        with self.assertRaises(ConflictError):
            create_owner("uid-owner-1", {"name": "Asha Verma"})
        mock_client.return_value.collection.return_value.add.assert_not_called()

    @patch('services.db_service.get_owner_by_uid', return_value=None)
    def test_create_owner(self, mock_get_owner, mock_client):
        mock_db = mock_client.return_value
        owner_ref = MagicMock()
        owner_ref.id = "owner-9"
        mock_db.collection.return_value.add.return_value = (None, owner_ref)

        owner = create_owner("uid-9", {"name": "Meera Das"}, use_case="library")

        mock_db.collection.assert_called_with("librarians")
        self.assertEqual(owner['id'], "owner-9")
        self.assertEqual(owner['uid'], "uid-9")
        self.assertEqual(owner['name'], "Meera Das")


@patch('services.db_service.firestore.client')
class TestTenants(unittest.TestCase):

    def test_get_tenant_not_found_uses_use_case_noun(self, mock_client):
        mock_db = mock_client.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        tenant_ref.get.return_value = make_snapshot("missing", None, exists=False)

        with self.assertRaises(NotFoundError) as ctx:
            get_tenant("owner-1", "missing", use_case="library")
        self.assertEqual(ctx.exception.message, "Student not found.")

    def test_find_tenant_by_room_code(self, mock_client):
        mock_db = mock_client.return_value
        snapshot = make_snapshot("tenant-partial", tenant("tenant-partial"))
        snapshot.reference.parent.parent.id = "owner-1"
        mock_db.collection_group.return_value.where.return_value.limit.return_value.stream.return_value = [snapshot]

        owner_id, found = find_tenant_by_room_code("PN1020", use_case="library")

        mock_db.collection_group.assert_called_once_with("students")
        self.assertEqual(owner_id, "owner-1")
        self.assertEqual(found['id'], "tenant-partial")
        self.assertEqual(found['roomCode'], "PN1020")

    def test_find_tenant_by_room_code_unknown(self, mock_client):
        mock_db = mock_client.return_value
        mock_db.collection_group.return_value.where.return_value.limit.return_value.stream.return_value = []

        self.assertIsNone(find_tenant_by_room_code("ZZZZZZ"))

    @patch('services.db_service.find_tenant_by_room_code')
    @patch('services.db_service.generate_room_code')
    def test_add_tenant_starts_unpaid_with_unique_code(self, mock_generate, mock_find, mock_client):
        mock_generate.side_effect = ["TAKEN1", "FREE22"]
        mock_find.side_effect = [("owner-2", tenant("tenant-paid")), None]
        mock_db = mock_client.return_value
        tenant_ref = MagicMock()
        tenant_ref.id = "tenant-new"
        mock_db.collection.return_value.document.return_value.collection.return_value.add.return_value = (None, tenant_ref)

        created = add_tenant("owner-1", {
            "name": "Neha Rao",
            "email": "neha@example.com",
            "room": "Room 104",
            "rentAmount": 5500,
            "extraExpenses": 0,
        })

        self.assertEqual(created['id'], "tenant-new")
        self.assertEqual(created['roomCode'], "FREE22")
        self.assertEqual(created['amountPaid'], 0)
        self.assertEqual(created['debt'], 0)
        self.assertEqual(created['status'], "unpaid")
        self.assertFalse(created['isRegistered'])
        self.assertEqual(created['avatar'], "https://robohash.org/neha@example.com")
        self.assertEqual(mock_find.call_count, 2)

    @patch('services.db_service.find_tenant_by_room_code', return_value=("owner-2", {}))
    @patch('services.db_service.generate_room_code', return_value="TAKEN1")
    def test_add_tenant_gives_up_after_repeated_collisions(self, mock_generate, mock_find, mock_client):
        with self.assertRaises(ConflictError):
            add_tenant("owner-1", {"name": "Neha Rao", "email": "neha@example.com"})
        self.assertEqual(mock_generate.call_count, 5)

    def test_delete_tenant_removes_history_then_tenant(self, mock_client):
        mock_db = mock_client.return_value
        mock_batch = mock_db.batch.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        payments = [make_snapshot("pay-1", {"amount": 3000}), make_snapshot("pay-2", {"amount": 500})]
        messages = [make_snapshot("msg-1", MESSAGES["tenant-partial"][0])]
        tenant_ref.collection.return_value.stream.side_effect = [payments, messages]

        delete_tenant("owner-1", "tenant-partial")

        tenant_ref.collection.assert_has_calls([call("payments"), call("messages")], any_order=True)
        self.assertEqual(mock_batch.delete.call_count, 3)
        self.assertEqual(mock_batch.commit.call_count, 2)
        tenant_ref.delete.assert_called_once()

    def test_delete_tenant_splits_large_history_into_batches(self, mock_client):
        mock_db = mock_client.return_value
        mock_batch = mock_db.batch.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        payments = [MagicMock() for _ in range(BATCH_LIMIT + 1)]
        tenant_ref.collection.return_value.stream.side_effect = [payments, []]

        delete_tenant("owner-1", "tenant-partial")

        self.assertEqual(mock_batch.delete.call_count, BATCH_LIMIT + 1)
        self.assertEqual(mock_batch.commit.call_count, 2)

    def test_delete_tenant_propagates_errors(self, mock_client):
        mock_db = mock_client.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        tenant_ref.collection.return_value.stream.side_effect = RuntimeError("unavailable")

        with self.assertRaises(RuntimeError):
            delete_tenant("owner-1", "tenant-partial")
        tenant_ref.delete.assert_not_called()


@patch('services.db_service.firestore.client')
class TestPayments(unittest.TestCase):

    def test_record_payment_writes_tenant_and_payment_in_one_batch(self, mock_client):
        mock_db = mock_client.return_value
        mock_batch = mock_db.batch.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        updates = {"amountPaid": 5000, "status": "partial"}

        record_payment("owner-1", "tenant-partial", updates, 2000, "owner")

        mock_batch.update.assert_called_once_with(tenant_ref, updates)
        mock_batch.set.assert_called_once()
        payment = mock_batch.set.call_args[0][1]
        self.assertEqual(payment['amount'], 2000)
        self.assertEqual(payment['recordedBy'], "owner")
        mock_batch.commit.assert_called_once()

    def test_record_payment_closes_message(self, mock_client):
        mock_db = mock_client.return_value
        mock_batch = mock_db.batch.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value

        record_payment("owner-1", "tenant-partial", {"amountPaid": 5000, "status": "partial"}, 2000, "owner",
                       message_id="msg-1", message_updates={"status": "verified"})

        self.assertEqual(mock_batch.update.call_count, 2)
        tenant_ref.collection.return_value.document.assert_any_call("msg-1")
        mock_batch.update.assert_any_call(tenant_ref.collection.return_value.document.return_value, {"status": "verified"})
        mock_batch.commit.assert_called_once()

    def test_record_payment_without_amount_skips_payment_document(self, mock_client):
        mock_batch = mock_client.return_value.batch.return_value

        record_payment("owner-1", "tenant-paid", {"amountPaid": 8500, "status": "paid", "debt": 0}, 0, "owner")

        mock_batch.set.assert_not_called()
        mock_batch.commit.assert_called_once()

    def test_record_payment_propagates_commit_failure(self, mock_client):
        mock_client.return_value.batch.return_value.commit.side_effect = RuntimeError("aborted")

        with self.assertRaises(RuntimeError):
            record_payment("owner-1", "tenant-partial", {"amountPaid": 5000, "status": "partial"}, 2000, "owner")

    def test_roll_over_tenants(self, mock_client):
        mock_batch = mock_client.return_value.batch.return_value
        updates = {
            "tenant-paid": {"amountPaid": 0, "status": "unpaid", "debt": 0},
            "tenant-partial": {"amountPaid": 0, "status": "unpaid", "debt": 5000},
            "tenant-unpaid": {"amountPaid": 0, "status": "unpaid", "debt": 6000},
        }

        self.assertEqual(roll_over_tenants("owner-1", updates), 3)
        self.assertEqual(mock_batch.update.call_count, 3)
        mock_batch.commit.assert_called_once()


@patch('services.db_service.firestore.client')
class TestMessages(unittest.TestCase):

    def test_unread_messages_only_for_tenants_that_have_them(self, mock_client):
        mock_db = mock_client.return_value
        tenant_ref = mock_db.collection.return_value.document.return_value.collection.return_value.document.return_value
        unread = MESSAGES["tenant-partial"][0]
        tenant_ref.collection.return_value.where.return_value.stream.side_effect = [
            [make_snapshot(unread['id'], {k: v for k, v in unread.items() if k != 'id'})],
            [],
        ]

        result = get_unread_messages_by_tenant("owner-1", ["tenant-partial", "tenant-paid"])

        self.assertEqual(list(result), ["tenant-partial"])
        self.assertEqual(result["tenant-partial"][0]['id'], "msg-1")
        self.assertEqual(result["tenant-partial"][0]['amount'], 2000)

if __name__ == '__main__':
    unittest.main()
