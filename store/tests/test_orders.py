from unittest import mock

from django.core import mail
from django.db import transaction
from django.test import override_settings

from store import orders
from store.exceptions import IllegalStatusTransition, OrderNotFound
from store.models import Order, OrderHistory, OrderItem

from .base import StoreTestCase, make_order, make_user


@override_settings(SUPPORT_EMAIL="support@store.test")
class StatusUpdaterTests(StoreTestCase):

    def test_pending_to_shipped_writes_history_and_sends_both_emails(self):
        with self.captureOnCommitCallbacks(execute=True):
            change = orders.update_order_status(self.order.pk, "shipped")

        self.assertEqual(change.previous_status, "pending")
        self.assertEqual(change.new_status, "shipped")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "shipped")

        history = list(OrderHistory.objects.filter(order=self.order))
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].status, "shipped")
        self.assertIsNone(history[0].note)

        self.assertEqual(len(mail.outbox), 2)
        admin_mail, customer_mail = mail.outbox
        self.assertEqual(admin_mail.to, ["support@store.test"])
        self.assertEqual(admin_mail.subject, "Order Status Changed - ORD-1001 - Shipped")
        self.assertEqual(customer_mail.to, ["jane@example.com"])
        self.assertEqual(customer_mail.subject, "Order Status Update - ORD-1001 - Shipped")
        self.assertTrue(change.notification["success"])
        self.assertEqual(change.notification["details"], {"customer_email": "sent", "admin_email": "sent"})

    def test_customer_only_status_sends_one_email(self):
        with self.captureOnCommitCallbacks(execute=True):
            change = orders.update_order_status(self.order.pk, "processing")

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["jane@example.com"])
        self.assertEqual(change.notification["details"]["admin_email"], "not sent")

    def test_reapplying_same_status_appends_history_each_time(self):
        orders.update_order_status(self.order.pk, "shipped")
        second = orders.update_order_status(self.order.pk, "shipped")

        self.assertEqual(second.previous_status, "shipped")
        self.assertEqual(OrderHistory.objects.filter(order=self.order, status="shipped").count(), 2)

    def test_backward_move_is_accepted_by_default(self):
        orders.update_order_status(self.order.pk, "delivered", notify=False)
        change = orders.update_order_status(self.order.pk, "pending", notify=False)

        self.assertEqual(change.previous_status, "delivered")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")

    def test_note_and_actor_are_recorded(self):
        with self.captureOnCommitCallbacks(execute=True):
            orders.update_order_status(
                self.order.pk, "confirmed", note="Called customer", changed_by="admin@example.com"
            )

        self.order.refresh_from_db()
        self.assertEqual(self.order.admin_note, "Called customer")
        self.assertEqual(self.order.updated_by, "admin@example.com")
        row = OrderHistory.objects.get(order=self.order)
        self.assertEqual(row.note, "Called customer")
        self.assertEqual(row.changed_by, "admin@example.com")
        self.assertIn("Called customer", mail.outbox[0].body)

    def test_unknown_order_raises_not_found(self):
        with self.assertRaises(OrderNotFound):
            orders.update_order_status(999999, "shipped")

    def test_deleted_order_cannot_be_updated(self):
        orders.delete_order(self.order.pk, by="admin@example.com")
        with self.assertRaises(OrderNotFound):
            orders.update_order_status(self.order.pk, "shipped")
        self.assertFalse(OrderHistory.objects.filter(order_id=self.order.pk).exists())

    def test_mail_failure_keeps_status_change(self):
        with mock.patch("store.notifications.get_connection", side_effect=ConnectionRefusedError("smtp down")):
            with self.captureOnCommitCallbacks(execute=True):
                change = orders.update_order_status(self.order.pk, "shipped")

        self.assertFalse(change.notification["success"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "shipped")
        self.assertEqual(OrderHistory.objects.filter(order=self.order).count(), 1)

    def test_emails_wait_for_the_outer_transaction_to_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            with transaction.atomic():
                change = orders.update_order_status(self.order.pk, "shipped")
                self.assertEqual(len(mail.outbox), 0)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 0)
        self.assertIsNone(change.notification)

        callbacks[0]()
        self.assertEqual(len(mail.outbox), 2)
        self.assertTrue(change.notification["success"])

    def test_no_email_when_outer_transaction_rolls_back(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    orders.update_order_status(self.order.pk, "shipped")
                    raise RuntimeError("caller failed later")
            except RuntimeError:
                pass

        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")

    def test_customer_without_email_is_not_notified(self):
        walk_in = make_user("walkin@example.com", username="walkin")
        walk_in.email = ""
        walk_in.save(update_fields=["email"])
        order = make_order(code="ORD-2000", customer=walk_in)

        with self.captureOnCommitCallbacks(execute=True):
            change = orders.update_order_status(order.pk, "shipped")

        self.assertIsNone(change.notification)
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(ORDER_STATUS_STRICT_TRANSITIONS=True)
    def test_strict_mode_rejects_illegal_move_and_writes_nothing(self):
        Order.objects.filter(pk=self.order.pk).update(status="delivered")

        with self.assertRaises(IllegalStatusTransition):
            orders.update_order_status(self.order.pk, "pending", notify=False)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "delivered")
        self.assertFalse(OrderHistory.objects.filter(order=self.order).exists())

    @override_settings(ORDER_STATUS_STRICT_TRANSITIONS=True)
    def test_strict_mode_follows_the_transition_table(self):
        for status in ("confirmed", "processing", "shipped", "delivered"):
            orders.update_order_status(self.order.pk, status, notify=False)
        self.assertEqual(OrderHistory.objects.filter(order=self.order).count(), 4)

    @override_settings(ORDER_STATUS_STRICT_TRANSITIONS=True)
    def test_strict_mode_still_accepts_same_status(self):
        orders.update_order_status(self.order.pk, "pending", notify=False)
        self.assertEqual(OrderHistory.objects.filter(order=self.order).count(), 1)


class OrderReaderTests(StoreTestCase):

    def test_reads_by_code_and_by_id(self):
        by_code = orders.get_order_details("ORD-1001")
        by_id = orders.get_order_details(self.order.pk)
        by_id_text = orders.get_order_details(str(self.order.pk))

        self.assertEqual(by_code.pk, self.order.pk)
        self.assertEqual(by_id.pk, self.order.pk)
        self.assertEqual(by_id_text.pk, self.order.pk)
        self.assertEqual(by_code.customer, self.customer)
        self.assertEqual(by_code.shipping_address.city, "Dubai")

    def test_id_wins_over_a_numeric_code(self):
        clash = make_order(code=str(self.order.pk))
        numeric = make_order(code="987654")

        self.assertEqual(orders.get_order_details(str(self.order.pk)).pk, self.order.pk)
        self.assertEqual(orders.get_order_details(self.order.pk).pk, self.order.pk)
        self.assertEqual(orders.get_order_details(str(clash.pk)).pk, clash.pk)
        self.assertEqual(orders.get_order_details("987654").pk, numeric.pk)

    def test_missing_or_deleted_order_reads_as_none(self):
        self.assertIsNone(orders.get_order_details("ORD-NOPE"))
        self.assertIsNone(orders.get_order_details(""))

        self.order.soft_delete()
        self.assertIsNone(orders.get_order_details("ORD-1001"))

    def test_deleted_items_are_left_out(self):
        item = OrderItem.objects.get(order=self.order)
        item.soft_delete()

        order = orders.get_order_details("ORD-1001")
        self.assertEqual(list(order.items.all()), [])
        self.assertTrue(OrderItem.all_objects.filter(pk=item.pk, is_deleted=True).exists())

    def test_history_is_newest_first(self):
        orders.update_order_status(self.order.pk, "confirmed", notify=False)
        orders.update_order_status(self.order.pk, "processing", notify=False)

        order = orders.get_order_details("ORD-1001")
        self.assertEqual([h.status for h in order.history.all()], ["processing", "confirmed"])

    def test_deleted_customer_is_hidden(self):
        self.customer.soft_delete(by=self.superadmin.pk)
        order = orders.get_order_details("ORD-1001")
        self.assertIsNone(order.customer)

    def test_totals_come_from_price_snapshots(self):
        self.product.price = "1.00"
        self.product.save()

        order = orders.get_order_details("ORD-1001")
        self.assertEqual(str(order.items_subtotal), "259.80")
        self.assertEqual(str(order.computed_total), "269.80")
        self.assertEqual(order.currency_code, "AED")


class OrderApiTests(StoreTestCase):

    def test_detail_by_code(self):
        self.login_as(self.editor)
        r = self.client.get("/api/orders/ORD-1001/")
        self.assertEqual(r.status_code, 200, r.content)
        body = r.json()
        self.assertEqual(body["code"], "ORD-1001")
        self.assertEqual(len(body["items"]), 1)
        self.assertEqual(body["customer"]["email"], "jane@example.com")

    def test_missing_order_is_404_with_code(self):
        self.login_as(self.editor)
        r = self.client.get("/api/orders/ORD-404/")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["code"], "order_not_found")

    def test_list_filters_by_status(self):
        make_order(code="ORD-1002", status="shipped")
        self.login_as(self.editor)

        r = self.client.get("/api/orders/", {"status": "shipped"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual([o["code"] for o in r.json()["results"]], ["ORD-1002"])

    def test_status_endpoint(self):
        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            r = self.client.post("/api/orders/ORD-1001/status/", {"new_status": "shipped"}, format="json")

        self.assertEqual(r.status_code, 200, r.content)
        body = r.json()
        self.assertEqual(body["previous_status"], "pending")
        self.assertEqual(body["new_status"], "shipped")
        self.assertEqual(body["data"]["status"], "shipped")
        self.assertEqual(body["data"]["history"][0]["changed_by"], "admin@example.com")
        self.assertEqual(len(mail.outbox), 2)

    def test_status_endpoint_rejects_unknown_status(self):
        self.login_as(self.admin)
        r = self.client.post("/api/orders/ORD-1001/status/", {"new_status": "lost"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertFalse(OrderHistory.objects.exists())

    @override_settings(ORDER_STATUS_STRICT_TRANSITIONS=True)
    def test_status_endpoint_conflict_in_strict_mode(self):
        self.login_as(self.admin)
        r = self.client.post("/api/orders/ORD-1001/status/", {"new_status": "delivered"}, format="json")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["code"], "illegal_status_transition")

    def test_patch_updates_notes_but_not_status(self):
        self.login_as(self.editor)
        r = self.client.patch(
            "/api/orders/ORD-1001/", {"user_note": "Leave at door", "status": "delivered"}, format="json"
        )
        self.assertEqual(r.status_code, 200, r.content)
        self.order.refresh_from_db()
        self.assertEqual(self.order.user_note, "Leave at door")
        self.assertEqual(self.order.status, "pending")

    def test_delete_is_soft(self):
        self.login_as(self.admin)
        r = self.client.delete("/api/orders/ORD-1001/")
        self.assertEqual(r.status_code, 204)
        self.assertFalse(Order.objects.filter(pk=self.order.pk).exists())
        self.assertTrue(Order.all_objects.get(pk=self.order.pk).is_deleted)

    def test_create_is_not_allowed(self):
        self.login_as(self.admin)
        r = self.client.post("/api/orders/", {"code": "ORD-9"}, format="json")
        self.assertEqual(r.status_code, 405)

    def test_requires_a_role(self):
        self.login_as(self.nobody)
        self.assertEqual(self.client.get("/api/orders/").status_code, 403)
