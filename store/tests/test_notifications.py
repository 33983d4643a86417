from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase, override_settings

from store import notifications, orders
from store.models import Order
from store.utils import format_price

from .base import StoreTestCase


class StatusCopyTests(TestCase):

    def test_known_and_unknown_statuses(self):
        self.assertEqual(notifications.status_message("shipped")["title"], "Order Shipped")
        self.assertEqual(len(notifications.STATUS_MESSAGES), 10)

        fallback = notifications.status_message("on_hold")
        self.assertEqual(fallback["title"], "Order Status Updated")
        self.assertEqual(fallback["message"], "Your order status has been updated to on_hold.")

    def test_admin_subset(self):
        for status in ("shipped", "delivered", "cancelled", "failed", "refunded"):
            self.assertTrue(notifications.should_notify_admin(status))
        for status in ("pending", "confirmed", "processing", "returned", "draft"):
            self.assertFalse(notifications.should_notify_admin(status))


class FormatPriceTests(TestCase):

    def test_formats(self):
        self.assertEqual(format_price(Decimal("1234.5"), "aed"), "AED 1,234.50")
        self.assertEqual(format_price("129.9", "USD"), "USD 129.90")
        self.assertEqual(format_price(None, "AED"), "AED 0.00")
        self.assertEqual(format_price("garbage", "AED"), "AED 0.00")

    @override_settings(DEFAULT_CURRENCY="SAR")
    def test_default_currency(self):
        self.assertEqual(format_price(10), "SAR 10.00")


@override_settings(SUPPORT_EMAIL="support@store.test", STORE_NAME="Souq Test")
class DispatcherTests(StoreTestCase):

    def _send(self, status):
        order = orders.get_order_details(self.order.pk)
        return notifications.send_order_status_update_emails(
            order=order,
            previous_status="pending",
            new_status=status,
            customer_name="Jane Doe",
            customer_email="jane@example.com",
            admin_note="Packed twice",
            changed_by="admin@example.com",
        )

    def test_customer_mail_body(self):
        result = self._send("processing")

        self.assertTrue(result["success"])
        self.assertEqual(len(mail.outbox), 1)
        msg = mail.outbox[0]
        body = msg.body
        self.assertIn("Hello Jane Doe", body)
        self.assertIn("Order Processing", body)
        self.assertIn("Packed twice", body)
        self.assertIn("AED 129.90", body)
        self.assertIn("Souq Test", body)
        html, mimetype = msg.alternatives[0]
        self.assertEqual(mimetype, "text/html")
        self.assertIn("ORD-1001", html)

    def test_admin_mail_names_customer_and_actor(self):
        self._send("refunded")

        self.assertEqual(len(mail.outbox), 2)
        admin_mail = mail.outbox[0]
        self.assertEqual(admin_mail.to, ["support@store.test"])
        self.assertIn("jane@example.com", admin_mail.body)
        self.assertIn("admin@example.com", admin_mail.body)
        self.assertIn("PH-1", admin_mail.body)

    def test_free_shipping_is_shown_as_zero(self):
        Order.objects.filter(pk=self.order.pk).update(
            shipping=Decimal("0.00"), discount=Decimal("20.00"), total_price=Decimal("239.80")
        )
        self._send("processing")

        body = mail.outbox[0].body
        self.assertIn("Shipping: AED 0.00", body)
        self.assertNotIn("-20.00", body)
        self.assertIn("Total: AED 239.80", body)

    def test_send_failure_is_reported_not_raised(self):
        with mock.patch.object(notifications.EmailMultiAlternatives, "send", side_effect=OSError("boom")):
            result = self._send("shipped")

        self.assertFalse(result["success"])
        self.assertEqual(result["details"]["admin_email"], "failed")
        self.assertEqual(result["details"]["customer_email"], "not sent")
