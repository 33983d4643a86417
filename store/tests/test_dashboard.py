from store.models import Order

from .base import StoreTestCase, make_order, make_product, make_user


class DashboardTests(StoreTestCase):
    url = "/api/dashboard/"

    def test_counts_and_revenue_skip_deleted_rows(self):
        make_product(self.category, sku="PH-GONE").soft_delete()
        make_user("gone@example.com").soft_delete()
        make_order(code="ORD-GONE", lines=[(self.product, 1)]).soft_delete()
        self.login_as(self.editor)

        r = self.client.get(self.url)

        self.assertEqual(r.status_code, 200, r.content)
        body = r.json()
        self.assertEqual(body["products_count"], 1)
        self.assertEqual(body["orders_count"], 1)
        self.assertEqual(body["users_count"], 5)
        self.assertEqual(body["total_revenue"], "269.80")
        self.assertEqual(body["total_revenue_formatted"], "AED 269.80")

    def test_recent_orders_are_the_five_newest_with_items(self):
        for n in range(1, 6):
            make_order(code=f"ORD-200{n}")
        self.login_as(self.admin)

        body = self.client.get(self.url).json()

        self.assertEqual(body["orders_count"], 6)
        self.assertEqual(body["total_revenue"], "319.80")
        self.assertEqual(
            [o["code"] for o in body["recent_orders"]],
            ["ORD-2005", "ORD-2004", "ORD-2003", "ORD-2002", "ORD-2001"],
        )

        Order.all_objects.filter(code__startswith="ORD-200").update(is_deleted=True)
        first = self.client.get(self.url).json()["recent_orders"][0]
        self.assertEqual(first["code"], "ORD-1001")
        self.assertEqual(first["customer"]["email"], "jane@example.com")
        self.assertEqual(first["items"][0]["sku"], "PH-1")
        self.assertEqual(first["items"][0]["quantity"], 2)

    def test_requires_a_role(self):
        self.login_as(self.nobody)
        self.assertEqual(self.client.get(self.url).status_code, 403)
