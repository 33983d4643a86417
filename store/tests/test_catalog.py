from store.models import Category, Product, Review

from .base import StoreTestCase, make_category, make_product


class CategoryApiTests(StoreTestCase):

    def test_list_counts_live_products_only(self):
        make_product(self.category, sku="PH-2").soft_delete()
        self.login_as(self.editor)

        r = self.client.get("/api/categories/")
        self.assertEqual(r.status_code, 200, r.content)
        row = r.json()["results"][0]
        self.assertEqual(row["slug"], "phones")
        self.assertEqual(row["product_count"], 1)

    def test_search_and_ordering(self):
        make_category(slug="laptops", name_en="Laptops")
        make_category(slug="audio", name_en="Audio")
        self.login_as(self.editor)

        r = self.client.get("/api/categories/", {"ordering": "name_en"})
        self.assertEqual([c["name_en"] for c in r.json()["results"]], ["Audio", "Laptops", "Phones"])

        r = self.client.get("/api/categories/", {"search": "lap"})
        self.assertEqual([c["slug"] for c in r.json()["results"]], ["laptops"])

    def test_by_slug_matches_either_language(self):
        self.login_as(self.editor)
        r = self.client.get("/api/categories/by-slug/", {"slug": "phones-ar"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["id"], self.category.pk)

        r = self.client.get("/api/categories/by-slug/", {"slug": "nope"})
        self.assertEqual(r.status_code, 404)

    def test_check_slug(self):
        self.login_as(self.editor)
        r = self.client.get("/api/categories/check-slug/", {"slug": "phones"})
        self.assertTrue(r.json()["exists"])

        r = self.client.get("/api/categories/check-slug/", {"slug": "phones", "exclude_id": self.category.pk})
        self.assertFalse(r.json()["exists"])

    def test_delete_refused_while_products_are_live(self):
        self.login_as(self.admin)

        r = self.client.delete(f"/api/categories/{self.category.pk}/")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["code"], "category_in_use")
        self.assertFalse(Category.all_objects.get(pk=self.category.pk).is_deleted)

        self.product.soft_delete()
        r = self.client.delete(f"/api/categories/{self.category.pk}/")
        self.assertEqual(r.status_code, 204)
        self.assertTrue(Category.all_objects.get(pk=self.category.pk).is_deleted)

    def test_create(self):
        self.login_as(self.editor)
        r = self.client.post(
            "/api/categories/",
            {"name_en": "Tablets", "name_ar": "أجهزة لوحية", "slug": "tablets", "slug_ar": "tablets-ar"},
            format="json",
        )
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.json()["product_count"], 0)


class ProductApiTests(StoreTestCase):

    def test_delete_is_soft(self):
        self.login_as(self.editor)
        r = self.client.delete(f"/api/products/{self.product.pk}/")
        self.assertEqual(r.status_code, 204)

        self.assertFalse(Product.objects.filter(pk=self.product.pk).exists())
        row = Product.all_objects.get(pk=self.product.pk)
        self.assertTrue(row.is_deleted)
        self.assertIsNotNone(row.deleted_at)
        self.assertEqual(self.client.get(f"/api/products/{self.product.pk}/").status_code, 404)

    def test_create_with_keyword_list(self):
        self.login_as(self.editor)
        r = self.client.post(
            "/api/products/",
            {
                "name_en": "Case",
                "slug": "case",
                "sku": "CASE-1",
                "category": self.category.pk,
                "price": "19.50",
                "country_code": "AE",
                "currency_code": "AED",
                "keywords": ["cover", " silicone "],
                "images": ["https://cdn.example.com/case.jpg"],
            },
            format="json",
        )
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.json()["keywords"], ["cover", "silicone"])
        self.assertEqual(r.json()["price_formatted"], "AED 19.50")
        self.assertEqual(Product.objects.get(sku="CASE-1").keywords, "cover, silicone")

    def test_negative_price_is_rejected(self):
        self.login_as(self.editor)
        r = self.client.post(
            "/api/products/",
            {"name_en": "Bad", "slug": "bad", "sku": "BAD", "category": self.category.pk,
             "price": "-1", "country_code": "AE", "currency_code": "AED"},
            format="json",
        )
        self.assertEqual(r.status_code, 400)

    def test_duplicate(self):
        self.login_as(self.editor)
        r = self.client.post(f"/api/products/{self.product.pk}/duplicate/")
        self.assertEqual(r.status_code, 201, r.content)
        body = r.json()
        self.assertNotEqual(body["id"], self.product.pk)
        self.assertEqual(body["name_en"], "Product PH-1 (Copy)")
        self.assertTrue(body["sku"].startswith("PH-1-COPY-"))
        self.assertTrue(body["slug"].startswith("ph-1-copy-"))

    def test_filter_by_category(self):
        other = make_category(slug="audio")
        make_product(other, sku="AU-1")
        self.login_as(self.editor)

        r = self.client.get("/api/products/", {"category": other.pk})
        self.assertEqual([p["sku"] for p in r.json()["results"]], ["AU-1"])

        r = self.client.get("/api/products/", {"category_slug": "phones"})
        self.assertEqual([p["sku"] for p in r.json()["results"]], ["PH-1"])


class ReviewApiTests(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.pending = Review.objects.create(product=self.product, user=self.customer, rating=4, comment="Nice")
        self.approved = Review.objects.create(product=self.product, rating=5, comment="Great", is_approved=True)

    def test_status_filter(self):
        self.login_as(self.editor)
        r = self.client.get("/api/reviews/", {"status": "pending"})
        self.assertEqual([x["id"] for x in r.json()["results"]], [self.pending.pk])

        r = self.client.get("/api/reviews/", {"status": "approved"})
        self.assertEqual([x["id"] for x in r.json()["results"]], [self.approved.pk])

    def test_editor_approves(self):
        self.login_as(self.editor)
        r = self.client.post(f"/api/reviews/{self.pending.pk}/approve/")
        self.assertEqual(r.status_code, 200, r.content)
        self.pending.refresh_from_db()
        self.assertTrue(self.pending.is_approved)
        self.assertEqual(self.pending.updated_by, "editor@example.com")

    def test_editor_cannot_delete(self):
        self.login_as(self.editor)
        self.assertEqual(self.client.delete(f"/api/reviews/{self.pending.pk}/").status_code, 403)

    def test_admin_deletes_softly(self):
        self.login_as(self.admin)
        r = self.client.delete(f"/api/reviews/{self.pending.pk}/")
        self.assertEqual(r.status_code, 204)
        row = Review.all_objects.get(pk=self.pending.pk)
        self.assertTrue(row.is_deleted)
        self.assertEqual(row.deleted_by, "admin@example.com")


class AddressApiTests(StoreTestCase):

    def test_search(self):
        self.login_as(self.editor)
        r = self.client.get("/api/addresses/", {"search": "jane@"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["count"], 1)
        self.assertEqual(r.json()["results"][0]["city"], "Dubai")
