"""Back-office API: authentication, catalog maintenance and order management."""

from datetime import timedelta

import pytest
from passlib.hash import pbkdf2_sha256

from admin import check_credentials
from checkout import checkout
from database import create_document, utcnow

ADMIN_PASSWORD = "s3cret"


def _order(db, product_id, name="Siti Aminah", whatsapp="0812", quantity=1):
    return checkout(db, {
        "fullName": name,
        "whatsapp": whatsapp,
        "deliveryOption": "free_pickup",
        "items": [{"productId": product_id, "quantity": quantity}],
    })


class TestCredentials:
    def test_plain_password(self):
        assert check_credentials("admin", "s3cret", "s3cret")
        assert not check_credentials("admin", "wrong", "s3cret")
        assert not check_credentials("root", "s3cret", "s3cret")

    def test_hashed_password(self):
        hashed = pbkdf2_sha256.hash("hunter2")
        assert check_credentials("admin", "hunter2", hashed)
        assert not check_credentials("admin", hashed, hashed)


class TestAuthentication:
    def test_requires_credentials(self, client):
        response = client.get("/admin/api/dashboard")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="Admin"'

    def test_wrong_password(self, client):
        response = client.get("/admin/api/dashboard", auth=("admin", "guess"))

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_missing_admin_password(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_PASSWORD")

        response = client.get("/admin/api/dashboard", auth=("admin", ADMIN_PASSWORD))

        assert response.status_code == 500
        assert response.json() == {"error": "ADMIN_PASSWORD not set"}

    def test_basic_auth(self, admin_client):
        response = admin_client.get("/admin/api/dashboard")

        assert response.status_code == 200
        assert response.json() == {"products": 0, "categories": 0, "banners": 0, "orders": 0}

    def test_hashed_admin_password(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD", pbkdf2_sha256.hash("hunter2"))

        assert client.get("/admin/api/dashboard", auth=("admin", "hunter2")).status_code == 200

    def test_session_cookie(self, client, db):
        response = client.post("/admin/api/login", json={"user": "admin", "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert "admin_session" in response.cookies
        assert db["admin_session"].count_documents({}) == 1
        assert client.get("/admin/api/dashboard").status_code == 200

        client.post("/admin/api/logout")
        client.cookies.clear()
        assert db["admin_session"].count_documents({}) == 0
        assert client.get("/admin/api/dashboard").status_code == 401

    def test_bad_login(self, client, db):
        response = client.post("/admin/api/login", json={"user": "admin", "password": "nope"})

        assert response.status_code == 401
        assert db["admin_session"].count_documents({}) == 0

    def test_expired_session(self, client, db):
        db["admin_session"].insert_one({"_id": "stale", "expires_at": utcnow() - timedelta(minutes=1)})
        client.cookies.set("admin_session", "stale")

        assert client.get("/admin/api/dashboard").status_code == 401


class TestProductAdmin:
    def test_create_product_derives_slug(self, admin_client, db, category):
        response = admin_client.post("/admin/api/products", json={
            "name": "Vitamin C Serum",
            "description": "Brightening",
            "original_price": 50,
            "discount_price": 40,
            "category_id": category["_id"],
            "stock_quantity": 7,
        })

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "vitamin-c-serum"
        assert data["category"]["name"] == "Skincare"
        assert db["product"].find_one({"_id": data["id"]})["stock_quantity"] == 7

    def test_create_product_unknown_category(self, admin_client):
        response = admin_client.post("/admin/api/products", json={
            "name": "Serum", "original_price": 50, "category_id": 99,
        })

        assert response.status_code == 404

    def test_create_product_duplicate_slug(self, admin_client, category, product):
        response = admin_client.post("/admin/api/products", json={
            "name": "Serum", "original_price": 50, "category_id": category["_id"],
        })

        assert response.status_code == 409

    def test_discount_above_price_rejected(self, admin_client, category):
        response = admin_client.post("/admin/api/products", json={
            "name": "Serum", "original_price": 50, "discount_price": 60, "category_id": category["_id"],
        })

        assert response.status_code == 400
        assert response.json() == {"error": "discount_price must not exceed original_price"}

    def test_negative_stock_rejected(self, admin_client, category):
        response = admin_client.post("/admin/api/products", json={
            "name": "Serum", "original_price": 50, "category_id": category["_id"], "stock_quantity": -1,
        })

        assert response.status_code == 400

    def test_list_includes_inactive(self, admin_client, product_factory):
        product_factory(name="Old Mask", slug="old-mask", is_active=False)

        names = [p["name"] for p in admin_client.get("/admin/api/products").json()]

        assert names == ["Old Mask"]

    def test_update_product(self, admin_client, db, product):
        response = admin_client.patch(
            f"/admin/api/products/{product['_id']}", json={"stock_quantity": 12, "discount_price": None}
        )

        assert response.status_code == 200
        stored = db["product"].find_one({"_id": product["_id"]})
        assert stored["stock_quantity"] == 12
        assert stored["discount_price"] is None
        assert stored["name"] == "Serum"

    def test_update_checks_discount_against_stored_price(self, admin_client, product):
        response = admin_client.patch(f"/admin/api/products/{product['_id']}", json={"discount_price": 55})

        assert response.status_code == 400

    def test_update_missing_product(self, admin_client):
        assert admin_client.patch("/admin/api/products/404", json={"stock_quantity": 1}).status_code == 404

    def test_images(self, admin_client, product):
        url = f"/admin/api/products/{product['_id']}/images"

        added = admin_client.post(url, json={"url": "/uploads/serum.jpg"})
        assert added.status_code == 201
        assert added.json()["images"] == ["/uploads/serum.jpg"]

        removed = admin_client.delete(url, params={"url": "/uploads/serum.jpg"})
        assert removed.json()["images"] == []

    def test_delete_product_keeps_order_snapshot(self, admin_client, db, product):
        placed = _order(db, product["_id"])
        banner_id = create_document(db, "banner", {"image_url": "/b.jpg", "is_active": True, "product_id": product["_id"]})

        response = admin_client.delete(f"/admin/api/products/{product['_id']}")

        assert response.status_code == 204
        assert db["product"].find_one({"_id": product["_id"]}) is None
        assert db["banner"].find_one({"_id": banner_id})["product_id"] is None
        order = admin_client.get(f"/admin/api/orders/{placed['id']}").json()
        assert order["items"][0]["product_name"] == "Serum"


class TestCategoryAdmin:
    def test_create_and_list_with_counts(self, admin_client, product):
        created = admin_client.post("/admin/api/categories", json={"name": "Body Care"})

        assert created.status_code == 201
        assert created.json()["slug"] == "body-care"

        listed = {c["slug"]: c["product_count"] for c in admin_client.get("/admin/api/categories").json()}
        assert listed == {"body-care": 0, "skincare": 1}

    def test_duplicate_slug(self, admin_client, category):
        response = admin_client.post("/admin/api/categories", json={"name": "Skincare"})

        assert response.status_code == 409

    def test_rename_rederives_slug(self, admin_client, category):
        response = admin_client.patch(f"/admin/api/categories/{category['_id']}", json={"name": "Face Care"})

        assert response.status_code == 200
        assert response.json()["slug"] == "face-care"

    def test_delete_refused_while_products_exist(self, admin_client, db, category, product):
        response = admin_client.delete(f"/admin/api/categories/{category['_id']}")

        assert response.status_code == 409
        assert response.json() == {"error": "Cannot delete category with 1 products"}
        assert db["category"].count_documents({}) == 1

    def test_delete_empty_category(self, admin_client, db, category):
        assert admin_client.delete(f"/admin/api/categories/{category['_id']}").status_code == 204
        assert db["category"].count_documents({}) == 0


class TestBannerAdmin:
    def test_create_list_delete(self, admin_client, product):
        created = admin_client.post("/admin/api/banners", json={
            "image_url": "/uploads/sale.jpg", "is_active": False, "product_id": product["_id"],
        })
        assert created.status_code == 201

        listed = admin_client.get("/admin/api/banners").json()
        assert [(b["image_url"], b["product_name"]) for b in listed] == [("/uploads/sale.jpg", "Serum")]

        assert admin_client.delete(f"/admin/api/banners/{created.json()['id']}").status_code == 204
        assert admin_client.get("/admin/api/banners").json() == []

    def test_image_url_required(self, admin_client):
        response = admin_client.post("/admin/api/banners", json={"title": "Sale"})

        assert response.status_code == 400
        assert "image_url" in response.json()["error"]


class TestOrderAdmin:
    @pytest.fixture()
    def placed(self, db, product_factory):
        serum = product_factory(stock_quantity=50)
        first = _order(db, serum["_id"], name="Siti Aminah", whatsapp="0811111")
        second = _order(db, serum["_id"], name="Budi Santoso", whatsapp="0833333")
        return first, second

    def test_list_newest_first_with_counts(self, admin_client, placed):
        data = admin_client.get("/admin/api/orders").json()

        assert [o["id"] for o in data["orders"]] == [placed[1]["id"], placed[0]["id"]]
        assert data["counts"] == {"pending": 2, "processing": 0, "delivered": 0, "cancelled": 0}

    @pytest.mark.parametrize("search, expected", [("siti", ["Siti Aminah"]), ("3333", ["Budi Santoso"]), ("2", ["Budi Santoso"])])
    def test_search(self, admin_client, placed, search, expected):
        data = admin_client.get("/admin/api/orders", params={"search": search}).json()

        assert [o["customer_name"] for o in data["orders"]] == expected

    def test_status_update_and_filter(self, admin_client, placed):
        order_id = placed[0]["id"]

        response = admin_client.patch(f"/admin/api/orders/{order_id}/status", json={"status": "delivered"})
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"

        delivered = admin_client.get("/admin/api/orders", params={"status": "delivered"}).json()
        assert [o["id"] for o in delivered["orders"]] == [order_id]
        assert delivered["counts"]["delivered"] == 1

    def test_invalid_status(self, admin_client, placed):
        response = admin_client.patch(f"/admin/api/orders/{placed[0]['id']}/status", json={"status": "shipped"})

        assert response.status_code == 400

    def test_status_update_does_not_touch_totals(self, admin_client, db, placed):
        order_id = placed[0]["id"]
        admin_client.patch(f"/admin/api/orders/{order_id}/status", json={"status": "processing"})

        stored = db["order"].find_one({"_id": order_id})
        assert stored["total_price"] == placed[0]["totalAmount"]

    def test_delete_order(self, admin_client, db, placed):
        order_id = placed[0]["id"]

        assert admin_client.delete(f"/admin/api/orders/{order_id}").status_code == 204
        assert db["order"].find_one({"_id": order_id}) is None
        assert admin_client.get(f"/admin/api/orders/{order_id}").status_code == 404
