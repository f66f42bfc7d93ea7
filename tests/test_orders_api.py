"""
Order placement and order reads.

Covers:
- placement from a cart: frozen prices, stock decrement, cart reset, handoff message
- all-or-nothing behaviour when stock drifted
- Idempotency-Key replay and store outages
- rollback when the cart changes mid-checkout
- admin status transitions
"""

import json
from decimal import Decimal
from urllib.parse import unquote

import pytest
import redis
from sqlalchemy import update

from conftest import InMemoryIdempotency, auth
from storefront.api.deps import get_idempotency_service
from storefront.data.models import CartModel, CouponModel, OrderModel, ProductModel
from storefront.main import app
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import CART_MODIFIED
from storefront.services.idempotency_service import IdempotencyClaim
from storefront.services.inventory_service import InventoryService


ADDRESS = {
    "fullName": "Ana Gomez",
    "address": "Calle Falsa 123",
    "city": "Rosario",
    "postalCode": "2000",
    "phone": "3415550000",
}


def place(client, user_id, cart_id, headers=None, **overrides):
    payload = {"cartId": cart_id, **ADDRESS, **overrides}
    return client.post("/orders", json=payload, headers={**auth(user_id), **(headers or {})})


class JsonIdempotency(InMemoryIdempotency):
    """Keeps responses the way Redis does, as JSON text."""

    def claim(self, user_id, idempotency_key):
        claim = super().claim(user_id, idempotency_key)
        if isinstance(claim.stored, str):
            return IdempotencyClaim(claim.key, None, json.loads(claim.stored))
        return claim

    def complete(self, claim, response):
        self.values[claim.key] = json.dumps(response, default=str)


class CompleteFails(InMemoryIdempotency):
    def complete(self, claim, response):
        raise redis.ConnectionError("Connection refused")


class ClaimFails(InMemoryIdempotency):
    def claim(self, user_id, idempotency_key):
        raise redis.ConnectionError("Connection refused")


@pytest.fixture
def filled_cart(client, db, customer, make_product):
    """
    Two lines: a $60 product on sale at $50 (x1) and a $20 product (x2),
    with a fixed $10 coupon applied.
    """
    on_sale = make_product(name="Charizard", price="60.00", sale_price="50.00", sale_active=True, stock=5)
    plain = make_product(name="Booster", price="20.00", stock=5)
    db.add(CouponModel(code="TEN", discount_type="fixed", discount_value=Decimal("10"), min_subtotal=Decimal("0")))
    db.commit()

    client.post("/cart/items", json={"productId": on_sale}, headers=auth(customer))
    client.post("/cart/items", json={"productId": plain, "quantity": 2}, headers=auth(customer))
    cart_id = client.get("/cart", headers=auth(customer)).json()["cartId"]
    assert client.post("/coupons/apply", json={"cartId": cart_id, "code": "TEN"}, headers=auth(customer)).status_code == 200

    return {"cart_id": cart_id, "on_sale": on_sale, "plain": plain}


# ============================================================================
# Placement
# ============================================================================

class TestPlaceOrder:
    def test_totals_and_response(self, client, customer, filled_cart):
        response = place(client, customer, filled_cart["cart_id"])
        assert response.status_code == 200
        body = response.json()

        assert Decimal(body["subtotal"]) == Decimal("90.00")
        assert Decimal(body["discount"]) == Decimal("10.00")
        assert Decimal(body["total"]) == Decimal("80.00")

        assert body["shipping"]["boxes"] == 1
        assert Decimal(body["shipping"]["totalWeight"]) == Decimal("0.75")
        assert body["shipping"]["isFree"] is False
        assert body["shipping"]["details"] == "1 box(es) - 0.75 kg total"

        assert body["handoffDestination"] == "5491100000000"
        message = body["handoffMessage"]
        assert f"Order #{str(body['orderId'])[:8]}" in message
        assert "- Charizard x1 ($50.00)" in message
        assert "- Booster x2 ($40.00)" in message
        assert "Discount: -$10.00" in message
        assert "Total to pay (shipping not included): $80.00" in message
        assert "Name: Ana Gomez" in message

        assert body["handoffUrl"].startswith("https://wa.me/5491100000000?text=")
        assert unquote(body["handoffUrl"].split("?text=", 1)[1]) == message

    def test_order_rows_freeze_prices(self, client, db, customer, filled_cart):
        order_id = place(client, customer, filled_cart["cart_id"]).json()["orderId"]

        #later catalog changes do not touch the order
        db.get(ProductModel, filled_cart["on_sale"]).sale_active = False
        db.get(ProductModel, filled_cart["plain"]).price = Decimal("99.00")
        db.commit()

        order = client.get(f"/orders/{order_id}", headers=auth(customer)).json()
        prices = {i["productId"]: Decimal(i["price"]) for i in order["items"]}
        assert prices == {filled_cart["on_sale"]: Decimal("50.00"), filled_cart["plain"]: Decimal("20.00")}
        assert order["status"] == "pending"
        assert order["couponCode"] == "TEN"
        assert Decimal(order["total"]) == Decimal("80.00")
        assert order["shippingName"] == "Ana Gomez"

    def test_decrements_stock_and_resets_cart(self, client, db, customer, filled_cart):
        place(client, customer, filled_cart["cart_id"])

        db.expire_all()
        assert db.get(ProductModel, filled_cart["on_sale"]).stock == 4
        assert db.get(ProductModel, filled_cart["plain"]).stock == 3

        cart = db.get(CartModel, filled_cart["cart_id"])
        assert cart.coupon_id is None
        assert cart.coupon_code is None
        assert Decimal(str(cart.discount_amount)) == Decimal("0")

        snapshot = client.get("/cart", headers=auth(customer)).json()
        assert snapshot["cartId"] == filled_cart["cart_id"]
        assert snapshot["items"] == []

    def test_stock_shortfall_leaves_everything_untouched(self, client, db, customer, make_product):
        product_id = make_product(name="Mewtwo", stock=5)
        client.post("/cart/items", json={"productId": product_id, "quantity": 3}, headers=auth(customer))
        cart_id = client.get("/cart", headers=auth(customer)).json()["cartId"]

        db.get(ProductModel, product_id).stock = 2
        db.commit()

        response = place(client, customer, cart_id)
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["message"] == "Insufficient stock"
        assert detail["issues"] == [
            {"productId": product_id, "productName": "Mewtwo", "requested": 3, "available": 2}
        ]

        db.expire_all()
        assert db.query(OrderModel).count() == 0
        assert db.get(ProductModel, product_id).stock == 2
        assert client.get("/cart", headers=auth(customer)).json()["itemCount"] == 1

    def test_missing_shipping_details(self, client, customer, filled_cart):
        response = place(client, customer, filled_cart["cart_id"], fullName="  ", phone=None)
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["errors"] == ["fullName is required", "phone is required"]

    def test_empty_cart(self, client, customer, make_product):
        product_id = make_product()
        item = client.post("/cart/items", json={"productId": product_id}, headers=auth(customer)).json()["item"]
        client.delete(f"/cart/items/{item['id']}", headers=auth(customer))

        response = place(client, customer, item["cartId"])
        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "The cart is empty"

    def test_not_the_owner(self, client, other_customer, filled_cart):
        assert place(client, other_customer, filled_cart["cart_id"]).status_code == 403

    def test_unknown_cart(self, client, customer):
        assert place(client, customer, 999).status_code == 404

    def test_requires_identity(self, client, filled_cart):
        response = client.post("/orders", json={"cartId": filled_cart["cart_id"], **ADDRESS})
        assert response.status_code == 401


class TestIdempotency:
    def test_same_key_replays_the_first_response(self, client, db, customer, filled_cart):
        headers = {"Idempotency-Key": "checkout-1"}
        first = place(client, customer, filled_cart["cart_id"], headers=headers)
        second = place(client, customer, filled_cart["cart_id"], headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["orderId"] == first.json()["orderId"]
        assert db.query(OrderModel).count() == 1

    def test_without_key_second_attempt_sees_empty_cart(self, client, customer, filled_cart):
        assert place(client, customer, filled_cart["cart_id"]).status_code == 200
        assert place(client, customer, filled_cart["cart_id"]).status_code == 400

    def test_failed_placement_releases_the_key(self, client, db, customer, filled_cart):
        headers = {"Idempotency-Key": "checkout-2"}
        product = db.get(ProductModel, filled_cart["plain"])
        product.stock = 1
        db.commit()

        rejected = place(client, customer, filled_cart["cart_id"], headers=headers)
        assert rejected.status_code == 409

        product.stock = 5
        db.commit()

        accepted = place(client, customer, filled_cart["cart_id"], headers=headers)
        assert accepted.status_code == 200

    def test_key_in_flight(self, client, customer, filled_cart, idempotency):
        idempotency.claim(customer, "checkout-3")
        response = place(client, customer, filled_cart["cart_id"], headers={"Idempotency-Key": "checkout-3"})
        assert response.status_code == 409

    def test_replay_survives_json_storage(self, client, customer, filled_cart):
        store = JsonIdempotency()
        app.dependency_overrides[get_idempotency_service] = lambda: store
        headers = {"Idempotency-Key": "checkout-4"}

        first = place(client, customer, filled_cart["cart_id"], headers=headers)
        second = place(client, customer, filled_cart["cart_id"], headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == first.json()

    def test_store_down_after_commit_still_returns_the_order(self, client, db, customer, filled_cart):
        store = CompleteFails()
        app.dependency_overrides[get_idempotency_service] = lambda: store
        headers = {"Idempotency-Key": "checkout-5"}

        response = place(client, customer, filled_cart["cart_id"], headers=headers)
        assert response.status_code == 200
        assert Decimal(response.json()["total"]) == Decimal("80.00")
        assert db.query(OrderModel).count() == 1

        #pending marker dropped, the retry is not stuck behind it
        retry = place(client, customer, filled_cart["cart_id"], headers=headers)
        assert retry.status_code == 400
        assert retry.json()["detail"]["message"] == "The cart is empty"
        assert db.query(OrderModel).count() == 1

    def test_store_down_before_placement(self, client, db, customer, filled_cart):
        app.dependency_overrides[get_idempotency_service] = lambda: ClaimFails()

        response = place(client, customer, filled_cart["cart_id"], headers={"Idempotency-Key": "checkout-6"})
        assert response.status_code == 500
        assert response.json()["detail"]["message"] == "Internal server error"

        assert db.query(OrderModel).count() == 0
        assert client.get("/cart", headers=auth(customer)).json()["itemCount"] == 2


class TestCartVersion:
    def test_stale_version_updates_nothing(self, db, customer, filled_cart):
        repo = CartRepo(db)
        cart = repo.get_cart(filled_cart["cart_id"])

        assert repo.update_cart_version(cart.id, cart.version - 1, {"version": cart.version + 1}) == 0
        assert repo.update_cart_version(cart.id, cart.version, {"version": cart.version + 1}) == 1
        repo.commit()

    def test_cart_changed_during_checkout_rolls_back(self, client, db, customer, filled_cart, monkeypatch):
        validate = InventoryService.validate_cart_stock

        def validate_then_edit(self, cart_id):
            result = validate(self, cart_id)
            #another request edits the cart right after the stock gate
            self.carts.db.execute(
                update(CartModel)
                .where(CartModel.id == cart_id)
                .values(version=CartModel.version + 1)
                .execution_options(synchronize_session=False)
            )
            return result

        monkeypatch.setattr(InventoryService, "validate_cart_stock", validate_then_edit)

        response = place(client, customer, filled_cart["cart_id"])
        assert response.status_code == 409
        assert response.json()["detail"]["message"] == CART_MODIFIED

        db.expire_all()
        assert db.query(OrderModel).count() == 0
        assert db.get(ProductModel, filled_cart["on_sale"]).stock == 5
        assert db.get(ProductModel, filled_cart["plain"]).stock == 5

        snapshot = client.get("/cart", headers=auth(customer)).json()
        assert snapshot["itemCount"] == 2
        assert snapshot["couponCode"] == "TEN"


# ============================================================================
# Reads and status
# ============================================================================

class TestOrderReads:
    def test_owner_admin_and_stranger(self, client, customer, other_customer, admin, filled_cart):
        order_id = place(client, customer, filled_cart["cart_id"]).json()["orderId"]

        assert client.get(f"/orders/{order_id}", headers=auth(customer)).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=auth(admin)).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=auth(other_customer)).status_code == 403
        assert client.get("/orders/999", headers=auth(customer)).status_code == 404

    def test_list_own_orders(self, client, customer, other_customer, filled_cart):
        order_id = place(client, customer, filled_cart["cart_id"]).json()["orderId"]

        mine = client.get("/orders", headers=auth(customer)).json()
        assert [o["id"] for o in mine] == [order_id]
        assert client.get("/orders", headers=auth(other_customer)).json() == []


class TestOrderStatus:
    @pytest.fixture
    def order_id(self, client, customer, filled_cart):
        return place(client, customer, filled_cart["cart_id"]).json()["orderId"]

    def patch(self, client, user_id, order_id, status):
        return client.patch(f"/admin/orders/{order_id}", json={"status": status}, headers=auth(user_id))

    def test_forward_transitions(self, client, admin, order_id):
        for status in ("processing", "shipped", "delivered"):
            response = self.patch(client, admin, order_id, status)
            assert response.status_code == 200
            assert response.json()["status"] == status

    def test_skipping_a_step_rejected(self, client, admin, order_id):
        assert self.patch(client, admin, order_id, "delivered").status_code == 400

    def test_cancelled_is_final(self, client, admin, order_id):
        assert self.patch(client, admin, order_id, "cancelled").status_code == 200
        assert self.patch(client, admin, order_id, "processing").status_code == 400

    def test_same_status_is_a_no_op(self, client, admin, order_id):
        response = self.patch(client, admin, order_id, "pending")
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_unknown_status(self, client, admin, order_id):
        assert self.patch(client, admin, order_id, "lost").status_code == 400

    def test_admin_only(self, client, customer, order_id):
        assert self.patch(client, customer, order_id, "processing").status_code == 403
        assert client.get("/admin/orders", headers=auth(customer)).status_code == 403

    def test_admin_list_filters_by_status(self, client, admin, order_id):
        self.patch(client, admin, order_id, "processing")

        assert [o["id"] for o in client.get("/admin/orders?status=processing", headers=auth(admin)).json()] == [order_id]
        assert client.get("/admin/orders?status=pending", headers=auth(admin)).json() == []
        assert client.get("/admin/orders?status=bogus", headers=auth(admin)).status_code == 400
