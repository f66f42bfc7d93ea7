"""
Cart endpoints and stock reconciliation across shared carts.

Covers:
- lazy cart creation and snapshot shape
- stock checks against quantities held in other users' carts
- ownership checks on item mutations
"""

from decimal import Decimal

from conftest import auth
from storefront.data.models import ProductModel
from storefront.services.inventory_service import InventoryService


def add(client, user_id, product_id, quantity=None):
    body = {"productId": product_id}
    if quantity is not None:
        body["quantity"] = quantity
    return client.post("/cart/items", json=body, headers=auth(user_id))


# ============================================================================
# Snapshot
# ============================================================================

class TestCartSnapshot:
    def test_requires_identity(self, client):
        assert client.get("/cart").status_code == 401
        assert client.get("/cart", headers={"X-User-Id": "abc"}).status_code == 401
        assert client.get("/cart", headers=auth(12345)).status_code == 401

    def test_empty_when_user_has_no_cart(self, client, customer):
        response = client.get("/cart", headers=auth(customer))
        assert response.status_code == 200
        body = response.json()
        assert body["cartId"] is None
        assert body["items"] == []
        assert body["itemCount"] == 0
        assert Decimal(body["subtotal"]) == Decimal("0")

    def test_snapshot_carries_products_and_effective_prices(self, client, customer, make_product):
        on_sale = make_product(name="Charizard", price="60.00", sale_price="50.00", sale_active=True)
        plain = make_product(name="Booster", price="20.00")

        assert add(client, customer, on_sale).status_code == 200
        assert add(client, customer, plain, 2).status_code == 200

        body = client.get("/cart", headers=auth(customer)).json()
        assert body["cartId"] is not None
        assert body["itemCount"] == 2
        assert Decimal(body["subtotal"]) == Decimal("90.00")
        assert Decimal(body["discount"]) == Decimal("0")

        by_product = {i["productId"]: i for i in body["items"]}
        assert Decimal(by_product[on_sale]["unitPrice"]) == Decimal("50.00")
        assert by_product[on_sale]["product"]["saleActive"] is True
        assert Decimal(by_product[plain]["lineTotal"]) == Decimal("40.00")
        assert by_product[plain]["product"]["name"] == "Booster"


# ============================================================================
# Add / update / remove
# ============================================================================

class TestAddItem:
    def test_creates_cart_lazily_and_returns_item(self, client, customer, make_product):
        product_id = make_product(stock=5)
        response = add(client, customer, product_id)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["item"]["productId"] == product_id
        assert body["item"]["quantity"] == 1

    def test_re_adding_increments_the_same_line(self, client, customer, make_product):
        product_id = make_product(stock=5)
        first = add(client, customer, product_id).json()["item"]
        second = add(client, customer, product_id, 2).json()["item"]
        assert second["id"] == first["id"]
        assert second["quantity"] == 3
        assert client.get("/cart", headers=auth(customer)).json()["itemCount"] == 1

    def test_unknown_product(self, client, customer):
        response = add(client, customer, 4040)
        assert response.status_code == 404

    def test_non_positive_quantity_rejected(self, client, customer, make_product):
        product_id = make_product(stock=5)
        assert add(client, customer, product_id, 0).status_code == 400
        assert add(client, customer, product_id, -2).status_code == 400

    def test_out_of_stock_reports_zero_available(self, client, customer, make_product):
        product_id = make_product(stock=0)
        response = add(client, customer, product_id)
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["availableStock"] == 0
        assert detail["message"] == "This product is no longer available"

    def test_conflict_mentions_quantity_already_held(self, client, customer, make_product):
        product_id = make_product(stock=3)
        add(client, customer, product_id, 2)

        response = add(client, customer, product_id, 2)
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["availableStock"] == 3
        assert detail["currentInCart"] == 2
        assert "you already have 2" in detail["message"]


class TestSharedStock:
    def test_other_carts_reserve_stock(self, client, db, customer, other_customer, make_product):
        product_id = make_product(stock=5)

        add(client, customer, product_id)
        cart_id = client.get("/cart", headers=auth(customer)).json()["cartId"]
        item_id = client.get("/cart", headers=auth(customer)).json()["items"][0]["id"]

        inventory = InventoryService(db)
        assert inventory.get_available_stock(product_id, cart_id) == 5
        assert inventory.get_available_stock(product_id) == 4

        assert add(client, other_customer, product_id, 3).status_code == 200

        db.expire_all()
        assert inventory.get_available_stock(product_id, cart_id) == 2

        rejected = client.patch(f"/cart/items/{item_id}", json={"quantity": 3}, headers=auth(customer))
        assert rejected.status_code == 409
        assert rejected.json()["detail"]["availableStock"] == 2
        assert rejected.json()["detail"]["message"] == "Only 2 unit(s) available"

        accepted = client.patch(f"/cart/items/{item_id}", json={"quantity": 2}, headers=auth(customer))
        assert accepted.status_code == 200
        assert accepted.json()["item"]["quantity"] == 2

    def test_available_stock_never_negative(self, client, db, customer, make_product):
        product_id = make_product(stock=4)
        add(client, customer, product_id, 4)

        #stock shrinks below what is already reserved
        db.get(ProductModel, product_id).stock = 1
        db.commit()

        assert InventoryService(db).get_available_stock(product_id) == 0

    def test_validate_stock_lists_drifted_lines(self, client, db, customer, make_product):
        product_id = make_product(name="Pikachu", stock=5)
        add(client, customer, product_id, 3)
        cart_id = client.get("/cart", headers=auth(customer)).json()["cartId"]

        ok = client.post("/cart/validate-stock", json={"cartId": cart_id}, headers=auth(customer))
        assert ok.json() == {"valid": True, "issues": []}

        db.get(ProductModel, product_id).stock = 2
        db.commit()

        drifted = client.post("/cart/validate-stock", json={"cartId": cart_id}, headers=auth(customer)).json()
        assert drifted["valid"] is False
        assert drifted["issues"] == [
            {"productId": product_id, "productName": "Pikachu", "requested": 3, "available": 2}
        ]


class TestUpdateAndRemove:
    def _item(self, client, user_id, make_product):
        product_id = make_product(stock=10)
        return add(client, user_id, product_id).json()["item"]

    def test_set_quantity_overwrites(self, client, customer, make_product):
        item = self._item(client, customer, make_product)
        response = client.patch(f"/cart/items/{item['id']}", json={"quantity": 7}, headers=auth(customer))
        assert response.status_code == 200
        assert response.json()["item"]["quantity"] == 7

    def test_set_quantity_must_be_positive(self, client, customer, make_product):
        item = self._item(client, customer, make_product)
        response = client.patch(f"/cart/items/{item['id']}", json={"quantity": 0}, headers=auth(customer))
        assert response.status_code == 400

    def test_other_user_cannot_touch_item(self, client, customer, other_customer, make_product):
        item = self._item(client, customer, make_product)
        patch = client.patch(f"/cart/items/{item['id']}", json={"quantity": 2}, headers=auth(other_customer))
        delete = client.delete(f"/cart/items/{item['id']}", headers=auth(other_customer))
        assert patch.status_code == 403
        assert delete.status_code == 403

    def test_missing_item(self, client, customer):
        assert client.patch("/cart/items/999", json={"quantity": 1}, headers=auth(customer)).status_code == 404
        assert client.delete("/cart/items/999", headers=auth(customer)).status_code == 404

    def test_remove_item(self, client, customer, make_product):
        item = self._item(client, customer, make_product)
        response = client.delete(f"/cart/items/{item['id']}", headers=auth(customer))
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/cart", headers=auth(customer)).json()["itemCount"] == 0
