# tests/api/test_orders_api.py
from __future__ import annotations

import pytest

from tests.helpers.seed import (
    CUSTOMER_ID,
    HOME_ADDRESS_ID,
    JACKET_ID,
    OTHER_USER_ADDRESS_ID,
    SCARF_ID,
    TEE_ID,
    add_cart_line,
    cart_lines,
    product_qty,
)

pytestmark = pytest.mark.contract


async def _place(client, headers, items, address_id=HOME_ADDRESS_ID, **extra):
    body = {"cart_items": items, "shipping_address_id": address_id, **extra}
    return await client.post("/orders", json=body, headers=headers)


@pytest.mark.asyncio
async def test_place_order_contract(client, db, customer_headers):
    """
    POST /orders：
      - 201 + {error: false, message, data: {order, message}}
      - 金额以字符串小数输出（避免浮点误差）
      - 提交后库存扣减、购物车清空
    """
    async with db.session() as s:
        async with s.begin():
            await add_cart_line(s, user_id=CUSTOMER_ID, product_id=TEE_ID, quantity=3)

    resp = await _place(client, customer_headers, [{"id": TEE_ID, "quantity": 3}])
    assert resp.status_code == 201, resp.text
    body = resp.json()

    assert body["error"] is False
    assert body["message"] == "Order placed successfully"
    data = body["data"]
    assert data["message"] == "Order placed successfully"

    order = data["order"]
    assert order["order_number"].startswith("ORD-")
    assert len(order["order_number"]) == len("ORD-YYMMDD-NNNN")
    assert order["status"] == "pending"
    assert order["payment_method"] == "Credit Card"
    assert order["subtotal"] == "60.00"
    assert order["shipping_amount"] == "9.99"
    assert order["tax_amount"] == "4.80"
    assert order["total_amount"] == "74.79"
    assert order["billing_address_id"] == HOME_ADDRESS_ID
    assert order["shipping_address"]["city"] == "Portsmouth"
    assert [(i["product_id"], i["quantity"], i["line_total"]) for i in order["items"]] == [
        (TEE_ID, 3, "60.00")
    ]

    async with db.session() as s:
        assert await product_qty(s, TEE_ID) == 7
        assert await cart_lines(s, CUSTOMER_ID) == []


@pytest.mark.asyncio
async def test_place_order_accepts_product_id_alias(client, customer_headers):
    resp = await _place(client, customer_headers, [{"product_id": JACKET_ID, "quantity": 1}])
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["order"]["items"][0]["product_name"] == "Denim Jacket"


@pytest.mark.asyncio
async def test_place_order_insufficient_stock_names_product(client, customer_headers):
    resp = await _place(client, customer_headers, [{"id": SCARF_ID, "quantity": 5}])
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] is True
    assert "Wool Scarf" in body["message"]
    assert body["data"]["product_id"] == SCARF_ID


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"cart_items": [], "shipping_address_id": HOME_ADDRESS_ID},
        {"shipping_address_id": HOME_ADDRESS_ID},
        {"cart_items": [{"id": TEE_ID, "quantity": 1}]},
        {"cart_items": [{"id": TEE_ID, "quantity": 0}], "shipping_address_id": HOME_ADDRESS_ID},
        {"cart_items": [{"quantity": 1}], "shipping_address_id": HOME_ADDRESS_ID},
    ],
)
async def test_place_order_bad_payload_is_400(client, customer_headers, payload):
    resp = await client.post("/orders", json=payload, headers=customer_headers)
    assert resp.status_code == 400, resp.text
    body = resp.json()
    assert body["error"] is True
    assert body["message"]


@pytest.mark.asyncio
async def test_place_order_with_foreign_address_is_404(client, customer_headers):
    resp = await _place(client, customer_headers, [{"id": TEE_ID, "quantity": 1}], OTHER_USER_ADDRESS_ID)
    assert resp.status_code == 404
    assert resp.json() == {"error": True, "message": "Invalid shipping address", "data": None}


@pytest.mark.asyncio
async def test_list_and_get_own_orders(client, customer_headers, other_customer_headers):
    r1 = await _place(client, customer_headers, [{"id": TEE_ID, "quantity": 1}])
    r2 = await _place(client, customer_headers, [{"id": JACKET_ID, "quantity": 1}])
    first_id = r1.json()["data"]["order"]["id"]
    second_id = r2.json()["data"]["order"]["id"]

    resp = await client.get("/orders", headers=customer_headers)
    assert resp.status_code == 200
    ids = [o["id"] for o in resp.json()["data"]["orders"]]
    assert set(ids) == {first_id, second_id}

    resp = await client.get(f"/orders/{first_id}", headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["items"][0]["product_id"] == TEE_ID

    # 别人的订单：看不到
    resp = await client.get(f"/orders/{first_id}", headers=other_customer_headers)
    assert resp.status_code == 404
    resp = await client.get("/orders", headers=other_customer_headers)
    assert resp.json()["data"]["orders"] == []


@pytest.mark.asyncio
async def test_cancel_order_contract(client, db, customer_headers, other_customer_headers):
    placed = await _place(
        client,
        customer_headers,
        [{"id": TEE_ID, "quantity": 2}, {"id": JACKET_ID, "quantity": 1}],
    )
    order_id = placed.json()["data"]["order"]["id"]

    resp = await client.delete(f"/orders/{order_id}", headers=other_customer_headers)
    assert resp.status_code == 404

    resp = await client.delete(f"/orders/{order_id}", headers=customer_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["error"] is False
    assert body["data"]["message"] == "Order cancelled successfully"
    assert body["data"]["order"]["status"] == "cancelled"

    async with db.session() as s:
        assert await product_qty(s, TEE_ID) == 10
        assert await product_qty(s, JACKET_ID) == 5

    resp = await client.delete(f"/orders/{order_id}", headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Order cannot be cancelled"


@pytest.mark.asyncio
async def test_update_status_requires_admin(client, customer_headers, admin_headers):
    placed = await _place(client, customer_headers, [{"id": TEE_ID, "quantity": 1}])
    order_id = placed.json()["data"]["order"]["id"]

    resp = await client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=customer_headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Admin access required"

    resp = await client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["order"]["status"] == "shipped"

    resp = await client.put(f"/orders/{order_id}/status", json={"status": "pending"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = await client.put(f"/orders/{order_id}/status", json={"status": "lost"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid status"

    resp = await client.put("/orders/999999/status", json={"status": "shipped"}, headers=admin_headers)
    assert resp.status_code == 404
