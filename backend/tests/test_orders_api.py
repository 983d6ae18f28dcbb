"""
Order API tests.

Checkout, access control, public tracking and the error envelope.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from backend.app.db.session import get_db
from backend.app.main import app
from backend.app.models.audit_log import AuditLog
from backend.app.models.notification import NotificationKind
from backend.app.models.product import Product


@pytest.mark.asyncio
async def test_guest_checkout(client, db_session, products, order_body, line, email, reload):
    mouse_id = products[0].id

    response = await client.post("/v1/orders", json=order_body([line(mouse_id, 2, "25.00", "4.50")]))

    assert response.status_code == 201
    data = response.json()
    assert data["order_number"] == "RW2501-0000001"
    assert data["user_id"] is None
    assert data["delivery_status"] == "PENDING"
    assert data["payment_status"] == "PENDING"
    assert data["total_amount"] == "59.00"
    assert len(data["status_history"]) == 4

    assert (await reload(Product, mouse_id)).stock_quantity == 8
    # Confirmation delivered after commit
    assert email.kinds() == [NotificationKind.ORDER_CONFIRMATION]

    audit = (await db_session.execute(select(AuditLog))).scalars().all()
    assert [(a.action, a.entity_id) for a in audit] == [("ORDER_CREATED", data["id"])]
    assert audit[0].meta_data["guest"] is True


@pytest.mark.asyncio
async def test_authenticated_checkout_sets_owner(client, products, customer, customer_headers, order_body, line):
    response = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]), headers=customer_headers)

    assert response.status_code == 201
    assert response.json()["user_id"] == customer.id


@pytest.mark.asyncio
async def test_invalid_token_is_rejected_even_for_checkout(client, products, order_body, line):
    response = await client.post(
        "/v1/orders",
        json=order_body([line(products[0].id, 1)]),
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_insufficient_stock_returns_409_with_lines(client, products, order_body, line):
    cable_id, lamp_id = products[1].id, products[2].id

    response = await client.post("/v1/orders", json=order_body([line(cable_id, 5), line(lamp_id, 1)]))

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_STOCK_001"
    assert {entry["product_id"] for entry in body["details"]["lines"]} == {cable_id, lamp_id}


@pytest.mark.asyncio
async def test_unknown_product_returns_400(client, products, order_body, line):
    response = await client.post("/v1/orders", json=order_body([line(777, 1)]))

    assert response.status_code == 400
    assert response.json()["details"]["missing_product_ids"] == [777]


@pytest.mark.asyncio
async def test_schema_errors_return_422(client, order_body):
    response = await client.post("/v1/orders", json=order_body([]))

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_customer_reads_own_order_only(
    client, products, customer_headers, other_customer_headers, admin_headers, order_body, line
):
    created = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]), headers=customer_headers)
    order_id = created.json()["id"]
    order_number = created.json()["order_number"]

    assert (await client.get(f"/v1/orders/{order_id}", headers=customer_headers)).status_code == 200
    assert (await client.get(f"/v1/orders/number/{order_number}", headers=customer_headers)).status_code == 200
    assert (await client.get(f"/v1/orders/{order_id}", headers=admin_headers)).status_code == 200

    forbidden = await client.get(f"/v1/orders/{order_id}", headers=other_customer_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "ERR_PERM_001"

    assert (await client.get(f"/v1/orders/{order_id}")).status_code in (401, 403)


@pytest.mark.asyncio
async def test_guest_order_is_admin_only_by_id(client, products, customer_headers, admin_headers, order_body, line):
    created = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]))
    order_id = created.json()["id"]

    assert (await client.get(f"/v1/orders/{order_id}", headers=customer_headers)).status_code == 403
    assert (await client.get(f"/v1/orders/{order_id}", headers=admin_headers)).status_code == 200


@pytest.mark.asyncio
async def test_my_orders(client, products, customer_headers, order_body, line):
    for _ in range(3):
        await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]), headers=customer_headers)
    await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]))

    response = await client.get("/v1/orders/me?limit=2", headers=customer_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert len(data["items"]) == 2


@pytest.mark.asyncio
async def test_order_timeline(client, products, customer_headers, order_body, line):
    created = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]), headers=customer_headers)
    order_id = created.json()["id"]

    response = await client.get(f"/v1/orders/{order_id}/timeline", headers=customer_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["current_status"] == "PENDING"
    assert [step["label"] for step in data["timeline"]] == ["Order Placed", "Processing", "Shipped", "Delivered"]
    assert [step["is_completed"] for step in data["timeline"]] == [True, False, False, False]


@pytest.mark.asyncio
async def test_public_tracking(client, products, order_body, line):
    created = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]))
    order_number = created.json()["order_number"]

    response = await client.get(
        "/v1/orders/track", params={"order_number": order_number, "email": "JANE@example.com"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["order"]["order_number"] == order_number
    assert "user_id" not in data["order"]
    assert "recipient_email" not in data["order"]
    assert len(data["timeline"]) == 4


@pytest.mark.asyncio
async def test_public_tracking_failures(client, products, order_body, line):
    created = await client.post("/v1/orders", json=order_body([line(products[0].id, 1)]))
    order_number = created.json()["order_number"]

    missing_identity = await client.get("/v1/orders/track", params={"order_number": order_number})
    wrong_identity = await client.get(
        "/v1/orders/track", params={"order_number": order_number, "email": "thief@example.com"}
    )
    unknown = await client.get(
        "/v1/orders/track", params={"order_number": "RW2501-0000999", "email": "jane@example.com"}
    )

    assert missing_identity.status_code == 400
    assert wrong_identity.status_code == unknown.status_code == 404
    assert wrong_identity.json() == unknown.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_health_reports_degraded_database(client, mocker):
    broken = mocker.AsyncMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def broken_db():
        yield broken

    app.dependency_overrides[get_db] = broken_db

    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "unavailable"
