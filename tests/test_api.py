"""HTTP surface: auth, envelopes and end-to-end flows."""

from datetime import timedelta

import pytest

from app.core.security import create_access_token, create_admin_token
from app.domain.payment_state import FixedSettlementPolicy
from app.services.payment_service import payment_service

API = "/api/v1"


@pytest.fixture(autouse=True)
def always_approve(monkeypatch):
    monkeypatch.setattr(payment_service, "settlement_policy", FixedSettlementPolicy("success"))


async def create_order(client, headers, amount=500, method="card", email="buyer@example.com"):
    response = await client.post(
        f"{API}/payment/create",
        json={"amount": amount, "method": method, "customerEmail": email},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["orderId"]


async def paid_order(client, headers, amount=500):
    """Create and verify an order; return (order_id, transaction_id)."""
    order_id = await create_order(client, headers, amount=amount)
    response = await client.post(f"{API}/payment/verify", json={"orderId": order_id})
    assert response.json()["status"] == "success"

    listing = await client.get(f"{API}/payment/transactions", headers=headers)
    transaction_id = next(t["id"] for t in listing.json()["data"] if t["orderId"] == order_id)
    return order_id, transaction_id


# ==================== HEALTH / AUTH ====================


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


async def test_merchant_routes_require_api_key(client):
    response = await client.get(f"{API}/payment/transactions")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Missing API key"}


@pytest.mark.parametrize("key", ["pk_test_abc", "sk_test_unknown"])
async def test_invalid_api_key(client, key):
    response = await client.get(
        f"{API}/payment/transactions", headers={"Authorization": f"Bearer {key}"}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid API key"


async def test_admin_routes_require_admin_role(client, merchant_headers):
    assert (await client.get(f"{API}/admin/disputes")).status_code == 401

    # A merchant secret key is not a JWT
    assert (await client.get(f"{API}/admin/disputes", headers=merchant_headers)).status_code == 401

    token = create_access_token({"sub": "someone@example.com", "role": "merchant"})
    response = await client.get(
        f"{API}/admin/disputes", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 403


async def test_expired_admin_token(client):
    token = create_admin_token("admin@zeropay.com", expires_delta=timedelta(seconds=-1))
    response = await client.get(
        f"{API}/admin/transactions", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401


# ==================== PAYMENTS ====================


async def test_create_payment(client, merchant_headers):
    response = await client.post(
        f"{API}/payment/create",
        json={"amount": 249.99, "method": "upi", "customerEmail": "buyer@example.com"},
        headers=merchant_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["orderId"].startswith("order_")
    assert body["data"]["status"] == "pending"
    assert body["data"]["amount"] == 249.99
    assert body["data"]["currency"] == "INR"
    assert body["data"]["isTestMode"] is True


@pytest.mark.parametrize(
    "payload",
    [
        {"amount": 0, "method": "card", "customerEmail": "a@b.co"},
        {"amount": 10, "method": "cash", "customerEmail": "a@b.co"},
        {"amount": 10, "method": "card"},
    ],
)
async def test_create_payment_rejects_bad_input(client, merchant_headers, payload):
    response = await client.post(f"{API}/payment/create", json=payload, headers=merchant_headers)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["errors"]


async def test_create_payment_rejects_bad_email(client, merchant_headers):
    response = await client.post(
        f"{API}/payment/create",
        json={"amount": 10, "method": "card", "customerEmail": "not-an-email"},
        headers=merchant_headers,
    )
    assert response.status_code == 400


async def test_verify_settles_once(client, merchant_headers, dispatched):
    order_id = await create_order(client, merchant_headers)

    first = await client.post(f"{API}/payment/verify", json={"orderId": order_id})
    assert first.status_code == 200
    assert first.json() == {"success": True, "status": "success", "orderId": order_id}
    assert any(name == "app.tasks.send_email" for name, _ in dispatched)

    second = await client.post(f"{API}/payment/verify", json={"orderId": order_id})
    assert second.status_code == 400
    assert second.json()["message"] == "This payment has already been processed."


async def test_verify_replays_with_idempotency_key(client, merchant_headers):
    order_id = await create_order(client, merchant_headers)
    headers = {"Idempotency-Key": "checkout-1"}

    first = await client.post(f"{API}/payment/verify", json={"orderId": order_id}, headers=headers)
    replay = await client.post(f"{API}/payment/verify", json={"orderId": order_id}, headers=headers)

    assert first.status_code == replay.status_code == 200
    assert replay.json() == first.json()


async def test_verify_unknown_order(client):
    response = await client.post(f"{API}/payment/verify", json={"orderId": "order_missing"})
    assert response.status_code == 404


async def test_verify_failure_is_reported(client, merchant_headers, monkeypatch):
    monkeypatch.setattr(payment_service, "settlement_policy", FixedSettlementPolicy("failed"))
    order_id = await create_order(client, merchant_headers)

    response = await client.post(f"{API}/payment/verify", json={"orderId": order_id})

    assert response.status_code == 200
    assert response.json()["status"] == "failed"


async def test_status_lookup_is_public(client, merchant_headers):
    order_id = await create_order(client, merchant_headers, amount=75)

    response = await client.get(f"{API}/payment/status/{order_id}")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "pending"
    assert response.json()["data"]["amount"] == 75.0


async def test_refund(client, merchant_headers):
    order_id, _ = await paid_order(client, merchant_headers)

    response = await client.post(
        f"{API}/payment/refund",
        json={"orderId": order_id, "amount": 200, "reason": "Damaged"},
        headers=merchant_headers,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Refund processed"
    assert response.json()["data"]["refundedAmount"] == 200.0

    status = await client.get(f"{API}/payment/status/{order_id}")
    assert status.json()["data"]["status"] == "refunded"

    again = await client.post(
        f"{API}/payment/refund",
        json={"orderId": order_id, "amount": 10},
        headers=merchant_headers,
    )
    assert again.status_code == 400


async def test_refund_over_amount(client, merchant_headers):
    order_id, _ = await paid_order(client, merchant_headers, amount=100)

    response = await client.post(
        f"{API}/payment/refund",
        json={"orderId": order_id, "amount": 150},
        headers=merchant_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Refund amount exceeds transaction amount"


async def test_refund_other_merchants_order(client, merchant_headers, other_merchant):
    order_id, _ = await paid_order(client, merchant_headers)

    response = await client.post(
        f"{API}/payment/refund",
        json={"orderId": order_id, "amount": 10},
        headers={"Authorization": f"Bearer {other_merchant.secret_key}"},
    )
    assert response.status_code == 404


async def test_transactions_filter(client, merchant_headers):
    await paid_order(client, merchant_headers)
    await create_order(client, merchant_headers)

    pending = await client.get(
        f"{API}/payment/transactions", params={"status": "pending"}, headers=merchant_headers
    )
    assert [t["status"] for t in pending.json()["data"]] == ["pending"]

    bad = await client.get(
        f"{API}/payment/transactions", params={"status": "settled"}, headers=merchant_headers
    )
    assert bad.status_code == 400


# ==================== DISPUTES ====================


async def test_dispute_resolved_for_customer_refunds(client, merchant_headers, admin_headers):
    order_id, transaction_id = await paid_order(client, merchant_headers)

    opened = await client.post(
        f"{API}/disputes",
        json={
            "transactionId": transaction_id,
            "reason": "product_not_received",
            "customerMessage": "Never arrived",
        },
        headers=merchant_headers,
    )
    assert opened.status_code == 201
    dispute_id = opened.json()["data"]["id"]
    assert opened.json()["data"]["status"] == "open"

    responded = await client.post(
        f"{API}/disputes/{dispute_id}/respond",
        json={
            "merchantResponse": "Shipped",
            "evidence": {"shippingTracking": "TRACK1", "documents": ["receipt.pdf"]},
        },
        headers=merchant_headers,
    )
    assert responded.status_code == 200
    assert responded.json()["data"]["status"] == "under_review"
    assert responded.json()["data"]["evidence"]["shippingTracking"] == "TRACK1"

    resolved = await client.post(
        f"{API}/disputes/{dispute_id}/resolve",
        json={"decision": "customer", "notes": "No proof of delivery"},
        headers=admin_headers,
    )
    assert resolved.status_code == 200
    data = resolved.json()["data"]
    assert data["status"] == "lost"
    assert data["resolution"]["decision"] == "customer"
    assert data["resolution"]["resolvedBy"] == "admin@zeropay.com"

    status = await client.get(f"{API}/payment/status/{order_id}")
    assert status.json()["data"]["status"] == "refunded"

    again = await client.post(
        f"{API}/disputes/{dispute_id}/resolve",
        json={"decision": "merchant"},
        headers=admin_headers,
    )
    assert again.status_code == 409


async def test_dispute_resolved_for_merchant_keeps_payment(client, merchant_headers, admin_headers):
    order_id, transaction_id = await paid_order(client, merchant_headers)
    opened = await client.post(
        f"{API}/disputes",
        json={"transactionId": transaction_id, "reason": "fraudulent", "customerMessage": "?"},
        headers=merchant_headers,
    )
    dispute_id = opened.json()["data"]["id"]

    resolved = await client.post(
        f"{API}/disputes/{dispute_id}/resolve",
        json={"decision": "merchant"},
        headers=admin_headers,
    )

    assert resolved.json()["data"]["status"] == "won"
    status = await client.get(f"{API}/payment/status/{order_id}")
    assert status.json()["data"]["status"] == "success"


async def test_second_dispute_conflicts(client, merchant_headers):
    _, transaction_id = await paid_order(client, merchant_headers)
    body = {"transactionId": transaction_id, "reason": "duplicate", "customerMessage": "Charged twice"}

    assert (await client.post(f"{API}/disputes", json=body, headers=merchant_headers)).status_code == 201
    conflict = await client.post(f"{API}/disputes", json=body, headers=merchant_headers)
    assert conflict.status_code == 409


async def test_resolve_requires_admin(client, merchant_headers):
    _, transaction_id = await paid_order(client, merchant_headers)
    opened = await client.post(
        f"{API}/disputes",
        json={"transactionId": transaction_id, "reason": "other", "customerMessage": "?"},
        headers=merchant_headers,
    )
    dispute_id = opened.json()["data"]["id"]

    response = await client.post(
        f"{API}/disputes/{dispute_id}/resolve",
        json={"decision": "customer"},
        headers=merchant_headers,
    )
    assert response.status_code == 401


async def test_list_and_get_disputes(client, merchant_headers, admin_headers):
    _, transaction_id = await paid_order(client, merchant_headers)
    opened = await client.post(
        f"{API}/disputes",
        json={"transactionId": transaction_id, "reason": "other", "customerMessage": "?"},
        headers=merchant_headers,
    )
    dispute_id = opened.json()["data"]["id"]

    mine = await client.get(f"{API}/disputes", headers=merchant_headers)
    assert [d["id"] for d in mine.json()["data"]] == [dispute_id]

    detail = await client.get(f"{API}/disputes/{dispute_id}", headers=merchant_headers)
    assert detail.json()["data"]["transactionId"] == transaction_id
    assert detail.json()["data"]["resolution"] is None

    everyone = await client.get(f"{API}/admin/disputes", params={"status": "open"}, headers=admin_headers)
    assert len(everyone.json()["data"]) == 1


# ==================== ADMIN ====================


async def test_admin_manual_settlement(client, merchant_headers, admin_headers):
    order_id = await create_order(client, merchant_headers)

    response = await client.post(
        f"{API}/admin/transactions/{order_id}/settle",
        json={"status": "failed"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Transaction marked as failed"

    again = await client.post(
        f"{API}/admin/transactions/{order_id}/settle",
        json={"status": "success"},
        headers=admin_headers,
    )
    assert again.status_code == 400

    listing = await client.get(f"{API}/admin/transactions", headers=admin_headers)
    assert [t["status"] for t in listing.json()["data"]] == ["failed"]


async def test_admin_settle_rejects_other_outcomes(client, merchant_headers, admin_headers):
    order_id = await create_order(client, merchant_headers)
    response = await client.post(
        f"{API}/admin/transactions/{order_id}/settle",
        json={"status": "refunded"},
        headers=admin_headers,
    )
    assert response.status_code == 400


# ==================== WEBHOOKS ====================


async def test_webhook_endpoints(client, merchant_headers, dispatched):
    created = await client.post(
        f"{API}/webhooks",
        json={"url": "https://shop.example.com/hooks", "events": ["payment.success"]},
        headers=merchant_headers,
    )
    assert created.status_code == 201
    webhook = created.json()["data"]
    assert webhook["secret"].startswith("whsec_")

    listing = await client.get(f"{API}/webhooks", headers=merchant_headers)
    assert [w["id"] for w in listing.json()["data"]] == [webhook["id"]]

    test = await client.post(f"{API}/webhooks/{webhook['id']}/test", headers=merchant_headers)
    assert test.status_code == 200
    assert test.json()["data"]["event"] == "webhook.test"
    assert test.json()["data"]["status"] == "pending"
    assert ("app.tasks.deliver_pending_webhooks", {}) in dispatched

    deleted = await client.delete(f"{API}/webhooks/{webhook['id']}", headers=merchant_headers)
    assert deleted.status_code == 200
    assert deleted.json()["data"] is None

    missing = await client.delete(f"{API}/webhooks/{webhook['id']}", headers=merchant_headers)
    assert missing.status_code == 404


@pytest.mark.parametrize("url", ["ftp://shop.example.com", "http://[::1/hook", "http://xn--/hook"])
async def test_webhook_rejects_bad_url(client, merchant_headers, url):
    response = await client.post(
        f"{API}/webhooks",
        json={"url": url, "events": ["payment.success"]},
        headers=merchant_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid URL format"


async def test_broker_outage_does_not_fail_request(client, merchant_headers, monkeypatch):
    from app.core import background_tasks

    def broker_down(name, kwargs):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(background_tasks, "dispatch_task", broker_down)
    order_id = await create_order(client, merchant_headers)

    response = await client.post(f"{API}/payment/verify", json={"orderId": order_id})

    assert response.status_code == 200
    assert response.json()["status"] == "success"


# ==================== AUDIT TRAIL ====================


async def test_audit_logs_newest_first(client, merchant_headers):
    order_id, transaction_id = await paid_order(client, merchant_headers)
    opened = await client.post(
        f"{API}/disputes",
        json={"transactionId": transaction_id, "reason": "other", "customerMessage": "?"},
        headers=merchant_headers,
    )
    dispute_id = opened.json()["data"]["id"]
    await client.post(
        f"{API}/disputes/{dispute_id}/respond",
        json={"merchantResponse": "Delivered on time"},
        headers={
            **merchant_headers,
            "User-Agent": "shop-dashboard/2.1",
            "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
        },
    )

    response = await client.get(f"{API}/audit-logs", headers=merchant_headers)

    assert response.status_code == 200
    logs = response.json()["data"]
    assert [log["action"] for log in logs] == [
        "DISPUTE_RESPONSE_SUBMITTED",
        "DISPUTE_CREATED",
        "PAYMENT_SETTLED",
        "PAYMENT_CREATED",
    ]
    assert logs[0]["ipAddress"] == "203.0.113.7"
    assert logs[0]["userAgent"] == "shop-dashboard/2.1"
    assert logs[0]["resourceId"] == dispute_id
    assert logs[-1]["details"]["order_id"] == order_id


async def test_audit_logs_are_scoped_and_limited(client, merchant_headers, other_merchant):
    for _ in range(3):
        await create_order(client, merchant_headers)

    limited = await client.get(f"{API}/audit-logs", params={"limit": 2}, headers=merchant_headers)
    assert len(limited.json()["data"]) == 2

    other = await client.get(
        f"{API}/audit-logs", headers={"Authorization": f"Bearer {other_merchant.secret_key}"}
    )
    assert other.json()["data"] == []

    too_many = await client.get(f"{API}/audit-logs", params={"limit": 51}, headers=merchant_headers)
    assert too_many.status_code == 400


async def test_audit_logs_require_api_key(client):
    assert (await client.get(f"{API}/audit-logs")).status_code == 401
