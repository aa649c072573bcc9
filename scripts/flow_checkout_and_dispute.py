#!/usr/bin/env python3
"""
Checkout, refund and dispute flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_checkout_and_dispute.py --secret-key sk_test_... --admin-token <JWT>

Flow:
    1. Create a payment order (merchant)
    2. Verify it at checkout
    3. Open a dispute (merchant)
    4. Respond with evidence (merchant)
    5. Resolve for the customer (admin)
    6. Confirm the transaction was refunded
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"


def api_request(token: str | None, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make an API request and return status plus JSON body."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = httpx.request(
        method,
        f"{BASE_URL}/api/v1{endpoint}",
        headers=headers,
        json=data,
        timeout=10.0,
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def expect(result: dict, *codes: int) -> dict:
    print(f"Status: {result['status']}")
    print(json.dumps(result["data"], indent=2))
    if result["status"] not in codes:
        print("ERROR: unexpected status, stopping")
        sys.exit(1)
    return result["data"]


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk a payment through checkout and dispute")
    parser.add_argument("--secret-key", required=True, help="Merchant secret key (sk_test_...)")
    parser.add_argument("--admin-token", required=True, help="Admin JWT")
    parser.add_argument("--amount", type=float, default=500.0)
    parser.add_argument("--email", default="customer@example.com")
    args = parser.parse_args()

    print_step(1, "Create payment order")
    created = expect(
        api_request(args.secret_key, "POST", "/payment/create", {
            "amount": args.amount,
            "method": "upi",
            "customerEmail": args.email,
        }),
        201,
    )
    order_id = created["data"]["orderId"]

    print_step(2, "Verify at checkout")
    verified = expect(api_request(None, "POST", "/payment/verify", {"orderId": order_id}), 200)
    if verified["status"] != "success":
        # A settled payment cannot be re-settled; start over with a new order
        print("Mock network declined the payment; run the script again")
        sys.exit(1)

    transactions = expect(api_request(args.secret_key, "GET", "/payment/transactions"), 200)
    transaction_id = next(t["id"] for t in transactions["data"] if t["orderId"] == order_id)

    print_step(3, "Open dispute")
    dispute = expect(
        api_request(args.secret_key, "POST", "/disputes", {
            "transactionId": transaction_id,
            "reason": "product_not_received",
            "customerMessage": "Order never arrived",
        }),
        201,
    )
    dispute_id = dispute["data"]["id"]

    print_step(4, "Respond with evidence")
    expect(
        api_request(args.secret_key, "POST", f"/disputes/{dispute_id}/respond", {
            "merchantResponse": "Shipped via courier",
            "evidence": {"shippingTracking": "TRACK123", "documents": []},
        }),
        200,
    )

    print_step(5, "Resolve for customer")
    expect(
        api_request(args.admin_token, "POST", f"/disputes/{dispute_id}/resolve", {
            "decision": "customer",
            "notes": "No proof of delivery",
        }),
        200,
    )

    print_step(6, "Check transaction status")
    status = expect(api_request(None, "GET", f"/payment/status/{order_id}"), 200)
    print(f"\nFinal status: {status['data']['status']}")


if __name__ == "__main__":
    main()
