from __future__ import annotations
from typing import Mapping, Optional

# source workflow status -> destination order status id
STATUS_TABLE = {
    "pending": 1,
    "processing": 11,
    "on-hold": 7,
    "completed": 10,
    "cancelled": 5,
    "refunded": 4,
    "failed": 0,
    "checkout-draft": 0,
}

# Checked in order; first hit wins.
STATUS_SUBSTRINGS = (
    (("complete", "fulfilled"), 10),
    (("process", "ship"), 11),
    (("cancel",), 5),
    (("refund",), 4),
    (("hold", "payment"), 7),
)

DEFAULT_STATUS_ID = 1

STATUS_NAMES = {
    0: "Incomplete",
    1: "Pending",
    2: "Shipped",
    3: "Partially Shipped",
    4: "Refunded",
    5: "Cancelled",
    6: "Declined",
    7: "Awaiting Payment",
    8: "Awaiting Pickup",
    9: "Awaiting Shipment",
    10: "Completed",
    11: "Awaiting Fulfillment",
    12: "Manual Verification Required",
    13: "Disputed",
    14: "Partially Refunded",
}

PAYMENT_METHOD_TITLES = {
    "bacs": "Bank Transfer (BACS)",
    "cheque": "Check Payment",
    "cod": "Cash on Delivery",
    "paypal": "PayPal",
    "stripe": "Stripe Credit Card",
    "square": "Square",
    "authorize_net": "Authorize.Net",
    "braintree": "Braintree",
    "woocommerce_payments": "WooCommerce Payments",
    "klarna_payments": "Klarna",
    "afterpay": "Afterpay",
    "amazon_payments_advanced": "Amazon Pay",
    "paypal_express": "PayPal Express",
    "paypal_pro": "PayPal Pro",
}


def map_status(source_status: str, overrides: Optional[Mapping[str, int]] = None) -> int:
    status = (source_status or "").strip().lower()
    if status.startswith("wc-"):
        status = status[3:]

    if status in STATUS_TABLE:
        return STATUS_TABLE[status]
    if overrides and status in overrides:
        return int(overrides[status])

    for needles, status_id in STATUS_SUBSTRINGS:
        if any(n in status for n in needles):
            return status_id
    return DEFAULT_STATUS_ID


def status_name(status_id: int) -> str:
    return STATUS_NAMES.get(status_id, "Unknown")


def payment_method_title(method: str, title: str = "") -> str:
    if title:
        return title
    if method in PAYMENT_METHOD_TITLES:
        return PAYMENT_METHOD_TITLES[method]
    return method.replace("_", " ").replace("-", " ").title()


def financial_status(status: str, payment_method: str) -> str:
    """Best guess at whether an order was paid, from its status and gateway."""
    if payment_method in ("stripe", "paypal", "square", "authorize_net"):
        if status in ("processing", "completed", "shipped"):
            return "paid"
        if status in ("failed", "cancelled"):
            return "voided"
        return "pending"
    if payment_method in ("bacs", "cheque", "cod"):
        return "paid" if status in ("processing", "completed") else "pending"
    if status in ("completed", "processing"):
        return "paid"
    if status == "refunded":
        return "refunded"
    if status == "cancelled":
        return "voided"
    return "pending"
