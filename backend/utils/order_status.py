"""
Module: backend/utils/order_status.py
統一訂單狀態與金流狀態對照（Stripe / LinePay / ECPay），純函式。
"""
from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Dict, Optional


class UnifiedOrderStatus(str, enum.Enum):
    pending_payment = "pending_payment"    # 待付款
    paid = "paid"                          # 已付款
    pending_shipment = "pending_shipment"  # 待出貨
    shipped = "shipped"                    # 已出貨
    completed = "completed"                # 已完成
    cancelled = "cancelled"                # 已取消
    refunding = "refunding"                # 退款中


S = UnifiedOrderStatus

STRIPE_CHECKOUT_SESSION_MAP: Dict[str, UnifiedOrderStatus] = {
    "open": S.pending_payment,
    "complete": S.paid,
    "expired": S.cancelled,
}

STRIPE_PAYMENT_INTENT_MAP: Dict[str, UnifiedOrderStatus] = {
    "succeeded": S.paid,
    "canceled": S.cancelled,
    "requires_payment_method": S.pending_payment,
    "requires_confirmation": S.pending_payment,
    "requires_action": S.pending_payment,
    "processing": S.pending_payment,
    "requires_capture": S.pending_payment,
}

LINEPAY_MAP: Dict[str, UnifiedOrderStatus] = {
    "CONFIRMED": S.paid,
    "PENDING": S.pending_payment,
    "AUTHORIZED": S.pending_payment,
    "EXPIRED": S.cancelled,
    "VOIDED": S.cancelled,
    "REFUNDED": S.refunding,
}

# ECPay RtnCode
ECPAY_MAP: Dict[str, UnifiedOrderStatus] = {
    "1": S.paid,
    "0": S.pending_payment,
    "2": S.cancelled,
    "10100058": S.refunding,
}

STATUS_LABELS: Dict[UnifiedOrderStatus, Dict[str, str]] = {
    S.pending_payment: {"en": "Pending Payment", "zh": "待付款"},
    S.paid: {"en": "Paid", "zh": "已付款"},
    S.pending_shipment: {"en": "Pending Shipment", "zh": "待出貨"},
    S.shipped: {"en": "Shipped", "zh": "已出貨"},
    S.completed: {"en": "Completed", "zh": "已完成"},
    S.cancelled: {"en": "Cancelled", "zh": "已取消"},
    S.refunding: {"en": "Refunding", "zh": "退款中"},
}


def _raw_status(status: Any) -> Optional[str]:
    """金流原始狀態只接受字串（ECPay 另接受整數）；其他型別視為未知。"""
    if isinstance(status, bool):
        return None
    if isinstance(status, str):
        return status
    if isinstance(status, int):
        return str(status)
    return None


def map_stripe_checkout_session_status(status: str) -> UnifiedOrderStatus:
    return STRIPE_CHECKOUT_SESSION_MAP.get(_raw_status(status), S.pending_payment)


def map_stripe_payment_intent_status(status: str) -> UnifiedOrderStatus:
    return STRIPE_PAYMENT_INTENT_MAP.get(_raw_status(status), S.pending_payment)


def map_stripe_status(
    payment_intent_status: Optional[str] = None,
    checkout_session_status: Optional[str] = None,
) -> UnifiedOrderStatus:
    """優先使用 PaymentIntent（較精確），其次 Checkout Session。"""
    if payment_intent_status:
        return map_stripe_payment_intent_status(payment_intent_status)
    if checkout_session_status:
        return map_stripe_checkout_session_status(checkout_session_status)
    return S.pending_payment


def map_linepay_status(status: str) -> UnifiedOrderStatus:
    return LINEPAY_MAP.get(_raw_status(status), S.pending_payment)


def map_ecpay_status(status: str | int) -> UnifiedOrderStatus:
    return ECPAY_MAP.get(_raw_status(status), S.pending_payment)


def map_gateway_status(gateway: str, status: Any) -> UnifiedOrderStatus:
    """
    金流狀態統一入口。
    stripe 的 status 為 {"paymentIntentStatus", "checkoutSessionStatus"}，
    其他 gateway 為原始狀態字串；未知的 gateway 一律視為待付款。
    """
    if gateway == "stripe":
        raw: Mapping[str, Any] = status if isinstance(status, Mapping) else {}
        return map_stripe_status(
            payment_intent_status=raw.get("paymentIntentStatus"),
            checkout_session_status=raw.get("checkoutSessionStatus"),
        )
    if gateway == "linepay":
        return map_linepay_status(status)
    if gateway == "ecpay":
        return map_ecpay_status(status)
    return S.pending_payment


def get_status_label(status: UnifiedOrderStatus | str, locale: str = "zh") -> str:
    try:
        key = UnifiedOrderStatus(status)
    except ValueError:
        return str(status)
    labels = STATUS_LABELS[key]
    return labels.get(locale) or key.value


def is_cancellable(status: UnifiedOrderStatus | str) -> bool:
    return status == S.pending_payment


def is_refundable(status: UnifiedOrderStatus | str) -> bool:
    return status in (S.paid, S.pending_shipment)


def is_final(status: UnifiedOrderStatus | str) -> bool:
    """已結案（不可再變更）"""
    return status in (S.completed, S.cancelled)
