"""
Module: backend/routes/routes_shop.py
Unified comment style: module docstring + minimal inline notes.
"""
from __future__ import annotations
from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from utils.authz import SHOP_ADMIN_ROLES, current_actor_id, require_role
from utils.db import get_session
from utils.order_status import (
    UnifiedOrderStatus,
    get_status_label,
    is_cancellable,
    is_final,
    is_refundable,
    map_gateway_status,
)
from utils.response_helpers import error_response, ok_response, validation_error_response
from services.shop_settings_service import ShopSettingsError, ShopSettingsService

bp = Blueprint("shop", __name__, url_prefix="/api/shop")

SUPPORTED_GATEWAYS = {"stripe", "linepay", "ecpay"}


# --------- 商城設定（管理端） ---------
@bp.get("/settings")
@jwt_required()
@require_role(*SHOP_ADMIN_ROLES)
def get_shop_settings():
    with get_session() as s:
        settings = ShopSettingsService.get_or_create(s)
        return ok_response(settings=settings.to_dict())


@bp.put("/settings")
@jwt_required()
@require_role(*SHOP_ADMIN_ROLES)
def update_shop_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("INVALID_BODY", "請提供 JSON 物件")

    with get_session() as s:
        try:
            settings = ShopSettingsService.update_settings(s, data, actor_id=current_actor_id())
        except ShopSettingsError as e:
            s.rollback()
            return error_response(e.code, e.message, details=e.to_dict())
        return ok_response(settings=settings.to_dict())


# --------- 發票欄位（結帳端） ---------
@bp.get("/invoice/fields")
def get_invoice_fields():
    """結帳表單要顯示的發票欄位"""
    with get_session() as s:
        fields = ShopSettingsService.get_invoice_fields(s)
    return ok_response(fields=[f.to_dict() for f in fields])


@bp.post("/invoice/validate")
def validate_invoice():
    """驗證結帳時填寫的發票資料；錯誤一次全部回傳，前端依 key 顯示"""
    data = request.get_json(silent=True) or {}
    invoice_data = data.get("invoiceData") if isinstance(data, dict) else None
    if invoice_data is None:
        invoice_data = {}
    if not isinstance(invoice_data, dict):
        return error_response("INVALID_INVOICE_DATA", "invoiceData 必須是物件")
    bad_keys = sorted(k for k, v in invoice_data.items() if v is not None and not isinstance(v, str))
    if bad_keys:
        return error_response(
            "INVALID_INVOICE_DATA",
            "invoiceData 的值必須是字串",
            details={"keys": bad_keys},
        )

    with get_session() as s:
        errors = ShopSettingsService.validate_invoice_data(s, invoice_data)
    if errors:
        return validation_error_response([e.to_dict() for e in errors])
    return ok_response()


# --------- 訂單狀態 ---------
@bp.get("/order-statuses")
def list_order_statuses():
    items = [
        {
            "status": st.value,
            "label": {"en": get_status_label(st, "en"), "zh": get_status_label(st, "zh")},
            "cancellable": is_cancellable(st),
            "refundable": is_refundable(st),
            "final": is_final(st),
        }
        for st in UnifiedOrderStatus
    ]
    return ok_response(items=items)


@bp.post("/order-status/map")
@jwt_required()
@require_role(*SHOP_ADMIN_ROLES)
def map_order_status():
    """把金流回傳的原始狀態轉成統一訂單狀態（後台對帳用）"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("INVALID_BODY", "請提供 JSON 物件")
    gateway = str(data.get("gateway") or "").strip().lower()
    if gateway not in SUPPORTED_GATEWAYS:
        return error_response(
            "UNSUPPORTED_GATEWAY",
            f"不支援的金流: {gateway or '(空白)'}",
            hint="stripe / linepay / ecpay",
        )
    status = map_gateway_status(gateway, data.get("status"))
    locale = "en" if request.args.get("locale") == "en" else "zh"
    return ok_response(gateway=gateway, status=status.value, label=get_status_label(status, locale))
