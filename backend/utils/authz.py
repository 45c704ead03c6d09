"""
Module: backend/utils/authz.py
Unified comment style: module docstring + minimal inline notes.
"""
import logging
from flask import abort, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from functools import wraps

logger = logging.getLogger(__name__)

SHOP_ADMIN_ROLES = ("admin", "dev_admin", "shop_admin")


def require_role(*roles: str):
    def wrap(fn):
        @wraps(fn)
        def inner(*a, **kw):
            verify_jwt_in_request()
            claims = get_jwt() or {}

            if claims.get("role") not in roles:
                role = claims.get('role') or 'guest'
                uid = claims.get('sub')
                logger.warning(
                    "未授權權限嘗試 actor=%s role=%s path=%s method=%s allow=%s",
                    uid, role, request.path, request.method, roles,
                )
                abort(403)
            return fn(*a, **kw)
        return inner
    return wrap


def current_actor_id() -> int | None:
    """目前 JWT 的使用者 ID；非數字或未登入時回傳 None"""
    ident = get_jwt_identity()
    try:
        return int(ident) if ident is not None else None
    except (TypeError, ValueError):
        return None
