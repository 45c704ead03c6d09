"""
回應輔助函數
提供統一的 API 回應格式
"""
from flask import g, jsonify
from typing import Any, Dict, List, Optional


def _trace() -> Dict[str, Any]:
    return {"request_id": g.get("request_id"), "ts": g.get("request_ts")}


def ok_response(status_code: int = 200, **payload: Any) -> tuple:
    """
    成功回應格式

    Args:
        status_code: HTTP 狀態碼
        **payload: 其餘回應欄位

    Returns:
        (response, status_code)
    """
    return jsonify({"ok": True, **payload}), status_code


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    hint: Optional[str] = None,
    details: Any = None,
) -> tuple:
    """
    錯誤回應格式

    Args:
        code: 錯誤代碼
        message: 錯誤訊息
        status_code: HTTP 狀態碼
        hint: 給使用者的提示
        details: 詳細錯誤內容

    Returns:
        (response, status_code)
    """
    return jsonify({
        "ok": False,
        "error": {"code": code, "message": message, "hint": hint, "details": details},
        "trace": _trace(),
    }), status_code


def validation_error_response(errors: List[Dict[str, str]], message: str = "資料驗證失敗") -> tuple:
    """
    表單驗證錯誤回應

    Args:
        errors: 欄位錯誤清單 [{key, code, message}]

    Returns:
        (response, 422)
    """
    return jsonify({
        "ok": False,
        "message": message,
        "errors": errors,
    }), 422
