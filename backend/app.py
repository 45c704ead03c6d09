"""
Module: backend/app.py
Unified comment style: module docstring + minimal inline notes.
"""
from __future__ import annotations
import os, uuid, json, logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from urllib.parse import quote

from dotenv import load_dotenv, find_dotenv

_dotenv_path = os.environ.get("DOTENV_PATH", "/app/.env")
if os.path.exists(_dotenv_path):
    load_dotenv(_dotenv_path)
else:
    load_dotenv(find_dotenv())

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from utils.config_handler import load_config
from utils.db import init_engine_session, get_db_health
from utils.error_logger import log_api_error
from routes.routes_shop import bp as shop_bp

APP_BUILD_VERSION = os.getenv("APP_BUILD_VERSION", "sitekit-v1.0.0")

DEFAULT_HTTP_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _allowed_origins() -> list[str]:
    allowed = (
        [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
        if os.getenv("ALLOWED_ORIGINS") else list(DEFAULT_HTTP_ORIGINS)
    )
    v = (os.getenv("PUBLIC_BASE_URL") or "").strip()
    if v and v not in allowed:
        allowed.append(v)
    return allowed


def create_app() -> Flask:
    app = Flask(__name__)
    app.config["JSON_AS_ASCII"] = False
    app.json.ensure_ascii = False

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    app.logger.addHandler(handler)
    app.logger.setLevel(logging.DEBUG if os.getenv("FLASK_DEBUG") else logging.INFO)
    app.config["PROPAGATE_EXCEPTIONS"] = False

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key or secret_key == "dev":
        if os.getenv("FLASK_ENV") == "production":
            raise ValueError("生產環境必須設定 SECRET_KEY 環境變數")
        secret_key = "dev-only-key-not-for-production"
    app.config["SECRET_KEY"] = secret_key

    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "devkey")
    jwt_expires_hours = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "168"))
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=jwt_expires_hours)
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def _jwt_missing(reason: str):
        return jsonify({"ok": False, "error": {"code": "JWT_MISSING", "message": "缺少授權資訊", "hint": reason}}), 401

    @jwt.invalid_token_loader
    def _jwt_invalid(reason: str):
        return jsonify({"ok": False, "error": {"code": "JWT_INVALID", "message": "無效的憑證", "hint": reason}}), 401

    @jwt.expired_token_loader
    def _jwt_expired(h, p):
        return jsonify({"ok": False, "error": {"code": "JWT_EXPIRED", "message": "憑證已過期", "hint": None}}), 401

    try:
        init_engine_session()
        app.logger.info("[SiteKit] DB init ok")
    except Exception as e:
        app.logger.error(f"DB init failed at startup: {e}")

    CORS(app, resources={r"/api/*": {"origins": _allowed_origins()}})

    @app.before_request
    def add_req_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_ts = datetime.now(timezone.utc).isoformat()

    @app.route("/api/healthz")
    def healthz():
        """健康檢查端點（含 DB 真實狀態檢測）"""
        db: Dict[str, Any] = get_db_health()
        return jsonify({
            "ok": bool(db.get("ok")),
            "version": APP_BUILD_VERSION,
            "db": db,
            "mode": (load_config() or {}).get("mode", "normal"),
        }), (200 if db.get("ok") else 503)

    app.register_blueprint(shop_bp)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        app.logger.info(f"HTTP {e.code}: {e.description}")  # HTTP 錯誤記錄但不需要 traceback
        return jsonify({
            "ok": False,
            "error": {
                "code": f"HTTP-{e.code}",
                "message": e.description or "HTTP錯誤",
                "hint": "檢查請求參數與權限",
                "details": None
            },
            "trace": {"request_id": g.get("request_id"), "ts": g.get("request_ts")}
        }), e.code

    @app.errorhandler(Exception)
    def handle_any(e: Exception):
        log_api_error(request.path, request.method, e)

        hint = "請稍後再試或聯繫系統管理員"
        if "timeout" in str(e).lower():
            hint = "請求超時，請檢查網路連接"
        elif "connection" in str(e).lower():
            hint = "網路連接異常，請檢查網路狀態"

        return jsonify({
            "ok": False,
            "error": {
                "code": 500,
                "message": str(e),
                "hint": hint,
                "details": {
                    "error_type": type(e).__name__,
                    "support_url": "/support?prefill=" + quote(json.dumps({
                        "type": "system_error",
                        "title": "系統錯誤 500",
                        "error_details": str(e)[:200]  # 限制長度
                    }))
                }
            },
            "trace": {"request_id": g.get("request_id"), "ts": g.get("request_ts")}
        }), 500

    if (load_config() or {}).get("mode", "normal") in {"development", "test"}:
        routes_after = sorted(str(r) for r in app.url_map.iter_rules())
        app.logger.debug(f"[SiteKit][routes] {routes_after}")

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("SITEKIT_PORT", os.getenv("PORT", "12005")))
    app.run(host="0.0.0.0", port=port)
