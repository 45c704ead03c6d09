"""
商城設定服務
負責商城設定（含發票欄位設定）的讀取、儲存驗證，以及結帳時的發票欄位編譯
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from models import ShopSettings
from utils.config_handler import read_config
from utils.error_logger import log_config_error
from utils.invoice_schema import (
    FieldValidationError,
    InvoiceConfigMode,
    InvoiceField,
    InvoiceToggles,
    JsonSchemaInvoiceConfig,
    SchemaValidationError,
    compile_pattern,
    config_to_schema,
    validate_invoice_input,
    validate_json_schema,
)

logger = logging.getLogger(__name__)

MIN_TTL_MINUTES = 1
MAX_TTL_MINUTES = 24 * 60


class ShopSettingsError(ValueError):
    """管理員送出的商城設定不合法"""

    def __init__(self, code: str, message: str, schema_error: Optional[SchemaValidationError] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.schema_error = schema_error

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.schema_error is not None:
            out["schema_error"] = self.schema_error.to_dict()
        return out


def _find_bad_pattern(schema: Mapping[str, Any]) -> Optional[str]:
    """回傳第一個無法編譯的 pattern 所屬欄位 key"""
    for key, prop in schema["properties"].items():
        pattern = prop.get("pattern")
        if pattern is None:
            continue
        if not isinstance(pattern, str):
            return key
        try:
            compile_pattern(pattern)
        except re.error:
            return key
    return None


class ShopSettingsService:
    """商城設定服務類"""

    @classmethod
    def get_or_create(cls, session: Session) -> ShopSettings:
        """
        取得商城設定（單列），不存在時以預設值建立

        Args:
            session: 數據庫會話

        Returns:
            ShopSettings: 設定資料列
        """
        settings = session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
        if settings:
            return settings

        cfg = read_config()
        settings = ShopSettings(
            reserved_ttl_minutes=int(cfg.get("shop_reserved_ttl_minutes", 30)),
            invoice_config_mode=InvoiceConfigMode.toggles.value,
            invoice_toggles_json=InvoiceToggles().to_dict(),
            invoice_json_schema=None,
        )
        session.add(settings)
        session.commit()
        logger.info("shop_settings 初始化完成 (id=%s)", settings.id)
        return settings

    @classmethod
    def update_settings(
        cls,
        session: Session,
        data: Mapping[str, Any],
        actor_id: Optional[int] = None,
    ) -> ShopSettings:
        """
        驗證並儲存商城設定。設定本身的錯誤只在這裡回報（儲存時），
        結帳時不再阻擋。

        Args:
            session: 數據庫會話
            data: {reservedTtlMinutes?, invoiceConfigMode?, invoiceTogglesJson?, invoiceJsonSchema?}
            actor_id: 修改者 ID

        Returns:
            ShopSettings: 更新後的設定

        Raises:
            ShopSettingsError: 任一欄位不合法
        """
        settings = cls.get_or_create(session)

        ttl = settings.reserved_ttl_minutes
        if "reservedTtlMinutes" in data:
            raw_ttl = data.get("reservedTtlMinutes")
            if isinstance(raw_ttl, bool):
                raise ShopSettingsError("invalid_ttl", "reservedTtlMinutes 必須是整數")
            try:
                ttl = int(raw_ttl)
            except (TypeError, ValueError):
                raise ShopSettingsError("invalid_ttl", "reservedTtlMinutes 必須是整數")
            if not MIN_TTL_MINUTES <= ttl <= MAX_TTL_MINUTES:
                raise ShopSettingsError(
                    "invalid_ttl",
                    f"reservedTtlMinutes 必須介於 {MIN_TTL_MINUTES} 與 {MAX_TTL_MINUTES} 之間",
                )

        mode = data.get("invoiceConfigMode", settings.invoice_config_mode)
        try:
            mode = InvoiceConfigMode(mode).value
        except ValueError:
            raise ShopSettingsError("invalid_mode", f"不支援的發票設定模式: {mode}")

        toggles_json = settings.invoice_toggles_json
        json_schema = settings.invoice_json_schema

        if mode == InvoiceConfigMode.toggles.value:
            if "invoiceTogglesJson" in data:
                raw_toggles = data.get("invoiceTogglesJson")
                if not isinstance(raw_toggles, Mapping):
                    raise ShopSettingsError("invalid_toggles", "invoiceTogglesJson 必須是物件")
                toggles_json = InvoiceToggles.from_dict(raw_toggles).to_dict()
            elif not isinstance(toggles_json, dict):
                toggles_json = InvoiceToggles().to_dict()
        else:
            raw_schema = data.get("invoiceJsonSchema", json_schema)
            if isinstance(raw_schema, str):
                if not raw_schema.strip():
                    raw_schema = None
                else:
                    try:
                        raw_schema = json.loads(raw_schema)
                    except ValueError:
                        raise ShopSettingsError("invalid_json", "invoiceJsonSchema 不是合法的 JSON")
            if raw_schema is None:
                raise ShopSettingsError("missing_json_schema", "jsonSchema 模式需要提供 invoiceJsonSchema")

            schema_error = validate_json_schema(raw_schema)
            if schema_error is not None:
                raise ShopSettingsError("invalid_json_schema", schema_error.message, schema_error)

            bad_key = _find_bad_pattern(raw_schema)
            if bad_key is not None:
                raise ShopSettingsError("invalid_pattern", f'Property "{bad_key}" pattern 不是合法的正規表示式')
            json_schema = dict(raw_schema)

        settings.reserved_ttl_minutes = ttl
        settings.invoice_config_mode = mode
        settings.invoice_toggles_json = toggles_json
        settings.invoice_json_schema = json_schema
        settings.updated_by = actor_id
        session.commit()

        logger.info("shop_settings 已更新 mode=%s ttl=%s by=%s", mode, ttl, actor_id)
        return settings

    @classmethod
    def get_invoice_fields(cls, session: Session) -> List[InvoiceField]:
        """
        結帳用：依已存設定產生發票欄位。
        設定無法解讀時 fail-open（回傳空清單）並記錄診斷訊息。
        """
        settings = cls.get_or_create(session)
        config = settings.invoice_config()
        if config is None:
            log_config_error(
                "shop_settings.invoice_config_mode",
                f"未知的發票設定模式: {settings.invoice_config_mode}",
                {"settings_id": settings.id},
            )
            return []

        if isinstance(config, JsonSchemaInvoiceConfig) and config.json_schema is not None:
            schema_error = validate_json_schema(config.json_schema)
            if schema_error is not None:
                log_config_error(
                    "shop_settings.invoice_json_schema",
                    schema_error.message,
                    {"settings_id": settings.id, **schema_error.to_dict()},
                )
                return []

        all_required = bool(read_config().get("invoice_toggles_all_required", False))
        try:
            return config_to_schema(config, all_required=all_required)
        except re.error as e:
            log_config_error(
                "shop_settings.invoice_json_schema",
                f"pattern 無法編譯: {e}",
                {"settings_id": settings.id},
            )
            return []

    @classmethod
    def validate_invoice_data(
        cls,
        session: Session,
        invoice_data: Mapping[str, Optional[str]],
    ) -> List[FieldValidationError]:
        """依目前設定驗證結帳時送出的發票資料，回傳所有欄位錯誤"""
        fields = cls.get_invoice_fields(session)
        return validate_invoice_input(fields, invoice_data)
