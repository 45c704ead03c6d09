"""
Module: backend/models/shop.py
Unified comment style: module docstring + minimal inline notes.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, JSON
from utils.db import Base
from utils.invoice_schema import (
    InvoiceConfig,
    InvoiceConfigMode,
    InvoiceToggles,
    JsonSchemaInvoiceConfig,
    TogglesInvoiceConfig,
    create_empty_toggles,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_toggles() -> dict[str, bool]:
    return create_empty_toggles().to_dict()


class ShopSettings(Base):
    """商城設定（單列）"""
    __tablename__ = "shop_settings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reserved_ttl_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    invoice_config_mode: Mapped[str] = mapped_column(String(16), nullable=False, default=InvoiceConfigMode.toggles.value)
    invoice_toggles_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, default=_default_toggles)
    invoice_json_schema: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def invoice_config(self) -> InvoiceConfig | None:
        """依資料列重建發票設定；mode 不認得時回傳 None。"""
        if self.invoice_config_mode == InvoiceConfigMode.toggles.value:
            raw = self.invoice_toggles_json
            return TogglesInvoiceConfig(
                toggles=InvoiceToggles.from_dict(raw) if isinstance(raw, dict) else None
            )
        if self.invoice_config_mode == InvoiceConfigMode.json_schema.value:
            raw_schema = self.invoice_json_schema
            return JsonSchemaInvoiceConfig(
                json_schema=raw_schema if isinstance(raw_schema, dict) else None
            )
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "reserved_ttl_minutes": self.reserved_ttl_minutes,
            "invoice_config_mode": self.invoice_config_mode,
            "invoice_toggles_json": self.invoice_toggles_json,
            "invoice_json_schema": self.invoice_json_schema,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "updated_by": self.updated_by,
        }
