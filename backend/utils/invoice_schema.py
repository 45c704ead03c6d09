"""
Module: backend/utils/invoice_schema.py
發票欄位 schema（純函式，不做 IO / 不寫 log）

- toggles（簡易模式） -> 欄位清單
- jsonSchema（進階模式，限安全子集） -> 欄位清單
- validate_invoice_input：依欄位清單驗證使用者輸入
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, Optional, Union


class InvoiceConfigMode(str, enum.Enum):
    toggles = "toggles"
    json_schema = "jsonSchema"


# wire key -> attribute name
_TOGGLE_ATTRS = {
    "taxId": "tax_id",
    "mobileCarrier": "mobile_carrier",
    "citizenCert": "citizen_cert",
}


@dataclass
class InvoiceToggles:
    tax_id: bool = False          # 統一編號
    mobile_carrier: bool = False  # 手機載具
    citizen_cert: bool = False    # 自然人憑證

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "InvoiceToggles":
        raw = raw or {}
        return cls(**{attr: bool(raw.get(key, False)) for key, attr in _TOGGLE_ATTRS.items()})

    def to_dict(self) -> dict[str, bool]:
        return {key: bool(getattr(self, attr)) for key, attr in _TOGGLE_ATTRS.items()}


def compile_pattern(pattern: str) -> re.Pattern:
    """
    編譯欄位 pattern。
    字元類別外未跳脫的 `$` 改寫成 `\\Z`：只比對字串結尾，不接受結尾的換行。
    """
    out: list[str] = []
    escaped = False
    in_class = False
    for ch in pattern:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif in_class:
            in_class = ch != "]"
        elif ch == "[":
            in_class = True
        elif ch == "$":
            out.append(r"\Z")
            continue
        out.append(ch)
    return re.compile("".join(out))


@dataclass(frozen=True)
class InvoiceField:
    """結帳表單用的單一發票欄位；pattern 於建立時編譯一次並快取。"""
    key: str
    label: str
    required: bool = False
    pattern: Optional[str] = None
    type: str = "string"
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.pattern:
            object.__setattr__(self, "_regex", compile_pattern(self.pattern))

    @property
    def regex(self) -> Optional[re.Pattern]:
        return self._regex

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "type": self.type,
            "required": self.required,
        }
        if self.pattern is not None:
            out["pattern"] = self.pattern
        return out


@dataclass(frozen=True)
class TogglesInvoiceConfig:
    toggles: Optional[InvoiceToggles] = None
    mode = InvoiceConfigMode.toggles


@dataclass(frozen=True)
class JsonSchemaInvoiceConfig:
    json_schema: Optional[dict[str, Any]] = None
    mode = InvoiceConfigMode.json_schema


InvoiceConfig = Union[TogglesInvoiceConfig, JsonSchemaInvoiceConfig]


@dataclass(frozen=True)
class SchemaValidationError:
    """管理員設定的 JSON Schema 本身不合法（非使用者輸入錯誤）"""
    code: str  # invalid_type | missing_properties | invalid_property | unsupported_type
    message: str
    path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out = {"code": self.code, "message": self.message}
        if self.path is not None:
            out["path"] = self.path
        return out


@dataclass(frozen=True)
class FieldValidationError:
    key: str
    code: str  # required | pattern_mismatch
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "code": self.code, "message": self.message}


# 預設發票欄位定義（對應 toggles），順序即輸出順序
INVOICE_FIELD_DEFINITIONS: dict[str, dict[str, str]] = {
    "taxId": {
        "label": "統一編號",
        "pattern": r"^[0-9]{8}$",
    },
    "mobileCarrier": {
        "label": "手機載具",
        "pattern": r"^/[A-Z0-9.+-]{7}$",
    },
    "citizenCert": {
        "label": "自然人憑證",
        "pattern": r"^[A-Z]{2}[0-9]{14}$",
    },
}


def toggles_to_schema(
    toggles: InvoiceToggles | Mapping[str, Any],
    all_required: bool = False,
) -> list[InvoiceField]:
    """依 toggles 產生欄位清單；未啟用或未知的 key 直接略過。"""
    if isinstance(toggles, InvoiceToggles):
        enabled = toggles.to_dict()
    else:
        enabled = {k: bool(v) for k, v in (toggles or {}).items()}

    fields: list[InvoiceField] = []
    for key, definition in INVOICE_FIELD_DEFINITIONS.items():
        if not enabled.get(key):
            continue
        fields.append(InvoiceField(
            key=key,
            label=definition["label"],
            required=all_required,
            pattern=definition["pattern"],
        ))
    return fields


def validate_json_schema(schema: Any) -> SchemaValidationError | None:
    """
    檢查 JSON Schema 是否屬於安全子集：
    - type 必須是 "object"
    - properties 必須存在且為 object
    - 每個 property 必須是 object，且 type 為 "string"
    遇到第一個錯誤即回傳。
    """
    if not isinstance(schema, Mapping) or schema.get("type") != "object":
        return SchemaValidationError(
            code="invalid_type",
            message='Schema type must be "object"',
        )

    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return SchemaValidationError(
            code="missing_properties",
            message='Schema must have "properties" object',
        )

    for key, prop in properties.items():
        if not isinstance(prop, Mapping):
            return SchemaValidationError(
                code="invalid_property",
                message=f'Property "{key}" must be an object',
                path=key,
            )
        if prop.get("type") != "string":
            return SchemaValidationError(
                code="unsupported_type",
                message=f'Property "{key}" type must be "string" (got "{prop.get("type")}")',
                path=key,
            )

    return None


def json_schema_to_fields(schema: Any) -> list[InvoiceField] | None:
    """
    JSON Schema -> 欄位清單；schema 不合法時回傳 None。
    pattern 原樣複製，若不是合法的 regex 會在建立欄位時丟出 re.error。
    """
    if validate_json_schema(schema) is not None:
        return None

    raw_required = schema.get("required")
    required = (
        {k for k in raw_required if isinstance(k, str)}
        if isinstance(raw_required, list) else set()
    )

    fields: list[InvoiceField] = []
    for key, prop in schema["properties"].items():
        title = prop.get("title")
        pattern = prop.get("pattern")
        fields.append(InvoiceField(
            key=key,
            label=title if isinstance(title, str) and title else key,
            required=key in required,
            pattern=pattern if isinstance(pattern, str) else None,
        ))
    return fields


def parse_invoice_config(raw: Mapping[str, Any] | None) -> InvoiceConfig | None:
    """把未型別化的 {mode, toggles?, jsonSchema?} 轉成設定變體；未知 mode 回傳 None。"""
    if not isinstance(raw, Mapping):
        return None
    mode = raw.get("mode")
    if mode == InvoiceConfigMode.toggles.value:
        toggles = raw.get("toggles")
        return TogglesInvoiceConfig(
            toggles=InvoiceToggles.from_dict(toggles) if isinstance(toggles, Mapping) else None
        )
    if mode == InvoiceConfigMode.json_schema.value:
        json_schema = raw.get("jsonSchema")
        return JsonSchemaInvoiceConfig(
            json_schema=dict(json_schema) if isinstance(json_schema, Mapping) else None
        )
    return None


def config_to_schema(
    config: InvoiceConfig | Mapping[str, Any] | None,
    all_required: bool = False,
) -> list[InvoiceField]:
    """
    統一入口：依設定模式產生欄位清單。
    jsonSchema 編譯失敗時回傳空清單（fail-open），設定應已在儲存時驗證過。
    """
    if config is None:
        return []
    if isinstance(config, Mapping):
        return config_to_schema(parse_invoice_config(config), all_required)

    if isinstance(config, TogglesInvoiceConfig):
        if config.toggles is None:
            return []
        return toggles_to_schema(config.toggles, all_required)

    if isinstance(config, JsonSchemaInvoiceConfig):
        if config.json_schema is None:
            return []
        return json_schema_to_fields(config.json_schema) or []

    raise TypeError(f"unsupported invoice config: {type(config).__name__}")


def validate_invoice_input(
    fields: list[InvoiceField],
    data: Mapping[str, Optional[str]],
) -> list[FieldValidationError]:
    """依欄位清單驗證輸入，收集所有錯誤（依欄位順序）。"""
    errors: list[FieldValidationError] = []

    for f in fields:
        value = data.get(f.key)
        is_blank = value is None or value.strip() == ""

        if f.required and is_blank:
            errors.append(FieldValidationError(
                key=f.key,
                code="required",
                message=f"{f.label} is required",
            ))
            continue

        # 非必填且空值：不檢查
        if is_blank:
            continue

        if f.regex is not None and not f.regex.search(value):
            errors.append(FieldValidationError(
                key=f.key,
                code="pattern_mismatch",
                message=f"{f.label} format is invalid",
            ))

    return errors


def create_empty_toggles() -> InvoiceToggles:
    return InvoiceToggles()


def create_default_invoice_config() -> TogglesInvoiceConfig:
    """預設設定：toggles 模式、全部關閉"""
    return TogglesInvoiceConfig(toggles=create_empty_toggles())


def invoice_config_to_dict(config: InvoiceConfig) -> dict[str, Any]:
    if isinstance(config, TogglesInvoiceConfig):
        out: dict[str, Any] = {"mode": config.mode.value}
        if config.toggles is not None:
            out["toggles"] = config.toggles.to_dict()
        return out
    if isinstance(config, JsonSchemaInvoiceConfig):
        out = {"mode": config.mode.value}
        if config.json_schema is not None:
            out["jsonSchema"] = config.json_schema
        return out
    raise TypeError(f"unsupported invoice config: {type(config).__name__}")
