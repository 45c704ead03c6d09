import pytest

from utils.invoice_schema import (
    InvoiceField,
    InvoiceToggles,
    JsonSchemaInvoiceConfig,
    TogglesInvoiceConfig,
    compile_pattern,
    config_to_schema,
    create_default_invoice_config,
    create_empty_toggles,
    invoice_config_to_dict,
    json_schema_to_fields,
    parse_invoice_config,
    toggles_to_schema,
    validate_invoice_input,
    validate_json_schema,
)

TAX_ONLY = {"taxId": True, "mobileCarrier": False, "citizenCert": False}


# --------- toggles ---------

def test_toggles_enabled_fields_in_table_order():
    # 輸入順序與定義表相反，輸出仍依定義表
    fields = toggles_to_schema({"citizenCert": True, "mobileCarrier": False, "taxId": True})
    assert [f.key for f in fields] == ["taxId", "citizenCert"]


def test_toggles_all_off_is_empty():
    assert toggles_to_schema(create_empty_toggles()) == []
    assert toggles_to_schema({}) == []


def test_toggles_unknown_keys_are_skipped():
    fields = toggles_to_schema({"taxId": True, "bogus": True})
    assert [f.key for f in fields] == ["taxId"]


def test_toggles_required_flag():
    assert toggles_to_schema(TAX_ONLY)[0].required is False
    assert toggles_to_schema(TAX_ONLY, all_required=True)[0].required is True


def test_toggles_dataclass_input_and_pattern():
    fields = toggles_to_schema(InvoiceToggles(tax_id=True))
    assert fields[0].pattern == "^[0-9]{8}$"
    assert fields[0].label == "統一編號"
    assert fields[0].type == "string"


# --------- JSON Schema 驗證 ---------

def test_valid_schema_returns_none():
    assert validate_json_schema({"type": "object", "properties": {"a": {"type": "string"}}}) is None


def test_non_object_type_rejected():
    err = validate_json_schema({"type": "array", "properties": {}})
    assert err.code == "invalid_type"


def test_non_mapping_schema_rejected():
    assert validate_json_schema(["not", "a", "schema"]).code == "invalid_type"


def test_missing_properties_rejected():
    assert validate_json_schema({"type": "object"}).code == "missing_properties"
    assert validate_json_schema({"type": "object", "properties": []}).code == "missing_properties"


def test_unsupported_property_type():
    err = validate_json_schema({"type": "object", "properties": {"n": {"type": "number"}}})
    assert err.code == "unsupported_type"
    assert err.path == "n"


@pytest.mark.parametrize("value", ["not an object", None, 3])
def test_invalid_property_value(value):
    err = validate_json_schema({"type": "object", "properties": {"bad": value}})
    assert err.code == "invalid_property"
    assert err.path == "bad"


def test_first_violation_wins():
    err = validate_json_schema({
        "type": "object",
        "properties": {
            "ok": {"type": "string"},
            "first": {"type": "boolean"},
            "second": "nope",
        },
    })
    assert err.path == "first"


# --------- JSON Schema -> 欄位 ---------

def test_json_schema_compiles_fields():
    fields = json_schema_to_fields({
        "type": "object",
        "properties": {
            "companyName": {"type": "string", "title": "Company Name"},
            "taxId": {"type": "string", "title": "統一編號", "pattern": "^[0-9]{8}$"},
        },
        "required": ["taxId"],
    })
    by_key = {f.key: f for f in fields}
    assert [f.key for f in fields] == ["companyName", "taxId"]
    assert by_key["taxId"].required is True
    assert by_key["taxId"].pattern == "^[0-9]{8}$"
    assert by_key["taxId"].label == "統一編號"
    assert by_key["companyName"].required is False
    assert by_key["companyName"].pattern is None


def test_json_schema_label_falls_back_to_key():
    fields = json_schema_to_fields({"type": "object", "properties": {"customField": {"type": "string"}}})
    assert fields[0].label == "customField"


def test_json_schema_invalid_returns_none():
    assert json_schema_to_fields({"type": "array"}) is None


def test_json_schema_non_list_required_ignored():
    fields = json_schema_to_fields({
        "type": "object",
        "properties": {"a": {"type": "string"}},
        "required": "a",
    })
    assert fields[0].required is False


# --------- 統一入口 ---------

def test_config_toggles_mode():
    fields = config_to_schema({"mode": "toggles", "toggles": TAX_ONLY})
    assert [f.key for f in fields] == ["taxId"]


def test_config_json_schema_mode():
    fields = config_to_schema({
        "mode": "jsonSchema",
        "jsonSchema": {"type": "object", "properties": {"customField": {"type": "string", "title": "Custom"}}},
    })
    assert [f.key for f in fields] == ["customField"]


def test_config_missing_payload_is_empty():
    assert config_to_schema({"mode": "toggles"}) == []
    assert config_to_schema({"mode": "jsonSchema"}) == []
    assert config_to_schema(TogglesInvoiceConfig()) == []
    assert config_to_schema(JsonSchemaInvoiceConfig()) == []


def test_config_unknown_mode_is_empty():
    assert config_to_schema({"mode": "xml"}) == []
    assert config_to_schema(None) == []


def test_config_broken_schema_fails_open():
    assert config_to_schema(JsonSchemaInvoiceConfig(json_schema={"type": "array"})) == []


def test_config_rejects_foreign_variant():
    with pytest.raises(TypeError):
        config_to_schema(object())


def test_parse_invoice_config_variants():
    cfg = parse_invoice_config({"mode": "toggles", "toggles": {"mobileCarrier": True}})
    assert isinstance(cfg, TogglesInvoiceConfig)
    assert cfg.toggles == InvoiceToggles(mobile_carrier=True)
    assert parse_invoice_config({"mode": "jsonSchema", "jsonSchema": "oops"}) == JsonSchemaInvoiceConfig()
    assert parse_invoice_config({"mode": "other"}) is None


def test_default_config_helpers():
    cfg = create_default_invoice_config()
    assert invoice_config_to_dict(cfg) == {
        "mode": "toggles",
        "toggles": {"taxId": False, "mobileCarrier": False, "citizenCert": False},
    }
    assert config_to_schema(cfg) == []


# --------- 輸入驗證 ---------

TAX_REQUIRED = [InvoiceField(key="taxId", label="統一編號", required=True, pattern="^[0-9]{8}$")]


def test_required_missing():
    errors = validate_invoice_input(TAX_REQUIRED, {})
    assert len(errors) == 1
    assert errors[0].key == "taxId"
    assert errors[0].code == "required"
    assert errors[0].message == "統一編號 is required"


def test_required_blank_not_pattern_checked():
    errors = validate_invoice_input(TAX_REQUIRED, {"taxId": "   "})
    assert [e.code for e in errors] == ["required"]


def test_pattern_mismatch():
    errors = validate_invoice_input(TAX_REQUIRED, {"taxId": "1234"})
    assert len(errors) == 1
    assert errors[0].code == "pattern_mismatch"


def test_valid_input():
    assert validate_invoice_input(TAX_REQUIRED, {"taxId": "12345678"}) == []


def test_optional_blank_skipped():
    fields = toggles_to_schema(TAX_ONLY)
    assert validate_invoice_input(fields, {"taxId": ""}) == []
    assert validate_invoice_input(fields, {"taxId": None}) == []


def test_errors_collected_in_field_order():
    fields = toggles_to_schema({"taxId": True, "mobileCarrier": True, "citizenCert": True}, all_required=True)
    errors = validate_invoice_input(fields, {"taxId": "abc", "citizenCert": "AB12345678901234"})
    assert [(e.key, e.code) for e in errors] == [
        ("taxId", "pattern_mismatch"),
        ("mobileCarrier", "required"),
    ]


@pytest.mark.parametrize("value,ok", [
    ("/ABC+123", True),
    ("ABC+1234", False),   # 缺少開頭斜線
    ("/AB12", False),      # 長度不足
])
def test_mobile_carrier_pattern(value, ok):
    fields = toggles_to_schema({"mobileCarrier": True})
    assert (validate_invoice_input(fields, {"mobileCarrier": value}) == []) is ok


@pytest.mark.parametrize("value,ok", [
    ("AB12345678901234", True),
    ("ab12345678901234", False),
    ("A1234567890123456", False),
])
def test_citizen_cert_pattern(value, ok):
    fields = toggles_to_schema({"citizenCert": True})
    assert (validate_invoice_input(fields, {"citizenCert": value}) == []) is ok


def test_compiled_schema_required_vs_optional():
    fields = json_schema_to_fields({
        "type": "object",
        "properties": {
            "buyer": {"type": "string"},
            "taxId": {"type": "string", "pattern": "^[0-9]{8}$"},
        },
        "required": ["buyer"],
    })
    assert [e.key for e in validate_invoice_input(fields, {"buyer": ""})] == ["buyer"]
    assert validate_invoice_input(fields, {"buyer": "SiteKit Ltd."}) == []


def test_field_pattern_is_compiled_once():
    f = InvoiceField(key="x", label="X", pattern="^a+$")
    assert f.regex is not None
    assert f.regex.pattern == r"^a+\Z"
    assert f.to_dict() == {"key": "x", "label": "X", "type": "string", "required": False, "pattern": "^a+$"}
    assert "pattern" not in InvoiceField(key="y", label="Y").to_dict()


# --------- 結尾換行不可繞過 $ ---------

@pytest.mark.parametrize("key,value", [
    ("taxId", "12345678\n"),
    ("mobileCarrier", "/ABC1234\n"),
    ("citizenCert", "AB12345678901234\n"),
])
def test_trailing_newline_does_not_satisfy_end_anchor(key, value):
    fields = toggles_to_schema({key: True})
    assert [e.code for e in validate_invoice_input(fields, {key: value})] == ["pattern_mismatch"]
    assert validate_invoice_input(fields, {key: value.rstrip("\n")}) == []


def test_trailing_newline_rejected_for_admin_schema_field():
    fields = json_schema_to_fields({
        "type": "object",
        "properties": {"code": {"type": "string", "pattern": "^[A-Z]{3}$"}},
    })
    assert [e.code for e in validate_invoice_input(fields, {"code": "ABC\n"})] == ["pattern_mismatch"]
    assert validate_invoice_input(fields, {"code": "ABC"}) == []


@pytest.mark.parametrize("pattern,compiled", [
    ("^a$", r"^a\Z"),
    (r"^\$[0-9]+$", r"^\$[0-9]+\Z"),
    ("^[$]+$", r"^[$]+\Z"),
    (r"^[\]$]$", r"^[\]$]\Z"),
    ("^(a$|b$)", r"^(a\Z|b\Z)"),
])
def test_compile_pattern_rewrites_only_end_anchors(pattern, compiled):
    assert compile_pattern(pattern).pattern == compiled
