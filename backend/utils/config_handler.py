"""
Module: backend/utils/config_handler.py
Unified comment style: module docstring + minimal inline notes.
"""
import json, os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _data_dir() -> Path:
    configured = os.getenv("CONFIG_DIR") or os.getenv("DATA_DIR") or os.getenv("SITEKIT_DATA_DIR")
    if configured:
        data_dir = Path(configured)
    else:
        data_dir = Path(__file__).parent.parent / "data"
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        import tempfile
        data_dir = Path(tempfile.gettempdir()) / "sitekit_data"
        data_dir.mkdir(exist_ok=True)
        logger.warning("Using temporary directory for config: %s", data_dir)
    return data_dir


def config_path() -> Path:
    return _data_dir() / "config.json"


def default_config() -> Dict[str, Any]:
    return {
        "mode": os.getenv("APP_MODE", "normal"),
        "shop_reserved_ttl_minutes": int(os.getenv("SHOP_RESERVED_TTL_MINUTES", "30")),
        # toggles 模式下啟用的欄位是否一律必填
        "invoice_toggles_all_required": False,
    }


def _read_file(path: Path) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("config.json unreadable, falling back to defaults: %s", e)
        return None
    return data if isinstance(data, dict) else None


def read_config() -> Dict[str, Any]:
    """唯讀：合併預設值後回傳，不會建立或改寫 config.json（請求路徑用）"""
    path = config_path()
    data = _read_file(path) if path.exists() else None
    return {**default_config(), **(data or {})}


def load_config() -> Dict[str, Any]:
    path = config_path()
    defaults = default_config()
    if not path.exists():
        save_config(defaults)
        return defaults
    data = _read_file(path)
    if data is None:
        data = dict(defaults)
    changed = False
    for k, v in defaults.items():
        if k not in data:
            data[k] = v
            changed = True
    if changed:
        save_config(data)
    return data


def save_config(data: Dict[str, Any]) -> None:
    config_path().write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
