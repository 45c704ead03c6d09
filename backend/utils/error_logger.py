#!/usr/bin/env python3
"""
錯誤日誌記錄
提供帶上下文的錯誤紀錄（API 例外、損壞的商城設定）
"""
import logging
import traceback
import sys
import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional

# 配置日誌格式
DETAILED_LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s:%(lineno)d | %(funcName)s() | %(message)s'


class ErrorLogger:
    """帶上下文的錯誤日誌記錄器"""

    def __init__(self, name: str = __name__):
        self.logger = logging.getLogger(name)
        self.setup_logging()

    def setup_logging(self):
        """設置日誌配置"""
        # 如果還沒有設置處理器，才添加
        if self.logger.handlers:
            return

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(DETAILED_LOG_FORMAT))
        self.logger.addHandler(console_handler)

        log_dir = os.getenv("LOG_DIR")
        if log_dir:
            try:
                os.makedirs(log_dir, exist_ok=True)
                file_handler = logging.FileHandler(
                    os.path.join(log_dir, 'shop_errors.log'),
                    encoding='utf-8'
                )
                file_handler.setLevel(logging.WARNING)
                file_handler.setFormatter(logging.Formatter(DETAILED_LOG_FORMAT))
                self.logger.addHandler(file_handler)
            except OSError as e:
                self.logger.warning(f"無法建立日誌檔案: {e}")

        self.logger.setLevel(logging.INFO)

    def log_api_error(self,
                      endpoint: str,
                      method: str,
                      error: Exception,
                      request_data: Optional[Dict[str, Any]] = None,
                      user_id: Optional[int] = None) -> Dict[str, Any]:
        """記錄 API 錯誤"""

        error_info = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'endpoint': endpoint,
            'method': method,
            'user_id': user_id,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc(),
            'request_data': request_data or {}
        }

        self.logger.error(
            f"API 錯誤 [{method}] {endpoint} {type(error).__name__}: {error}",
            extra={'error_details': error_info}
        )

        return error_info

    def log_config_error(self,
                         setting: str,
                         reason: str,
                         context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        記錄已存的設定在執行期無法解讀（例如結帳時 JSON Schema 損壞）。
        呼叫端會 fail-open，這裡只負責讓維運看得到。
        """
        error_info = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'setting': setting,
            'reason': reason,
            'context': context or {}
        }

        self.logger.warning(
            f"設定損壞 [{setting}] {reason}",
            extra={'error_details': error_info}
        )

        return error_info


# 全域錯誤記錄器實例
shop_error_logger = ErrorLogger('sitekit.shop')


def log_api_error(endpoint: str, method: str, error: Exception, request_data: Dict = None, user_id: int = None):
    """便捷函數：記錄 API 錯誤"""
    return shop_error_logger.log_api_error(endpoint, method, error, request_data, user_id)


def log_config_error(setting: str, reason: str, context: Dict = None):
    """便捷函數：記錄設定損壞"""
    return shop_error_logger.log_config_error(setting, reason, context)
