"""
Pydanticスキーマ
エラーレスポンスとWebhook通知のシリアライズ
"""
from sigv4_proxy.schemas.error import (
    SIGNATURE_ERROR_XML,
    ErrorCodes,
    create_error_response,
)
from sigv4_proxy.schemas.notification import NotificationPayload

__all__ = [
    "SIGNATURE_ERROR_XML",
    "ErrorCodes",
    "create_error_response",
    "NotificationPayload",
]
