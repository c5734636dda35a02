"""
カスタム例外クラス
アプリケーション全体で使用する例外の定義
"""
from typing import Optional


class AppError(Exception):
    """アプリケーション基底例外"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "APP_ERROR"
        self.details = details or {}


class ConfigError(AppError):
    """設定エラー（起動時のみ発生し、プロセスを停止させる）"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            details={"field": field},
        )


class SignatureError(AppError):
    """
    署名検証エラー

    サブクラスに関わらず、呼び出し元には同一の403レスポンスを返す。
    どの検査で失敗したかは外部に漏らさない。
    """

    def __init__(
        self,
        message: str,
        error_code: str = "SignatureDoesNotMatch",
        details: Optional[dict] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details or {},
        )


class AuthorizationParseError(SignatureError):
    """Authorizationヘッダー（またはx-amz-date）の形式不正"""

    def __init__(self, message: str, header: str = "authorization"):
        self.header = header
        super().__init__(
            message=message,
            error_code="AuthorizationParseError",
            details={"header": header},
        )


class SignatureMismatchError(SignatureError):
    """署名不一致"""

    def __init__(self, message: str = "署名が一致しません"):
        super().__init__(message=message)


class UpstreamError(AppError):
    """上流ストレージへの接続失敗（HTTPエラーステータスは含まない）"""

    def __init__(
        self,
        message: str,
        url: str,
        timeout: bool = False,
    ):
        self.url = url
        self.timeout = timeout
        super().__init__(
            message=message,
            error_code="UPSTREAM_TIMEOUT" if timeout else "UPSTREAM_ERROR",
            details={"url": url},
        )


class NotificationError(AppError):
    """Webhook通知の失敗（呼び出し元には一切伝播しない）"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(
            message=message,
            error_code="NOTIFICATION_ERROR",
            details={"status": status},
        )
