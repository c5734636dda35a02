"""
セキュリティ監査ログ

署名検証結果と上流転送・Webhook通知の結果を構造化イベントとして出力する。
全イベントに service を含める。URLは sanitize_url を通して出力する。

ログフォーマット例:
  {"timestamp":"2026-02-07T10:30:00Z","level":"info","service":"s3-signature-proxy",
   "event":"proxy_request_forwarded","method":"PUT",
   "url":"https://s3.us-west-002.backblazeb2.com/bucket/key","status":200,"duration_ms":120}
"""
import structlog

from sigv4_proxy.utils.sensitive_filter import sanitize_url

audit_logger = structlog.get_logger("audit")

SERVICE_PROXY = "s3-signature-proxy"
SERVICE_NOTIFIER = "s3-signature-proxy-webhook"


def audit_signature_verified(*, method: str, path: str) -> None:
    audit_logger.info(
        "signature_verified",
        service=SERVICE_PROXY,
        method=method,
        path=path,
    )


def audit_signature_rejected(
    *,
    method: str,
    path: str,
    reason: str = "SignatureDoesNotMatch",
) -> None:
    audit_logger.warning(
        "signature_rejected",
        service=SERVICE_PROXY,
        method=method,
        path=path,
        reason=reason,
    )


def audit_proxy_request_forwarded(
    *,
    method: str,
    url: str,
    status: int = 0,
    duration_ms: int = 0,
) -> None:
    audit_logger.info(
        "proxy_request_forwarded",
        service=SERVICE_PROXY,
        method=method,
        url=sanitize_url(url),
        status=status,
        duration_ms=duration_ms,
    )


def audit_proxy_upstream_failed(
    *,
    method: str,
    url: str,
    error: str = "",
    error_type: str = "",
) -> None:
    audit_logger.error(
        "proxy_upstream_failed",
        service=SERVICE_PROXY,
        method=method,
        url=sanitize_url(url),
        error=error,
        error_type=error_type,
    )


def audit_webhook_notification_sent(*, method: str, status: int = 0) -> None:
    audit_logger.info(
        "webhook_notification_sent",
        service=SERVICE_NOTIFIER,
        method=method,
        status=status,
    )


def audit_webhook_notification_failed(
    *,
    method: str,
    error: str = "",
    error_type: str = "",
) -> None:
    audit_logger.warning(
        "webhook_notification_failed",
        service=SERVICE_NOTIFIER,
        method=method,
        error=error,
        error_type=error_type,
    )
