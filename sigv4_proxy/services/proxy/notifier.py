"""
Webhook通知
プロキシしたリクエストの概要を、レスポンスを待たせずにWebhookへPOSTする
"""
import asyncio
from typing import Optional

import httpx
import structlog

from sigv4_proxy.infrastructure.audit_log import (
    audit_webhook_notification_failed,
    audit_webhook_notification_sent,
)
from sigv4_proxy.infrastructure.shutdown import ShutdownManager
from sigv4_proxy.schemas.notification import NotificationPayload
from sigv4_proxy.utils.exceptions import NotificationError

logger = structlog.get_logger(__name__)


class WebhookNotifier:
    """
    Webhook通知器

    送信結果はリクエスト処理に一切影響しない。失敗時もリトライしない。
    """

    def __init__(
        self,
        webhook_url: str,
        http_client: httpx.AsyncClient,
        shutdown_manager: ShutdownManager,
    ) -> None:
        self.webhook_url = webhook_url
        self._http_client = http_client
        self._shutdown_manager = shutdown_manager

    async def notify(self, payload: NotificationPayload) -> None:
        """
        通知を送信する

        Raises:
            NotificationError: 接続失敗、または2xx以外の応答
        """
        try:
            resp = await self._http_client.post(
                self.webhook_url,
                json=payload.to_json_dict(),
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"Webhook送信失敗: {type(e).__name__}") from e

        if resp.is_error:
            raise NotificationError(
                f"Webhookがエラーを返しました: {resp.status_code}",
                status=resp.status_code,
            )

    async def _notify_quietly(self, payload: NotificationPayload) -> None:
        """通知を送信し、失敗はログ出力のみで握りつぶす"""
        try:
            await self.notify(payload)
            audit_webhook_notification_sent(method=payload.method, status=payload.status)
        except NotificationError as e:
            logger.warning("Webhook通知失敗", error=e.message, status=e.status)
            audit_webhook_notification_failed(
                method=payload.method,
                error=e.message,
                error_type=type(e.__cause__ or e).__name__,
            )

    def schedule(self, payload: NotificationPayload) -> Optional[asyncio.Task]:
        """
        通知を切り離したバックグラウンドタスクとして起動する

        タスクはShutdownManagerで追跡され、プロセス終了前に完了が待機される。
        シャットダウン開始後は送信せずNoneを返す。
        """
        if self._shutdown_manager.is_shutting_down:
            logger.warning("シャットダウン中のためWebhook通知をスキップ", method=payload.method)
            return None

        return self._shutdown_manager.spawn(
            self._notify_quietly(payload),
            name="webhook-notification",
        )
