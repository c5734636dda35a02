"""
リクエストトレーシングミドルウェア

リクエストIDをstructlogコンテキストにバインドし、受信・応答をログ出力する

純粋なASGIミドルウェアとして実装し、ストリーミングレスポンスとの互換性を確保
上流レスポンスを変更しないため、レスポンスヘッダーは追加しない
"""
import time
import uuid

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)


class TracingMiddleware:
    """
    リクエストトレーシングミドルウェア（純粋なASGI実装）

    各リクエストに一意のIDを付与し、ログで追跡可能にする
    """

    def __init__(self, app: ASGIApp, log_requests: bool = True):
        self.app = app
        self.log_requests = log_requests

    def _get_headers_dict(self, scope: Scope) -> dict[str, str]:
        """scopeからヘッダー辞書を取得"""
        return dict(
            (k.decode("latin-1").lower(), v.decode("latin-1"))
            for k, v in scope.get("headers", [])
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = self._get_headers_dict(scope)
        path = scope.get("path", "")

        # リクエストIDを取得または生成
        request_id = headers.get("x-request-id") or str(uuid.uuid4())

        # 処理開始時刻
        start_time = time.perf_counter()

        # structlogコンテキストにバインド
        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            method=scope.get("method", ""),
            path=path,
        )

        # request.stateにrequest_idを保存するためscopeに追加
        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["request_id"] = request_id

        if self.log_requests:
            client = scope.get("client")
            client_ip = headers.get("x-real-ip") or (client[0] if client else "unknown")
            logger.info(
                "リクエスト受信",
                client_ip=client_ip,
                user_agent=headers.get("user-agent", "unknown"),
            )

        async def send_with_tracing(message: Message) -> None:
            if message["type"] == "http.response.start" and self.log_requests:
                process_time = time.perf_counter() - start_time
                logger.info(
                    "レスポンス送信",
                    status_code=message.get("status"),
                    process_time_ms=round(process_time * 1000, 2),
                )
            await send(message)

        try:
            await self.app(scope, receive, send_with_tracing)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.error(
                "リクエスト処理エラー",
                error=str(e),
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2),
                exc_info=True,
            )
            raise
        finally:
            clear_contextvars()
