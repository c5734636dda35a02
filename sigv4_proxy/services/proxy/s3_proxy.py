"""
S3署名検証プロキシ

- 受信リクエストのSigV4署名を設定済み認証情報で検証（失敗時は上流へ一切通信しない）
- 署名対象外ヘッダーを除去し、上流エンドポイント向けに現在時刻で再署名
- 上流レスポンスはステータス・ヘッダー・ボディを変更せずストリーミングで返却
- Webhook通知はレスポンスを待たせないバックグラウンドタスクとして送信
"""
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
import structlog
from starlette.background import BackgroundTask
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from sigv4_proxy.infrastructure.audit_log import (
    audit_proxy_request_forwarded,
    audit_proxy_upstream_failed,
    audit_signature_rejected,
    audit_signature_verified,
)
from sigv4_proxy.infrastructure.shutdown import ShutdownManager
from sigv4_proxy.schemas.notification import NotificationPayload
from sigv4_proxy.services.proxy.header_filter import filter_headers
from sigv4_proxy.services.proxy.models import InboundRequest
from sigv4_proxy.services.proxy.notifier import WebhookNotifier
from sigv4_proxy.services.proxy.sigv4 import (
    AWSCredentials,
    Signer,
    declared_payload_hash,
)
from sigv4_proxy.services.proxy.verifier import SignatureVerifier
from sigv4_proxy.utils.exceptions import (
    AuthorizationParseError,
    SignatureMismatchError,
    UpstreamError,
)
from sigv4_proxy.utils.sensitive_filter import sanitize_headers, sanitize_url

logger = structlog.get_logger(__name__)

# 上流レスポンスから除去するヘッダー（フレーミングはASGIサーバーが行う）
_RESPONSE_HOP_BY_HOP = frozenset({b"transfer-encoding", b"connection", b"keep-alive"})


@dataclass(frozen=True)
class ProxyConfig:
    """
    Proxy設定（起動時に一度だけ構築され、以後変更されない）

    リクエスト間で共有されるのはこの値と認証情報のみ。
    """

    credentials: AWSCredentials
    endpoint: str
    upstream_scheme: str = "https"
    webhook_url: str | None = None
    upstream_timeout: float = 60.0
    upstream_connect_timeout: float = 10.0
    webhook_timeout: float = 10.0
    shutdown_timeout: float = 30.0

    @property
    def notifications_enabled(self) -> bool:
        """Webhook通知が有効かどうか"""
        return bool(self.webhook_url)


def _parse_content_length(value: str | None) -> int | None:
    """Content-Lengthヘッダーを整数に変換（欠落・不正値はNone）"""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class S3SignatureProxy:
    """
    S3互換ストレージ向けリバースプロキシ

    状態遷移:
      ReceivedRequest → Verifying → {Rejected | Verified} → Forwarding → Responded
      Verified → NotifyScheduled（転送・応答とは独立に並行実行）
    """

    def __init__(
        self,
        config: ProxyConfig,
        http_client: httpx.AsyncClient | None = None,
        webhook_client: httpx.AsyncClient | None = None,
        signer: Signer | None = None,
        shutdown_manager: ShutdownManager | None = None,
    ) -> None:
        self.config = config
        self.signer = signer or Signer(config.credentials)
        self.verifier = SignatureVerifier(config.credentials, self.signer)
        self.shutdown_manager = shutdown_manager or ShutdownManager(
            shutdown_timeout=config.shutdown_timeout
        )
        self._http_client = http_client
        self._webhook_client = webhook_client
        self._notifier: WebhookNotifier | None = None

    @property
    def notifier(self) -> WebhookNotifier | None:
        """Webhook通知器（未設定・未起動の場合はNone）"""
        return self._notifier

    async def start(self) -> None:
        """
        HTTPクライアントを準備する

        外部から注入されたクライアントはそのまま使用し、クローズもしない。
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.config.upstream_timeout,
                    connect=self.config.upstream_connect_timeout,
                ),
                limits=httpx.Limits(
                    max_connections=100,
                    max_keepalive_connections=20,
                    keepalive_expiry=30.0,
                ),
            )
            self.shutdown_manager.register_cleanup(self._http_client.aclose)

        if self.config.notifications_enabled:
            if self._webhook_client is None:
                self._webhook_client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.webhook_timeout),
                )
                self.shutdown_manager.register_cleanup(self._webhook_client.aclose)
            self._notifier = WebhookNotifier(
                self.config.webhook_url,
                self._webhook_client,
                self.shutdown_manager,
            )

        logger.info(
            "Proxy起動",
            endpoint=self.config.endpoint,
            region=self.config.credentials.region,
            notifications_enabled=self.config.notifications_enabled,
        )

    async def stop(self) -> None:
        """バックグラウンド通知の完了を待機してから停止する"""
        await self.shutdown_manager.graceful_shutdown()
        self._notifier = None
        logger.info("Proxy停止", endpoint=self.config.endpoint)

    def upstream_url(self, request: InboundRequest) -> str:
        """ホストを上流エンドポイントに置き換えたURL（パス・クエリはそのまま）"""
        return (
            f"{self.config.upstream_scheme}://{self.config.endpoint}"
            f"{request.path_and_query}"
        )

    def verify(self, request: InboundRequest) -> None:
        """
        署名を検証する

        Raises:
            AuthorizationParseError: Authorizationヘッダーの形式不正
            SignatureMismatchError: 署名不一致・ヘッダー欠落・アクセスキー不一致
        """
        path = urlsplit(request.url).path
        try:
            verified = self.verifier.verify(request, request.body)
        except AuthorizationParseError as e:
            audit_signature_rejected(method=request.method, path=path, reason=e.error_code)
            raise

        if not verified:
            audit_signature_rejected(method=request.method, path=path)
            raise SignatureMismatchError()

        audit_signature_verified(method=request.method, path=path)

    def build_upstream_request(self, request: InboundRequest) -> httpx.Request:
        """
        上流向けのリクエストを構築する

        フィルタ済みヘッダーに、現在時刻で計算した署名ヘッダーを付与する。
        署名なしペイロード（aws-chunked のトレーラー付き含む）の宣言は上流にも引き継ぐ。
        """
        url = self.upstream_url(request)
        headers = filter_headers(request.headers)
        signed_headers = self.signer.sign(
            url,
            request.method,
            headers,
            body=request.body,
            payload_hash=declared_payload_hash(request.header("x-amz-content-sha256")),
        )
        logger.debug(
            "上流リクエスト構築",
            method=request.method,
            url=sanitize_url(url),
            headers=sanitize_headers(signed_headers),
        )
        return self._http_client.build_request(
            method=request.method,
            url=url,
            headers=signed_headers,
            content=request.body,
        )

    async def handle(self, request: InboundRequest) -> Response:
        """
        1リクエストを処理する

        検証失敗時は例外を送出し、上流への通信・通知は行わない。
        上流のエラーステータスは解釈せずそのまま返す。

        Raises:
            AuthorizationParseError / SignatureMismatchError: 署名検証失敗（403）
            UpstreamError: 上流への接続失敗（502 / 504）
        """
        if self._http_client is None:
            return PlainTextResponse("Proxy not initialized", status_code=503)

        self.verify(request)

        upstream_request = self.build_upstream_request(request)
        url = str(upstream_request.url)
        request_start = time.perf_counter()

        try:
            resp = await self._http_client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            audit_proxy_upstream_failed(
                method=request.method, url=url, error=str(e), error_type=type(e).__name__
            )
            raise UpstreamError("上流ストレージがタイムアウトしました", url=url, timeout=True) from e
        except httpx.HTTPError as e:
            audit_proxy_upstream_failed(
                method=request.method, url=url, error=str(e), error_type=type(e).__name__
            )
            raise UpstreamError("上流ストレージへの転送に失敗しました", url=url) from e

        duration = time.perf_counter() - request_start
        audit_proxy_request_forwarded(
            method=request.method,
            url=url,
            status=resp.status_code,
            duration_ms=int(duration * 1000),
        )

        if self._notifier is not None:
            self._notifier.schedule(self.build_notification(request, resp))

        return self._stream_response(resp)

    def build_notification(
        self, request: InboundRequest, resp: httpx.Response
    ) -> NotificationPayload:
        """Webhook通知の内容を組み立てる"""
        return NotificationPayload(
            content_length=_parse_content_length(request.header("content-length")),
            content_type=request.header("content-type"),
            method=request.method,
            signature_timestamp=request.header("x-amz-date"),
            status=resp.status_code,
            url=str(resp.url),
        )

    def _stream_response(self, resp: httpx.Response) -> StreamingResponse:
        """上流レスポンスをバッファリングせずにそのまま返す"""
        response = StreamingResponse(
            resp.aiter_raw(),
            status_code=resp.status_code,
            background=BackgroundTask(resp.aclose),
        )
        # 同名ヘッダーの複数値も保持する
        response.raw_headers = [
            (key, value)
            for key, value in resp.headers.raw
            if key.lower() not in _RESPONSE_HOP_BY_HOP
        ]
        return response
