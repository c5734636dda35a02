"""
テスト用共通設定
上流ストレージとWebhookは httpx.MockTransport で置き換える
"""
import asyncio
from typing import AsyncGenerator, Callable
from urllib.parse import urlsplit

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import Headers

from sigv4_proxy.core.app_factory import create_app
from sigv4_proxy.services.proxy import (
    AWSCredentials,
    InboundRequest,
    ProxyConfig,
    S3SignatureProxy,
    Signer,
)

ACCESS_KEY_ID = "0025f4a1b2c3d4e0000000001"
SECRET_ACCESS_KEY = "K002sEcReTkEyFoRtEsTiNgOnLy0000"
REGION = "us-west-002"
ENDPOINT = f"s3.{REGION}.backblazeb2.com"
PROXY_BASE_URL = "http://proxy.example.com"
WEBHOOK_URL = "https://hooks.example.com/b2-events"


class UnreadStream(httpx.AsyncByteStream):
    """実際のトランスポートと同じく、未読のままレスポンスを返すボディ"""

    def __init__(self, content: bytes) -> None:
        self._content = content

    async def __aiter__(self):
        if self._content:
            yield self._content


class UpstreamRecorder:
    """上流ストレージのモック（受信したリクエストを記録する）"""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            headers={"content-length": str(len(self.content)), **self.headers},
            stream=UnreadStream(self.content),
        )

    @property
    def call_count(self) -> int:
        return len(self.requests)


class WebhookRecorder:
    """Webhookのモック（release が set されるまで応答を保留できる）"""

    def __init__(self, status_code: int = 204, block: bool = False) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await self.release.wait()
        return httpx.Response(self.status_code)


# =============================================================================
# 認証情報・設定
# =============================================================================


@pytest.fixture
def credentials() -> AWSCredentials:
    """プロキシに設定する認証情報"""
    return AWSCredentials(
        access_key_id=ACCESS_KEY_ID,
        secret_access_key=SECRET_ACCESS_KEY,
        region=REGION,
    )


@pytest.fixture
def proxy_config(credentials: AWSCredentials) -> ProxyConfig:
    """Webhookなしのプロキシ設定"""
    return ProxyConfig(
        credentials=credentials,
        endpoint=ENDPOINT,
        shutdown_timeout=2.0,
    )


@pytest.fixture
def webhook_proxy_config(credentials: AWSCredentials) -> ProxyConfig:
    """Webhookありのプロキシ設定"""
    return ProxyConfig(
        credentials=credentials,
        endpoint=ENDPOINT,
        webhook_url=WEBHOOK_URL,
        shutdown_timeout=2.0,
    )


# =============================================================================
# クライアント側の署名・受信リクエスト生成
# =============================================================================


@pytest.fixture
def client_signer(credentials: AWSCredentials) -> Signer:
    """AWS SDKと同じ認証情報で署名するクライアント側の署名器"""
    return Signer(credentials)


@pytest.fixture
def sign_request(client_signer: Signer) -> Callable[..., list[tuple[str, str]]]:
    """クライアントが送信する署名済みヘッダーを生成する"""

    def _sign(
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
        timestamp: str | None = None,
        payload_hash: str | None = None,
    ) -> list[tuple[str, str]]:
        return client_signer.sign(
            url,
            method,
            headers or {},
            body=body,
            timestamp=timestamp,
            payload_hash=payload_hash,
        )

    return _sign


@pytest.fixture
def make_inbound() -> Callable[..., InboundRequest]:
    """ASGIサーバーが受け取る形の受信リクエストを生成する（Hostヘッダー付き）"""

    def _make(
        method: str,
        url: str,
        headers: list[tuple[str, str]],
        body: bytes = b"",
    ) -> InboundRequest:
        pairs = [("host", urlsplit(url).netloc), *headers]
        raw = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in pairs
        ]
        return InboundRequest(method=method, url=url, headers=Headers(raw=raw), body=body)

    return _make


# =============================================================================
# プロキシ・アプリケーション
# =============================================================================


@pytest.fixture
def upstream() -> UpstreamRecorder:
    """上流ストレージのモック"""
    return UpstreamRecorder(
        status_code=200,
        content=b"hello from b2",
        headers={"content-type": "text/plain", "etag": '"abc123"'},
    )


@pytest.fixture
def webhook() -> WebhookRecorder:
    """Webhookのモック"""
    return WebhookRecorder()


@pytest_asyncio.fixture
async def proxy(
    proxy_config: ProxyConfig, upstream: UpstreamRecorder
) -> AsyncGenerator[S3SignatureProxy, None]:
    """Webhookなしの起動済みプロキシ"""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http_client:
        proxy = S3SignatureProxy(proxy_config, http_client=http_client)
        await proxy.start()
        yield proxy
        await proxy.stop()


@pytest_asyncio.fixture
async def webhook_proxy(
    webhook_proxy_config: ProxyConfig,
    upstream: UpstreamRecorder,
    webhook: WebhookRecorder,
) -> AsyncGenerator[S3SignatureProxy, None]:
    """Webhookありの起動済みプロキシ"""
    async with (
        httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http_client,
        httpx.AsyncClient(transport=httpx.MockTransport(webhook)) as webhook_client,
    ):
        proxy = S3SignatureProxy(
            webhook_proxy_config,
            http_client=http_client,
            webhook_client=webhook_client,
        )
        await proxy.start()
        yield proxy
        webhook.release.set()
        await proxy.stop()


@pytest_asyncio.fixture
async def client(proxy: S3SignatureProxy) -> AsyncGenerator[AsyncClient, None]:
    """テスト用HTTPクライアント（Webhookなし）"""
    app = create_app(proxy=proxy)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=PROXY_BASE_URL) as ac:
        yield ac


@pytest_asyncio.fixture
async def webhook_client(
    webhook_proxy: S3SignatureProxy,
) -> AsyncGenerator[AsyncClient, None]:
    """テスト用HTTPクライアント（Webhookあり）"""
    app = create_app(proxy=webhook_proxy)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=PROXY_BASE_URL) as ac:
        yield ac
