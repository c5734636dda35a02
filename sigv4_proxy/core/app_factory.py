"""
アプリケーションファクトリ
FastAPIアプリケーションの作成と設定
"""
import logging
import sys

import structlog
from fastapi import FastAPI

from sigv4_proxy import __version__
from sigv4_proxy.api import proxy_router
from sigv4_proxy.config import Settings, build_proxy_config, get_settings
from sigv4_proxy.core.exception_handlers import register_exception_handlers
from sigv4_proxy.core.lifespan import lifespan
from sigv4_proxy.middleware.tracing import TracingMiddleware
from sigv4_proxy.services.proxy import ProxyConfig, S3SignatureProxy
from sigv4_proxy.utils.sensitive_filter import redact_sensitive_processor


def _configure_logging(settings: Settings) -> None:
    """ログ設定の初期化"""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.log_level_int,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_sensitive_processor,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_app(
    config: ProxyConfig | None = None,
    proxy: S3SignatureProxy | None = None,
) -> FastAPI:
    """
    FastAPIアプリケーションを作成・設定

    Args:
        config: プロキシ設定（Noneの場合は環境変数から構築）
        proxy: 構築済みのプロキシ（テスト等で依存を差し替える場合）

    Returns:
        設定済みのFastAPIアプリケーション

    Raises:
        ConfigError: 必須設定の欠落・不正
    """
    settings = get_settings()

    # ログ設定
    _configure_logging(settings)

    if proxy is None:
        proxy = S3SignatureProxy(config or build_proxy_config(settings))

    # 全パスをプロキシするため、ドキュメント系エンドポイントは無効化する
    app = FastAPI(
        title="S3 Signature Proxy",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.proxy = proxy

    # リクエストトレーシング
    app.add_middleware(TracingMiddleware, log_requests=True)

    # 例外ハンドラー登録
    register_exception_handlers(app)

    # ルーター登録
    app.include_router(proxy_router)

    return app
