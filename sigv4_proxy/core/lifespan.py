"""
アプリケーションライフサイクル管理
起動時・終了時の処理を定義
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from sigv4_proxy import __version__

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    アプリケーションのライフサイクル管理

    終了時はバックグラウンド通知の完了を待ってからHTTPクライアントを閉じる。
    """
    proxy = app.state.proxy

    logger.info("アプリケーション起動", version=__version__)
    await proxy.start()

    try:
        yield
    finally:
        logger.info("アプリケーション終了処理開始")
        await proxy.stop()
        logger.info("アプリケーション終了")
