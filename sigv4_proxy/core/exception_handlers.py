"""
例外ハンドラー
アプリケーション全体の例外処理を定義
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from sigv4_proxy.schemas.error import (
    SIGNATURE_ERROR_XML,
    XML_MEDIA_TYPE,
    ErrorCodes,
    create_error_response,
)
from sigv4_proxy.utils.exceptions import SignatureError, UpstreamError

logger = structlog.get_logger(__name__)


def _get_request_id(request: Request) -> str | None:
    """リクエストIDを取得"""
    return getattr(request.state, "request_id", None)


def signature_error_response() -> Response:
    """署名検証失敗時の固定403レスポンス"""
    return Response(
        content=SIGNATURE_ERROR_XML,
        status_code=status.HTTP_403_FORBIDDEN,
        media_type=XML_MEDIA_TYPE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """全例外ハンドラーをアプリケーションに登録"""

    @app.exception_handler(SignatureError)
    async def signature_error_handler(request: Request, exc: SignatureError):
        """
        署名エラーハンドラー

        パースエラーと署名不一致を区別せず、同一の403レスポンスを返す
        """
        logger.warning("署名検証失敗", error_code=exc.error_code)
        return signature_error_response()

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        """上流接続エラーハンドラー"""
        logger.error(
            "上流転送エラー",
            error_code=exc.error_code,
            error=str(exc.__cause__ or exc),
        )
        if exc.timeout:
            return PlainTextResponse(
                "Gateway Timeout", status_code=status.HTTP_504_GATEWAY_TIMEOUT
            )
        return PlainTextResponse("Bad Gateway", status_code=status.HTTP_502_BAD_GATEWAY)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """一般エラーハンドラー"""
        logger.error(
            "内部エラー",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(
                code=ErrorCodes.INTERNAL_ERROR,
                message="内部サーバーエラーが発生しました",
                request_id=_get_request_id(request),
            ),
        )
