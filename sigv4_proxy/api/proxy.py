"""
プロキシエンドポイント

全メソッド・全パスのリクエストを受け付け、S3SignatureProxyへ委譲する
"""
from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from sigv4_proxy.services.proxy import InboundRequest, S3SignatureProxy

router = APIRouter()

PROXY_METHODS = ["GET", "HEAD", "PUT", "POST", "DELETE", "OPTIONS", "PATCH"]


def get_proxy(request: Request) -> S3SignatureProxy:
    """アプリケーションに登録されたプロキシを取得"""
    return request.app.state.proxy


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_request(
    request: Request,
    proxy: S3SignatureProxy = Depends(get_proxy),
) -> Response:
    """
    S3互換リクエストをプロキシする

    ボディはここで一度だけ読み込み、検証と転送の両方で同じバイト列を使用する。
    """
    inbound = await InboundRequest.from_request(request)
    return await proxy.handle(inbound)
