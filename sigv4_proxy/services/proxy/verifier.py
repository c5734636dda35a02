"""
SigV4署名検証
受信リクエストのAuthorizationヘッダーが、設定済み認証情報による正しい署名かを判定する
"""
import hmac

import structlog

from sigv4_proxy.services.proxy.authorization import (
    parse_authorization,
    validate_amz_date,
)
from sigv4_proxy.services.proxy.models import InboundRequest
from sigv4_proxy.services.proxy.sigv4 import (
    AWSCredentials,
    Signer,
    declared_payload_hash,
)

logger = structlog.get_logger(__name__)


class SignatureVerifier:
    """
    署名検証器

    呼び出し元が宣言した x-amz-date の時刻で署名を再計算し、提示された署名と比較する。
    鮮度（時刻のずれ）は検査しない。
    """

    def __init__(self, credentials: AWSCredentials, signer: Signer | None = None) -> None:
        self.credentials = credentials
        self.signer = signer or Signer(credentials)

    def verify(self, request: InboundRequest, body: bytes) -> bool:
        """
        署名を検証する

        Args:
            request: 受信リクエスト
            body: 取り込み済みのリクエストボディ

        Returns:
            署名が一致すればTrue

        Raises:
            AuthorizationParseError: Authorization / x-amz-date の形式不正
        """
        authorization = request.header("authorization")
        if not authorization:
            logger.info("Authorizationヘッダーなし", method=request.method)
            return False

        parsed = parse_authorization(authorization)

        # 暗号計算の前にアクセスキーで早期拒否
        if parsed.access_key_id != self.credentials.access_key_id:
            logger.info("アクセスキー不一致", method=request.method)
            return False

        timestamp = validate_amz_date(request.header("x-amz-date"))

        # SignedHeadersの宣言順に現在の値を取り出す（欠落は空値として扱う）
        headers_to_sign: list[tuple[str, str]] = []
        for name in parsed.signed_headers:
            values = request.headers.getlist(name)
            if values:
                headers_to_sign.extend((name, value) for value in values)
            else:
                headers_to_sign.append((name, ""))

        # 署名なしペイロードの宣言以外はボディから再計算し、改ざんを検出する
        payload_hash = declared_payload_hash(request.header("x-amz-content-sha256"))

        computed = self.signer.compute_signature(
            request.url,
            request.method,
            headers_to_sign,
            body=body,
            timestamp=timestamp,
            payload_hash=payload_hash,
        )

        return hmac.compare_digest(computed, parsed.signature)
