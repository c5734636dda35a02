"""
AWS SigV4 署名ユーティリティ
S3互換ストレージ向けの署名生成と、受信リクエストの署名値の再計算を行う
"""
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import botocore.auth
import botocore.credentials
from botocore.awsrequest import AWSRequest

from sigv4_proxy.services.proxy.header_filter import iter_header_pairs

# x-amz-date と同じ形式（例: 20130524T000000Z）
SIGV4_TIMESTAMP = botocore.auth.SIGV4_TIMESTAMP
UNSIGNED_PAYLOAD = botocore.auth.UNSIGNED_PAYLOAD
STREAMING_UNSIGNED_PAYLOAD_TRAILER = "STREAMING-UNSIGNED-PAYLOAD-TRAILER"

# 呼び出し元の宣言値をそのままペイロードハッシュとして署名できる値
# チャンク毎に署名する STREAMING-AWS4-HMAC-SHA256-PAYLOAD* は再署名できないため含めない
DECLARABLE_PAYLOAD_HASHES = frozenset({UNSIGNED_PAYLOAD, STREAMING_UNSIGNED_PAYLOAD_TRAILER})

_SIGNATURE_RE = re.compile(r"Signature=([0-9a-fA-F]+)")

HeaderPairs = Iterable[tuple[str, str]]


@dataclass(frozen=True)
class AWSCredentials:
    """AWS認証情報（プロセス全体で共有、変更不可）"""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    region: str
    service: str = "s3"


def declared_payload_hash(value: str | None) -> str | None:
    """
    x-amz-content-sha256 の宣言値のうち、署名にそのまま使う値を返す

    UNSIGNED-PAYLOAD / STREAMING-UNSIGNED-PAYLOAD-TRAILER 以外はNone
    （ボディから再計算する）
    """
    if value is not None and value.strip() in DECLARABLE_PAYLOAD_HASHES:
        return value.strip()
    return None


class _S3SigV4Auth(botocore.auth.S3SigV4Auth):
    """
    タイムスタンプとペイロードハッシュを外部から指定できるS3 SigV4署名

    botocoreのadd_authは常に現在時刻で署名するため、
    timestampが指定された場合はその時刻で正規リクエストを組み立てる。
    """

    def __init__(
        self,
        credentials: botocore.credentials.Credentials,
        service_name: str,
        region_name: str,
        timestamp: str | None = None,
        payload_hash: str | None = None,
    ) -> None:
        super().__init__(credentials, service_name, region_name)
        self._timestamp = timestamp
        self._payload_hash = payload_hash

    def add_auth(self, request: AWSRequest) -> None:
        if self._timestamp is None:
            super().add_auth(request)
            return

        request.context["timestamp"] = self._timestamp
        self._modify_request_before_signing(request)
        canonical_request = self.canonical_request(request)
        string_to_sign = self.string_to_sign(request, canonical_request)
        signature = self.signature(string_to_sign, request)
        self._inject_signature_to_request(request, signature)

    def payload(self, request: AWSRequest) -> str:
        if self._payload_hash is not None:
            return self._payload_hash
        return super().payload(request)


class Signer:
    """
    SigV4署名器

    保持している認証情報と入力値のみから決定的に署名を生成する。
    host ヘッダーが渡されない場合は URL のホストを署名に使用する。
    """

    def __init__(self, credentials: AWSCredentials) -> None:
        self.credentials = credentials
        self._botocore_credentials = botocore.credentials.Credentials(
            access_key=credentials.access_key_id,
            secret_key=credentials.secret_access_key,
        )

    def sign(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | HeaderPairs,
        body: bytes | None = None,
        timestamp: str | None = None,
        payload_hash: str | None = None,
    ) -> list[tuple[str, str]]:
        """
        リクエストにSigV4署名を付与する

        Args:
            url: 署名対象のURL
            method: HTTPメソッド
            headers: 既存ヘッダー（同名ヘッダーの複数値はそのまま保持）
            body: リクエストボディ
            timestamp: 署名時刻（x-amz-date形式）。Noneの場合は現在時刻
            payload_hash: ペイロードハッシュの明示指定（UNSIGNED-PAYLOAD等）

        Returns:
            署名済みヘッダーの (名前, 値) リスト
        """
        aws_request = AWSRequest(method=method.upper(), url=url, data=body or b"")
        for name, value in iter_header_pairs(headers):
            aws_request.headers[name] = value

        auth = _S3SigV4Auth(
            self._botocore_credentials,
            self.credentials.service,
            self.credentials.region,
            timestamp=timestamp,
            payload_hash=payload_hash,
        )
        auth.add_auth(aws_request)

        return list(aws_request.headers.items())

    def compute_signature(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | HeaderPairs,
        body: bytes | None = None,
        timestamp: str | None = None,
        payload_hash: str | None = None,
    ) -> str:
        """署名を計算し、Authorizationヘッダーの Signature 値のみを返す"""
        signed_headers = self.sign(
            url,
            method,
            headers,
            body=body,
            timestamp=timestamp,
            payload_hash=payload_hash,
        )
        for name, value in signed_headers:
            if name.lower() == "authorization":
                match = _SIGNATURE_RE.search(value)
                if match:
                    return match.group(1)
        # botocoreが必ずAuthorizationを付与するため通常は到達しない
        raise RuntimeError("署名済みリクエストにAuthorizationヘッダーがありません")
