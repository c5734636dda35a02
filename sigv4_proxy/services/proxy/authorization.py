"""
Authorizationヘッダーのパース

AWS4-HMAC-SHA256 Credential=<key>/<scope>, SignedHeaders=<h1;h2>, Signature=<hex>
"""
import re
from dataclasses import dataclass

from sigv4_proxy.utils.exceptions import AuthorizationParseError

_AUTH_HEADER_RE = re.compile(
    r"^AWS4-HMAC-SHA256 Credential=(?P<credential>[^,]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[^,]+),\s*"
    r"Signature=(?P<signature>[0-9a-fA-F]+)$"
)

# x-amz-date 形式（YYYYMMDD'T'HHMMSS'Z'）
_AMZ_DATE_RE = re.compile(r"^\d{8}T\d{6}Z$")


@dataclass(frozen=True)
class CredentialScope:
    """Credentialのスコープ部分（date/region/service/aws4_request）"""

    date: str
    region: str
    service: str
    terminator: str


@dataclass(frozen=True)
class ParsedAuthorization:
    """パース済みAuthorizationヘッダー"""

    access_key_id: str
    credential_scope: str
    signed_headers: tuple[str, ...]
    signature: str

    @property
    def scope(self) -> CredentialScope | None:
        """スコープを分解して返す（要素数が合わない場合はNone）"""
        parts = self.credential_scope.split("/")
        if len(parts) != 4:
            return None
        return CredentialScope(*parts)


def parse_authorization(value: str) -> ParsedAuthorization:
    """
    Authorizationヘッダー値をパースする

    Args:
        value: Authorizationヘッダーの値

    Returns:
        ParsedAuthorization

    Raises:
        AuthorizationParseError: 文法に一致しない場合
    """
    match = _AUTH_HEADER_RE.match(value.strip())
    if not match:
        raise AuthorizationParseError("Authorizationヘッダーの形式が不正です")

    access_key_id, _, scope = match.group("credential").strip().partition("/")
    if not access_key_id:
        raise AuthorizationParseError("Credentialにアクセスキーがありません")

    signed_headers = tuple(
        name.strip().lower()
        for name in match.group("signed_headers").split(";")
        if name.strip()
    )
    if not signed_headers:
        raise AuthorizationParseError("SignedHeadersが空です")

    return ParsedAuthorization(
        access_key_id=access_key_id,
        credential_scope=scope,
        signed_headers=signed_headers,
        signature=match.group("signature"),
    )


def validate_amz_date(value: str | None) -> str:
    """
    x-amz-date ヘッダー値を検証する

    Raises:
        AuthorizationParseError: 欠落または形式不正
    """
    if not value or not _AMZ_DATE_RE.match(value.strip()):
        raise AuthorizationParseError(
            "x-amz-dateヘッダーが欠落しているか形式が不正です",
            header="x-amz-date",
        )
    return value.strip()
