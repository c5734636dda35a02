"""
エラーレスポンススキーマ

署名検証失敗時のS3互換XMLエラー文書と、内部エラー用のJSON形式を定義
"""
from datetime import datetime, timezone

from pydantic import BaseModel, Field

# 署名検証に失敗した場合の固定エラー文書
# どの検査で失敗したかに関わらず常に同一の内容を返す
SIGNATURE_ERROR_XML = """<ErrorResponse xmlns="https://iam.amazonaws.com/doc/2010-05-08/">
  <Error>
    <Type>Sender</Type>
    <Code>SignatureDoesNotMatch</Code>
    <Message>Signature validation failed.</Message>
  </Error>
  <RequestId>0300D815-9252-41E5-B587-F189759A21BF</RequestId>
</ErrorResponse>"""

XML_MEDIA_TYPE = "application/xml"


class ErrorBody(BaseModel):
    """エラー本体"""
    code: str = Field(..., description="エラーコード")
    message: str = Field(..., description="ユーザー向けエラーメッセージ")
    request_id: str | None = Field(
        None,
        description="リクエストID（トレーシング用）",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="エラー発生時刻",
    )


class ErrorResponse(BaseModel):
    """統一エラーレスポンス（署名エラー以外）"""
    error: ErrorBody


def create_error_response(
    code: str,
    message: str,
    request_id: str | None = None,
) -> dict:
    """
    エラーレスポンスを作成

    Args:
        code: エラーコード
        message: ユーザー向けメッセージ
        request_id: リクエストID

    Returns:
        エラーレスポンス辞書
    """
    return ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            request_id=request_id,
        )
    ).model_dump()


class ErrorCodes:
    """エラーコード定数"""
    INTERNAL_ERROR = "INTERNAL_ERROR"
