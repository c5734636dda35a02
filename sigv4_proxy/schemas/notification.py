"""
Webhook通知スキーマ
"""
from pydantic import BaseModel, ConfigDict, Field


class NotificationPayload(BaseModel):
    """
    プロキシしたリクエストの概要（Webhookへ送信するJSON）

    JSON上のキーはcamelCase。
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content_length: int | None = Field(None, alias="contentLength")
    content_type: str | None = Field(None, alias="contentType")
    method: str
    signature_timestamp: str | None = Field(None, alias="signatureTimestamp")
    status: int
    url: str

    def to_json_dict(self) -> dict:
        """Webhook送信用の辞書（camelCaseキー、null値も含む）"""
        return self.model_dump(by_alias=True)
