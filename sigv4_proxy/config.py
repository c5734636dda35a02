"""
アプリケーション設定
環境変数からの読み込みと、プロキシ設定値（不変）の構築を行う
"""
import re
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sigv4_proxy.services.proxy.s3_proxy import ProxyConfig
from sigv4_proxy.services.proxy.sigv4 import AWSCredentials
from sigv4_proxy.utils.exceptions import ConfigError


class Settings(BaseSettings):
    """アプリケーション設定クラス"""

    # ============================================
    # 上流ストレージ設定
    # ============================================
    # 例: s3.us-west-002.backblazeb2.com
    aws_s3_endpoint: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    # エンドポイントのプロバイダードメイン（署名リージョンの抽出に使用）
    provider_domain: str = "backblazeb2.com"
    upstream_scheme: str = "https"
    upstream_timeout: float = 60.0  # 秒
    upstream_connect_timeout: float = 10.0  # 秒

    # ============================================
    # Webhook通知設定
    # ============================================
    webhook_url: str | None = None
    webhook_timeout: float = 10.0  # 秒

    # ============================================
    # アプリケーション設定
    # ============================================
    app_env: str = "development"
    app_port: int = 8000
    log_level: str = "INFO"

    # シャットダウン設定（バックグラウンド通知の待機上限）
    shutdown_timeout: float = 30.0

    # ============================================
    # バリデーション
    # ============================================

    @field_validator("upstream_scheme")
    @classmethod
    def validate_upstream_scheme(cls, v: str) -> str:
        """上流スキームのバリデーション"""
        v = v.strip().lower()
        if v not in ("http", "https"):
            raise ValueError(f"無効な上流スキーム: {v}")
        return v

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str | None) -> str | None:
        """空文字のWebhook URLは未設定として扱う"""
        if v is not None and not v.strip():
            return None
        return v

    # ============================================
    # プロパティ
    # ============================================

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.app_env == "development"

    @property
    def log_level_int(self) -> int:
        """ログレベルを数値で取得"""
        import logging
        return getattr(logging, self.log_level.upper(), logging.INFO)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


def parse_endpoint_region(endpoint: str, provider_domain: str) -> str:
    """
    エンドポイントホスト名から署名リージョンを取り出す

    Args:
        endpoint: s3.<region>.<provider_domain> 形式のホスト名
        provider_domain: プロバイダードメイン

    Returns:
        リージョン名

    Raises:
        ConfigError: 形式が一致しない場合
    """
    pattern = re.compile(
        r"^s3\.([a-zA-Z0-9-]+)\." + re.escape(provider_domain) + r"$"
    )
    match = pattern.match(endpoint)
    if not match:
        raise ConfigError(
            f"AWS_S3_ENDPOINTの形式が不正です: {endpoint} "
            f"(期待値: s3.<region>.{provider_domain})",
            field="aws_s3_endpoint",
        )
    return match.group(1)


def build_proxy_config(settings: Settings) -> ProxyConfig:
    """
    設定値からプロキシ設定を構築する

    Raises:
        ConfigError: 必須設定の欠落、またはエンドポイント形式の不一致
    """
    required = {
        "aws_s3_endpoint": settings.aws_s3_endpoint,
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
    }
    for name, value in required.items():
        if not value:
            raise ConfigError(f"{name.upper()}の設定が必須です", field=name)

    endpoint = settings.aws_s3_endpoint.strip().lower()
    region = parse_endpoint_region(endpoint, settings.provider_domain)

    return ProxyConfig(
        credentials=AWSCredentials(
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            region=region,
        ),
        endpoint=endpoint,
        upstream_scheme=settings.upstream_scheme,
        webhook_url=settings.webhook_url,
        upstream_timeout=settings.upstream_timeout,
        upstream_connect_timeout=settings.upstream_connect_timeout,
        webhook_timeout=settings.webhook_timeout,
        shutdown_timeout=settings.shutdown_timeout,
    )


@lru_cache()
def get_settings() -> Settings:
    """設定インスタンスを取得（キャッシュ付き）"""
    return Settings()


def clear_settings_cache() -> None:
    """設定キャッシュをクリア（テスト用）"""
    get_settings.cache_clear()
