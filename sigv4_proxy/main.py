"""
S3署名検証プロキシ メインアプリケーション
"""
from sigv4_proxy.config import get_settings
from sigv4_proxy.core.app_factory import create_app

settings = get_settings()

# 必須設定が欠けている場合はここでConfigErrorとなり起動しない
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sigv4_proxy.main:app",
        host="0.0.0.0",
        port=settings.app_port,
        reload=settings.is_development,
    )
