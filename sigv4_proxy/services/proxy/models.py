"""
プロキシのデータモデル
"""
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from starlette.datastructures import Headers
from starlette.requests import Request


@dataclass(frozen=True)
class InboundRequest:
    """
    受信リクエスト（1リクエストの処理中のみ有効、読み取り専用）

    ボディは bytes として取り込み済みのため、検証と転送で同一のバイト列を参照できる。
    """

    method: str
    url: str
    headers: Headers
    body: bytes = b""

    @classmethod
    async def from_request(cls, request: Request) -> "InboundRequest":
        """
        Starlette Requestから生成する

        URLのパスは raw_path を使用し、呼び出し元が署名したパーセントエンコードを保持する。
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            path = raw_path.decode("latin-1").split("?", 1)[0]
        else:
            path = request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        url = urlunsplit(
            (request.url.scheme, request.url.netloc, path, query, "")
        )
        body = await request.body()
        return cls(
            method=request.method,
            url=url,
            headers=request.headers,
            body=body,
        )

    @property
    def path_and_query(self) -> str:
        """パス＋クエリ文字列（エンコードはそのまま）"""
        parts = urlsplit(self.url)
        path = parts.path or "/"
        return f"{path}?{parts.query}" if parts.query else path

    def header(self, name: str) -> str | None:
        """ヘッダー値を取得（大文字小文字無視）"""
        return self.headers.get(name)
