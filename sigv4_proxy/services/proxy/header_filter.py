"""
署名対象ヘッダーのフィルタ
受信リクエストには存在するが、上流へは渡さない（署名に含めない）ヘッダーを除去する
"""
from collections.abc import Iterable, Mapping

# 元の署名者が知り得ない、経路上で付与されるヘッダー
UNSIGNABLE_HEADERS = frozenset(
    {
        "x-forwarded-proto",
        "x-real-ip",
    }
)

# Hop-by-hop ヘッダー（上流への接続で作り直される）
HOP_BY_HOP_HEADERS = frozenset(
    {
        "host",
        "connection",
        "proxy-connection",
        "keep-alive",
        "transfer-encoding",
    }
)

# エッジプラットフォームが注入するヘッダーのプレフィックス
EDGE_HEADER_PREFIX = "cf-"


def is_forwardable(name: str) -> bool:
    """ヘッダー名が上流へ転送・署名可能か判定"""
    lower_name = name.lower()
    if lower_name in UNSIGNABLE_HEADERS or lower_name in HOP_BY_HOP_HEADERS:
        return False
    return not lower_name.startswith(EDGE_HEADER_PREFIX)


def iter_header_pairs(
    headers: Mapping[str, str] | Iterable[tuple[str, str]],
) -> Iterable[tuple[str, str]]:
    """dict / Starlette・httpx Headers / (名前, 値)リストを統一的に列挙する"""
    if hasattr(headers, "multi_items"):
        return headers.multi_items()
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def filter_headers(
    headers: Mapping[str, str] | Iterable[tuple[str, str]],
) -> list[tuple[str, str]]:
    """
    署名対象外のヘッダーを除去する

    入力の列挙順を保持し、同名ヘッダーの複数値もそのまま残す。
    副作用なし・冪等。

    Args:
        headers: ヘッダー（dict、Starlette/httpx Headers、または (名前, 値) のリスト）

    Returns:
        除去後の (名前, 値) リスト
    """
    return [
        (name, value)
        for name, value in iter_header_pairs(headers)
        if is_forwardable(name)
    ]
