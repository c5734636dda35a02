"""
センシティブ情報フィルター

ログ出力前に署名・認証情報・シークレットキー等をマスクする。
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

# マスク文字列
_MASK = "***REDACTED***"

# ヘッダーキー名のセンシティブパターン（大文字小文字無視）
_SENSITIVE_HEADER_KEYS = re.compile(
    r"(authorization|x-amz-security-token|cookie|x-api-key|x-auth-token)",
    re.IGNORECASE,
)

# URLクエリパラメータのセンシティブキーパターン（署名付きURL含む）
_SENSITIVE_URL_PARAMS = re.compile(
    r"(x-amz-signature|x-amz-credential|x-amz-security-token|token|secret|password)",
    re.IGNORECASE,
)

# ログイベントのセンシティブキーパターン（再帰的にチェック）
_SENSITIVE_DICT_KEYS = re.compile(
    r"(password|secret|token|authorization|private_key|credential)",
    re.IGNORECASE,
)


def sanitize_headers(
    headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
) -> dict[str, str] | None:
    """認証ヘッダーの値をマスクする

    Args:
        headers: HTTPヘッダー（dict または (名前, 値) のリスト。Noneの場合はそのまま返す）

    Returns:
        マスク済みヘッダー辞書（元のデータは変更しない）
    """
    if headers is None:
        return None

    pairs = headers.items() if isinstance(headers, Mapping) else headers
    sanitized = {}
    for key, value in pairs:
        if _SENSITIVE_HEADER_KEYS.search(key):
            sanitized[key] = _MASK
        else:
            sanitized[key] = value
    return sanitized


def sanitize_url(url: str) -> str:
    """URLクエリパラメータ内のセンシティブ情報をマスクする

    Args:
        url: URL文字列

    Returns:
        マスク済みURL文字列
    """
    if not url or "?" not in url:
        return url

    try:
        parsed = urlparse(url)
        params = parse_qsl(parsed.query, keep_blank_values=True)
        sanitized_params = [
            (key, _MASK if _SENSITIVE_URL_PARAMS.search(key) else value)
            for key, value in params
        ]
        sanitized_query = urlencode(sanitized_params)
        return urlunparse(parsed._replace(query=sanitized_query))
    except ValueError:
        return url


def sanitize_log_data(data: Any, *, _depth: int = 0) -> Any:
    """再帰的にセンシティブパターンを検出しマスクする

    Args:
        data: サニタイズ対象のデータ（dict, list, str等）

    Returns:
        マスク済みデータ（元のデータは変更しない）
    """
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and _SENSITIVE_DICT_KEYS.search(key):
                result[key] = _MASK
            else:
                result[key] = sanitize_log_data(value, _depth=_depth + 1)
        return result

    if isinstance(data, list):
        return [sanitize_log_data(item, _depth=_depth + 1) for item in data]

    return data


def redact_sensitive_processor(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlogプロセッサ: イベント辞書のセンシティブな値をマスクする"""
    return sanitize_log_data(event_dict)
