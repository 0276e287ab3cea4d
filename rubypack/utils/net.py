"""网络工具: URL 安全校验"""

from __future__ import annotations

from urllib.parse import urlparse

from rubypack.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https", "file"))


def validate_url_scheme(url: str, *, context: str = "") -> str:
    """校验 URL 仅使用 http/https/file，返回小写 scheme

    file:// 用于离线缓存包，与远程下载统一走同一个拉取接口。

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    scheme = urlparse(url).scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"unsupported URL scheme '{scheme}'{label}, "
            f"expected one of http/https/file: {url}"
        )
    return scheme
