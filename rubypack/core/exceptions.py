"""统一异常体系

所有业务异常继承 RubypackError。安装器内部不做任何恢复，
异常原样上抛给编排方；CLI 层据此把 message 原文输出给用户。
"""

from __future__ import annotations

from enum import Enum


class RubypackError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RubypackError):
    """配置文件或依赖清单缺失、内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(RubypackError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class UnknownDependencyError(RubypackError):
    """依赖名不在版本目录中"""

    code = "UNKNOWN_DEPENDENCY"

    def __init__(self, name: str, known: list[str] | None = None) -> None:
        known = known or []
        super().__init__(
            f"dependency '{name}' is not in the manifest. "
            f"known: {', '.join(known) or '-'}"
        )
        self.name = name
        self.known = known


class NotFoundError(RubypackError):
    """依赖存在，但没有匹配所请求版本线的版本"""

    code = "VERSION_NOT_FOUND"

    def __init__(self, name: str, line: str, available: list[str] | None = None) -> None:
        available = available or []
        super().__init__(
            f"no version of '{name}' matches line {line}. "
            f"available: {', '.join(available) or '-'}"
        )
        self.name = name
        self.line = line
        self.available = available


class FetchErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = "network_unavailable"
    REMOTE_ERROR = "remote_error"
    EXTRACTION_FAILED = "extraction_failed"
    CHECKSUM_MISMATCH = "checksum_mismatch"


class FetchError(RubypackError):
    """制品下载或解压失败"""

    code = "FETCH_ERROR"

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.status_code = status_code


class PlacementError(RubypackError):
    """符号链接、目录拷贝或 env 文件写入失败"""

    code = "PLACEMENT_ERROR"

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or {}


class MissingDescriptorError(RubypackError):
    """必需的依赖描述文件（如 Gemfile.lock）不存在"""

    code = "MISSING_DESCRIPTOR"
