"""依赖版本目录

职责:
- 持有 依赖名 -> 已知版本 的静态映射（构造时加载一次）
- 回答 "某条版本线上最新的补丁版本" 查询
- 提供清单默认版本

版本比较使用语义化版本（packaging.version），而非字符串字典序，
例如 2.4.10 > 2.4.9。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from packaging.version import InvalidVersion, Version

from rubypack.core.dep.models import CatalogEntry
from rubypack.core.exceptions import (
    ConfigError,
    NotFoundError,
    UnknownDependencyError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def parse_line(line: str) -> tuple[int, ...]:
    """把版本线解析为数字前缀: "2.4" / "2.4.x" -> (2, 4), "6.x" -> (6,)"""
    text = line.strip()
    if text.lower().endswith(".x"):
        text = text[:-2]
    try:
        parts = tuple(int(p) for p in text.split("."))
    except ValueError:
        raise ValidationError(f"invalid version line '{line}'") from None
    if not parts or any(p < 0 for p in parts):
        raise ValidationError(f"invalid version line '{line}'")
    return parts


def _newest(candidates: Iterable[Version]) -> Version:
    """正式版本优先；只有预发布版本 (rc/beta/dev) 时才在其中取最大"""
    candidates = list(candidates)
    finals = [v for v in candidates if not v.is_prerelease]
    return max(finals or candidates)


class VersionCatalog:
    """只读版本目录，所有查询都是已加载数据的纯函数"""

    def __init__(
        self,
        entries: Iterable[CatalogEntry],
        defaults: Mapping[str, str] | None = None,
    ) -> None:
        self._entries: dict[str, dict[Version, CatalogEntry]] = {}
        for entry in entries:
            try:
                parsed = Version(entry.version)
            except InvalidVersion:
                raise ConfigError(
                    f"invalid version '{entry.version}' for dependency '{entry.name}'"
                ) from None
            self._entries.setdefault(entry.name, {})[parsed] = entry
        self._defaults = dict(defaults or {})

    @classmethod
    def from_mapping(
        cls,
        versions: Mapping[str, Iterable[str]],
        defaults: Mapping[str, str] | None = None,
    ) -> VersionCatalog:
        """从 {name: [version, ...]} 构造目录"""
        entries = [
            CatalogEntry(name=name, version=str(v))
            for name, vers in versions.items()
            for v in vers
        ]
        return cls(entries, defaults)

    def names(self) -> list[str]:
        return sorted(self._entries)

    def _versions_of(self, name: str) -> dict[Version, CatalogEntry]:
        versions = self._entries.get(name)
        if not versions:
            raise UnknownDependencyError(name, self.names())
        return versions

    def all_versions(self, name: str) -> list[str]:
        """按语义化版本升序列出某依赖的全部版本"""
        versions = self._versions_of(name)
        return [versions[v].version for v in sorted(versions)]

    def newest_patch_version(self, name: str, line: str | None = None) -> str:
        """返回版本线上最新的版本

        line 为空时返回该依赖的最新版本；"2.4" 匹配 2.4.*，"6.x" 匹配 6.*。
        2.4.1rc1 这类预发布版本只在该版本线没有正式版本时才会被选中。

        Raises:
            UnknownDependencyError: 依赖名不在目录中
            NotFoundError: 依赖存在但没有版本匹配 line
        """
        versions = self._versions_of(name)
        if not line:
            return versions[_newest(versions)].version

        prefix = parse_line(line)
        matching = [v for v in versions if v.release[: len(prefix)] == prefix]
        if not matching:
            raise NotFoundError(name, line, self.all_versions(name))
        return versions[_newest(matching)].version

    def default_version(self, name: str) -> str:
        """清单 default_versions 中的版本，未声明时取最新版本"""
        versions = self._versions_of(name)
        default = self._defaults.get(name)
        if default is None:
            return versions[_newest(versions)].version
        for v, entry in versions.items():
            if entry.version == default or str(v) == default:
                return entry.version
        raise NotFoundError(name, default, self.all_versions(name))

    def entry(self, name: str, version: str) -> CatalogEntry | None:
        for entry in self._entries.get(name, {}).values():
            if entry.version == version:
                return entry
        return None
