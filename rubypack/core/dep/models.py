"""依赖安装数据模型

数据类:
- CatalogEntry: 清单中的一条依赖记录
- DependencyDescriptor: 安装器持有的依赖描述（版本惰性解析）
- ArtifactLocation: 制品 URL 与解压目标
- InstallTarget: 目标目录布局
- SymlinkSpec: bin/ 下的一条相对符号链接
- PluginManifestEntry: 待 vendor 的插件
- ExtractOptions / FetchSource / FetchResult: 拉取参数与结果
- InstallResult: 一次 install() 的产物
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class CatalogEntry:
    """清单中单个依赖版本的元信息"""

    name: str
    version: str
    uri: str = ""
    sha256: str = ""
    cf_stacks: tuple[str, ...] = ()


@dataclass
class DependencyDescriptor:
    """安装器持有的依赖描述

    resolved_version 在首次访问时解析并缓存，此后不再变化。
    """

    name: str
    requested_line: str | None = None
    resolved_version: str | None = None


@dataclass(frozen=True)
class ArtifactLocation:
    base_url: str
    archive_name: str
    local_destination: Path

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.archive_name}"


@dataclass(frozen=True)
class InstallTarget:
    """目标目录布局: <root>/bin, <root>/env"""

    root_dir: Path

    @property
    def bin_dir(self) -> Path:
        return self.root_dir / "bin"

    @property
    def env_dir(self) -> Path:
        return self.root_dir / "env"


@dataclass(frozen=True)
class SymlinkSpec:
    link_path: Path
    target_path: str  # 相对 link_path 所在目录


@dataclass(frozen=True)
class PluginManifestEntry:
    name: str


@dataclass(frozen=True)
class ExtractOptions:
    strip_components: int = 0


class FetchSource(str, Enum):
    """制品来源: 本地缓存 (file://) 或网络下载"""

    CACHED = "cached"
    NETWORK = "network"


@dataclass(frozen=True)
class FetchResult:
    url: str
    source: FetchSource
    archive_path: Path
    destination: Path

    @property
    def cached(self) -> bool:
        return self.source is FetchSource.CACHED


@dataclass
class InstallResult:
    name: str
    version: str
    install_dir: Path
    fetch: FetchResult
    links: list[SymlinkSpec] = field(default_factory=list)
    env_files: dict[str, Path] = field(default_factory=dict)
