"""依赖解析与拉取

- catalog.py: 版本目录（最新补丁版本查询）
- registry.py: manifest.yml 加载
- fetcher.py: 制品拉取与解压
- models.py: 数据模型
"""

from rubypack.core.dep.catalog import VersionCatalog
from rubypack.core.dep.fetcher import ArtifactFetcher
from rubypack.core.dep.models import ExtractOptions, FetchResult, FetchSource
from rubypack.core.dep.registry import ManifestRegistry

__all__ = [
    "VersionCatalog",
    "ManifestRegistry",
    "ArtifactFetcher",
    "ExtractOptions",
    "FetchResult",
    "FetchSource",
]
