"""依赖清单加载

职责:
- 从 buildpack 的 manifest.yml 加载依赖定义
- 支持 dependencies 与 default_versions 两个配置段

清单格式:
    dependencies:
      - name: bundler
        version: 2.4.0
        uri: https://.../bundler-2.4.0.tgz
        sha256: ...
        cf_stacks: [cflinuxfs3]
    default_versions:
      - name: ruby
        version: 3.2.2
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from rubypack.core.dep.catalog import VersionCatalog
from rubypack.core.dep.models import CatalogEntry
from rubypack.core.exceptions import ConfigError
from rubypack.utils.yaml_io import iter_rows, load_yaml

logger = logging.getLogger(__name__)


class ManifestRegistry:
    """依赖清单 - 从 manifest.yml 构造 VersionCatalog"""

    def __init__(self, manifest_path: str | Path) -> None:
        self.manifest_path = Path(manifest_path)

    def load(self) -> VersionCatalog:
        if not self.manifest_path.exists():
            raise ConfigError(f"manifest not found: {self.manifest_path}")
        try:
            data = load_yaml(self.manifest_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read manifest {self.manifest_path}: {e}") from e

        entries = [
            CatalogEntry(
                name=str(row["name"]),
                version=str(row["version"]),
                uri=row.get("uri") or "",
                sha256=row.get("sha256") or "",
                cf_stacks=tuple(row.get("cf_stacks") or ()),
            )
            for row in iter_rows(data, "dependencies", required=("name", "version"))
        ]
        defaults = {
            str(row["name"]): str(row["version"])
            for row in iter_rows(data, "default_versions", required=("name", "version"))
        }

        logger.info(
            "loaded %d dependency versions from %s", len(entries), self.manifest_path,
        )
        return VersionCatalog(entries, defaults)
