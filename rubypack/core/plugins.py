"""Rails 插件 vendor

把 buildpack 自带的插件目录 (<buildpack>/plugins/<name>) 拷贝进应用的
vendor/plugins/<name>。目标目录已存在即视为已 vendor，不比较内容。
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from rubypack.core.dep.models import PluginManifestEntry
from rubypack.core.exceptions import PlacementError

logger = logging.getLogger(__name__)


class PluginVendor:
    """按名称 vendor 一组插件"""

    def __init__(
        self,
        plugins: Iterable[str] | None,
        build_dir: str | Path,
        buildpack_dir: str | Path,
    ) -> None:
        self.plugins = [PluginManifestEntry(name=n) for n in (plugins or [])]
        self.build_dir = Path(build_dir)
        self.buildpack_dir = Path(buildpack_dir)

    def plugin_dir(self, name: str = "") -> Path:
        return self.build_dir / "vendor" / "plugins" / name

    def source_dir(self, name: str) -> Path:
        return self.buildpack_dir / "plugins" / name

    def install(self) -> list[str]:
        """vendor 全部插件，返回本次实际拷贝的插件名

        单个插件失败不回滚已成功的插件；全部处理完后统一抛出 PlacementError。
        """
        if not self.plugins:
            return []

        vendored: list[str] = []
        failures: dict[str, str] = {}
        for entry in self.plugins:
            try:
                if self.vendor(entry.name):
                    vendored.append(entry.name)
            except PlacementError as e:
                logger.error("vendor failed: %s: %s", entry.name, e)
                failures[entry.name] = str(e)

        if failures:
            raise PlacementError(
                f"failed to vendor plugins: {', '.join(failures)}", failures=failures,
            )
        return vendored

    def vendor(self, name: str) -> bool:
        """vendor 单个插件；目标已存在时跳过并返回 False"""
        directory = self.plugin_dir(name)
        if directory.exists():
            logger.debug("plugin already vendored: %s", directory)
            return False

        source = self.source_dir(name)
        if not source.is_dir():
            raise PlacementError(f"plugin '{name}' not found in buildpack: {source}")

        try:
            directory.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, directory, symlinks=True, copy_function=shutil.copy2)
        except (OSError, shutil.Error) as e:
            raise PlacementError(f"cannot vendor plugin '{name}': {e}") from e

        logger.info("vendored plugin %s -> %s", name, directory)
        return True
