"""二进制依赖安装器

流程: 解析版本 -> 计算制品 URL -> 拉取解压到 <dep>-<version>/ ->
校验可执行文件 -> bin/ 下建立相对符号链接 -> 写 env/<KEY> 片段。

用法:
    catalog = ManifestRegistry("manifest.yml").load()
    fetcher = ArtifactFetcher(cache_dir="dependencies")
    installer = BinaryInstaller(BUNDLER, catalog, fetcher, dep_dir)
    installer.install()

install() 可重复调用: 解压覆盖、链接强制替换、env 文件原子重写，
所有副作用都限定在 dep_dir 内。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from rubypack.core.dep.catalog import VersionCatalog
from rubypack.core.dep.fetcher import ArtifactFetcher
from rubypack.core.dep.models import (
    ArtifactLocation,
    DependencyDescriptor,
    ExtractOptions,
    InstallResult,
    InstallTarget,
    SymlinkSpec,
)
from rubypack.core.exceptions import ConfigError, PlacementError, ValidationError
from rubypack.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BinarySpec:
    """一类二进制依赖的安装配置

    url_template 可用占位符: {name} {version} {platform}
    dir_template 可用占位符: {name} {version} {platform}
    env_template 可用占位符: {install_dir} {version}
    """

    name: str
    url_template: str
    executables: tuple[str, ...]
    line: str | None = None
    platform: str = "linux-x64"
    strip_components: int = 1
    dir_template: str = "{name}-{version}"
    env_key: str = ""
    env_template: str = ""


BUNDLER = BinarySpec(
    name="bundler",
    url_template=(
        "https://buildpacks.cloudfoundry.org/dependencies/bundler/bundler-{version}.tgz"
    ),
    executables=("bundle", "bundler"),
    env_key="GEM_PATH",
    env_template="{install_dir}:$GEM_PATH",
)

NODE = BinarySpec(
    name="node",
    url_template=(
        "https://s3pository.heroku.com/node/v{version}/node-v{version}-{platform}.tar.gz"
    ),
    executables=("node", "npm"),
    dir_template="node-v{version}-{platform}",
)

PRESETS: dict[str, BinarySpec] = {spec.name: spec for spec in (BUNDLER, NODE)}


class BinaryInstaller:
    """把一个二进制依赖安装进目标目录"""

    def __init__(
        self,
        spec: BinarySpec,
        catalog: VersionCatalog,
        fetcher: ArtifactFetcher,
        dep_dir: str | Path,
    ) -> None:
        self.spec = spec
        self.catalog = catalog
        self.fetcher = fetcher
        self.target = InstallTarget(root_dir=Path(dep_dir))
        self.descriptor = DependencyDescriptor(name=spec.name, requested_line=spec.line)

    @property
    def version(self) -> str:
        """首次访问时解析并缓存，之后不再重新解析"""
        if self.descriptor.resolved_version is None:
            self.descriptor.resolved_version = self.catalog.newest_patch_version(
                self.spec.name, self.spec.line,
            )
        return self.descriptor.resolved_version

    def _render(self, template: str, **values: str) -> str:
        try:
            return template.format(**values)
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(
                f"invalid template for {self.spec.name}: {template!r} ({e})"
            ) from e

    @property
    def binary_path(self) -> str:
        """版本化的安装子目录名，如 bundler-2.4.0"""
        return self._render(
            self.spec.dir_template,
            name=self.spec.name, version=self.version, platform=self.spec.platform,
        )

    @property
    def install_dir(self) -> Path:
        return self.target.root_dir / self.binary_path

    def artifact_location(self) -> ArtifactLocation:
        url = self._render(
            self.spec.url_template,
            name=self.spec.name, version=self.version, platform=self.spec.platform,
        )
        base, _, archive = url.rpartition("/")
        return ArtifactLocation(
            base_url=f"{base}/", archive_name=archive, local_destination=self.install_dir,
        )

    def symlinks(self) -> list[SymlinkSpec]:
        return [
            SymlinkSpec(
                link_path=self.target.bin_dir / exe,
                target_path=f"../{self.binary_path}/bin/{exe}",
            )
            for exe in self.spec.executables
        ]

    def install(self) -> InstallResult:
        version = self.version
        location = self.artifact_location()
        self._ensure_root()

        entry = self.catalog.entry(self.spec.name, version)
        fetch = self.fetcher.fetch_and_extract(
            location.url,
            location.local_destination,
            ExtractOptions(strip_components=self.spec.strip_components),
            sha256=entry.sha256 if entry else "",
        )

        self._verify_executables()
        links = self.symlinks()
        for link in links:
            self._link(link)
        env_files = self._write_env(version)

        logger.info(
            "installed %s %s into %s", self.spec.name, version, self.install_dir,
        )
        return InstallResult(
            name=self.spec.name, version=version, install_dir=self.install_dir,
            fetch=fetch, links=links, env_files=env_files,
        )

    def _ensure_root(self) -> None:
        root = self.target.root_dir
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PlacementError(f"cannot create destination {root}: {e}") from e
        if not os.access(root, os.W_OK):
            raise PlacementError(f"destination is not writable: {root}")

    def _verify_executables(self) -> None:
        bin_dir = self.install_dir / "bin"
        missing = [exe for exe in self.spec.executables if not (bin_dir / exe).exists()]
        if missing:
            raise PlacementError(
                f"{self.spec.name} {self.version} archive does not provide "
                f"{', '.join(missing)} in {bin_dir}"
            )

    @staticmethod
    def _link(spec: SymlinkSpec) -> None:
        """等价于 ln -sfn: 已存在的文件/链接被替换，不跟随旧链接"""
        try:
            spec.link_path.parent.mkdir(parents=True, exist_ok=True)
            if os.path.lexists(spec.link_path):
                spec.link_path.unlink()
            os.symlink(spec.target_path, spec.link_path)
        except OSError as e:
            raise PlacementError(
                f"cannot link {spec.link_path} -> {spec.target_path}: {e}"
            ) from e

    def _write_env(self, version: str) -> dict[str, Path]:
        if not self.spec.env_key:
            return {}
        value = self._render(
            self.spec.env_template,
            install_dir=str(self.install_dir.absolute()), version=version,
        )
        path = self.target.env_dir / self.spec.env_key
        try:
            atomic_write(path, value.replace("\n", ""))
        except OSError as e:
            raise PlacementError(f"cannot write env file {path}: {e}") from e
        return {self.spec.env_key: path}


def build_installer(
    name: str,
    catalog: VersionCatalog,
    fetcher: ArtifactFetcher,
    dep_dir: str | Path,
    *,
    line: str | None = None,
    platform: str | None = None,
    url_template: str | None = None,
) -> BinaryInstaller:
    """按预置配置构造安装器，可覆盖版本线、平台与 URL 模板"""
    preset = PRESETS.get(name)
    if preset is None:
        raise ValidationError(
            f"no installer preset for '{name}', available: {', '.join(sorted(PRESETS))}"
        )
    spec = replace(
        preset,
        line=line or preset.line,
        platform=platform or preset.platform,
        url_template=url_template or preset.url_template,
    )
    return BinaryInstaller(spec, catalog, fetcher, dep_dir)
