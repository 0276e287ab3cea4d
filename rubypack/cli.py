"""rubypack 命令行接口

编排方（buildpack 的 supply/finalize 脚本）通过这些命令驱动安装。
业务异常统一转为 ClickException，message 原文输出，退出码非零。
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import click

from rubypack import __version__
from rubypack.core.config import Config, init_config
from rubypack.core.dep.fetcher import ArtifactFetcher
from rubypack.core.dep.registry import ManifestRegistry
from rubypack.core.exceptions import RubypackError
from rubypack.core.guard import NoDependencyGuard
from rubypack.core.installer import build_installer
from rubypack.core.plugins import PluginVendor
from rubypack.utils.logger import setup_logging_from_env


@contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except RubypackError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default="rubypack.yml", help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, config_path: str) -> None:
    """rubypack - Ruby buildpack 依赖安装"""
    setup_logging_from_env()
    with _errors():
        ctx.obj = init_config(config_path)


@main.command()
@click.argument("name")
@click.option("--line", default=None, help="版本线，如 2.4 或 6.x")
@click.option("--manifest", default=None, help="依赖清单路径（覆盖配置）")
@click.pass_obj
def versions(cfg: Config, name: str, line: str | None, manifest: str | None) -> None:
    """列出清单中某依赖的全部版本，并标出将被选中的版本"""
    with _errors():
        catalog = ManifestRegistry(manifest or cfg.manifest).load()
        selected = catalog.newest_patch_version(name, line)
        for v in catalog.all_versions(name):
            marker = " <- selected" if v == selected else ""
            click.echo(f"  {v}{marker}")


@main.command()
@click.argument("name")
@click.option("--dep-dir", required=True, help="安装目标目录")
@click.option("--line", default=None, help="版本线，如 2.4（默认取最新版本）")
@click.option("--manifest", default=None, help="依赖清单路径（覆盖配置）")
@click.option("--cache-dir", default=None, help="制品缓存目录（覆盖配置）")
@click.option("--offline/--online", default=None, help="离线模式：缓存未命中时直接失败")
@click.option(
    "--populate-cache/--no-populate-cache", default=None, help="把网络下载的制品写回缓存目录",
)
@click.pass_obj
def install(
    cfg: Config, name: str, dep_dir: str, line: str | None,
    manifest: str | None, cache_dir: str | None, offline: bool | None,
    populate_cache: bool | None,
) -> None:
    """安装二进制依赖（bundler / node）"""
    with _errors():
        catalog = ManifestRegistry(manifest or cfg.manifest).load()
        fetcher = ArtifactFetcher(
            cache_dir or cfg.cache_dir,
            offline=cfg.offline if offline is None else offline,
            timeout=cfg.fetch_timeout,
            populate_cache=cfg.populate_cache if populate_cache is None else populate_cache,
        )
        installer = build_installer(
            name, catalog, fetcher, dep_dir,
            line=line, platform=cfg.platform,
            url_template=cfg.url_templates.get(name),
        )
        result = installer.install()
    click.echo(f"{result.name} {result.version} -> {result.install_dir} ({result.fetch.source.value})")


@main.command(name="vendor-plugins")
@click.argument("names", nargs=-1)
@click.option("--build-dir", required=True, help="应用构建目录")
@click.option("--buildpack-dir", default=None, help="buildpack 根目录（覆盖配置）")
@click.pass_obj
def vendor_plugins(
    cfg: Config, names: tuple[str, ...], build_dir: str, buildpack_dir: str | None,
) -> None:
    """把 buildpack 自带插件 vendor 到 vendor/plugins/"""
    with _errors():
        vendored = PluginVendor(names, build_dir, buildpack_dir or cfg.buildpack_dir).install()
    for name in vendored:
        click.echo(f"vendored: {name}")


@main.command(name="check-lockfile")
@click.option("--build-dir", required=True, help="应用构建目录")
@click.option(
    "--phase", default="supply", type=click.Choice(["supply", "finalize"]), help="构建阶段",
)
def check_lockfile(build_dir: str, phase: str) -> None:
    """Gemfile.lock 缺失时终止构建"""
    guard = NoDependencyGuard(build_dir)
    with _errors():
        getattr(guard, phase)()
    click.echo(f"{guard.descriptor} present")
