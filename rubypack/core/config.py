"""集中配置管理

替代各模块散落的默认常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。

注意: 库内的类（catalog / fetcher / installer）不读取全局配置，
全部通过构造参数注入；只有 CLI 入口从这里组装它们。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

import yaml

from rubypack.core.exceptions import ConfigError
from rubypack.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """rubypack 全局配置"""

    # 目录
    manifest: str = "manifest.yml"
    cache_dir: str = "dependencies"
    buildpack_dir: str = "."

    # 拉取
    offline: bool = False
    # 网络下载是否写回 cache_dir；默认只读，安装不改动目标目录以外的文件
    populate_cache: bool = False
    fetch_timeout: float | None = None
    platform: str = "linux-x64"

    # 依赖名 -> URL 模板，覆盖预置模板（如内网镜像）
    url_templates: dict[str, str] = field(default_factory=dict)

    # 放不到字段里的配置项
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "rubypack.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read config {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        if not isinstance(matched.get("url_templates", {}), dict):
            raise ConfigError(f"url_templates must be a mapping in {path}")
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "rubypack.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("config loaded: %s", path)
    return _current
