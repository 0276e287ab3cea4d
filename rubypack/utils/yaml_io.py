"""YAML 读取与小文件原子写入

- load_yaml: 读取 manifest.yml / rubypack.yml，只接受顶层为映射的文档
- iter_rows: 遍历 manifest 中 dependencies / default_versions 这类行列表
- atomic_write: env/<KEY> 片段落盘，后续构建步骤不会读到半截内容
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# manifest 通常几十 KB，超过 10MB 视为误指向了别的文件
MAX_YAML_SIZE = 10 * 1024 * 1024

# env 片段需要被构建容器里的其他用户读取
ENV_FILE_MODE = 0o644


def atomic_write(path: str | Path, content: str, mode: int = ENV_FILE_MODE) -> None:
    """先写同目录临时文件再 rename；内容原样写入，不追加换行

    mkstemp 创建的文件权限是 0600，rename 前按 mode 修正。

    Raises:
        OSError: 目录无法创建或文件无法写入
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp, mode)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 文档；文件不存在、为空或顶层不是映射时返回 {}

    Raises:
        yaml.YAMLError: 格式错误
        OSError: 读取失败
        ValueError: 文件超过 MAX_YAML_SIZE
    """
    p = Path(path)
    if not p.exists():
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ValueError(f"YAML file too large: {p} ({size} bytes, limit {MAX_YAML_SIZE})")

    with open(p, encoding="utf-8") as f:
        result = yaml.safe_load(f)

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning("%s is not a mapping (got %s), ignoring", p, type(result).__name__)
        return {}
    return result


def iter_rows(
    data: Mapping[str, Any], section: str, required: tuple[str, ...] = (),
) -> Iterator[dict[str, Any]]:
    """遍历 data[section] 中的映射行，跳过非映射行和缺少 required 字段的行

    required 字段值为 None 或空字符串都视为缺失。
    """
    rows = data.get(section) or []
    if not isinstance(rows, list):
        logger.warning("section '%s' is not a list, ignoring", section)
        return
    for row in rows:
        if not isinstance(row, dict) or any(row.get(k) in (None, "") for k in required):
            logger.warning("skipping malformed %s entry: %r", section, row)
            continue
        yield row
