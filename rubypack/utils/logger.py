"""rubypack 日志配置

两种输出: 文本（默认）与 JSON（RUBYPACK_LOG_JSON=1，供 CI 解析）。

拉取成功的日志行 "Downloaded [<url>]" 是对外契约，构建平台的集成测试
从 staging 输出中 grep 它来判断依赖来自缓存 (file://) 还是网络 (https://)。
文本格式下 message 原样出现在行内；JSON 格式额外带 artifact_url / fetch_source 字段。
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TextIO

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"

LOG_LEVEL_ENV = "RUBYPACK_LOG_LEVEL"
LOG_JSON_ENV = "RUBYPACK_LOG_JSON"

DOWNLOADED_RE = re.compile(r"Downloaded \[(?P<url>[^\]\s]+)\]")

# 通过 logger.info(..., extra={...}) 附带的结构化字段
_EXTRA_FIELDS = ("artifact_url", "fetch_source")


def downloaded_urls(text: str) -> list[str]:
    """从一段日志输出中按出现顺序提取所有 Downloaded [...] 的 URL"""
    return [m.group("url") for m in DOWNLOADED_RE.finditer(text)]


class JSONFormatter(logging.Formatter):
    """一行一个 JSON 对象

    {"timestamp": ..., "level": "INFO", "logger": "rubypack.core.dep.fetcher",
     "message": "Downloaded [https://...]", "artifact_url": "https://...",
     "fetch_source": "network"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """配置根日志器，重复调用时替换而不是叠加 handler

    stream 默认 stderr，stdout 留给命令本身的输出。
    """
    reset_logging()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)


def setup_logging_from_env(environ: Mapping[str, str] | None = None) -> None:
    """按 RUBYPACK_LOG_LEVEL / RUBYPACK_LOG_JSON 配置日志"""
    env = os.environ if environ is None else environ
    setup_logging(
        level=env.get(LOG_LEVEL_ENV, "INFO"),
        json_output=env.get(LOG_JSON_ENV, "") == "1",
    )


def reset_logging() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
