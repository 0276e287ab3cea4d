"""共享夹具: 构造 tar 制品、替换网络下载"""

from __future__ import annotations

import io
import tarfile
import urllib.error
from pathlib import Path

import pytest


def build_tarball(
    path: Path,
    top: str,
    files: dict[str, bytes],
    symlinks: dict[str, str] | None = None,
) -> Path:
    """写一个 gzip tar，所有成员包在 top/ 目录下"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tf:
        for rel, data in files.items():
            info = tarfile.TarInfo(f"{top}/{rel}")
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
        for rel, target in (symlinks or {}).items():
            info = tarfile.TarInfo(f"{top}/{rel}")
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tf.addfile(info)
    return path


def bundler_tarball(path: Path, version: str = "2.4.0") -> Path:
    return build_tarball(path, f"bundler-{version}", {
        "bin/bundle": b"#!/usr/bin/env ruby\nload 'bundler'\n",
        "bin/bundler": b"#!/usr/bin/env ruby\nrequire 'bundler'\n",
        "lib/bundler.rb": f"VERSION = '{version}'\n".encode(),
    })


def snapshot_tree(root: Path) -> dict[str, object]:
    """目录树快照: 文件 -> 内容，链接 -> ('link', 目标)，目录 -> 'dir'"""
    tree: dict[str, object] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        if path.is_symlink():
            tree[rel] = ("link", str(path.readlink()))
        elif path.is_dir():
            tree[rel] = "dir"
        else:
            tree[rel] = path.read_bytes()
    return tree


class InterruptedBody(io.BytesIO):
    """先返回已有内容，读完后抛出 exc，模拟连接中途断开"""

    def __init__(self, data: bytes, exc: Exception) -> None:
        super().__init__(data)
        self.exc = exc

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if not chunk:
            raise self.exc
        return chunk


class FakeNetwork:
    """替代 urllib.request.urlopen，记录请求并按 URL 返回内容"""

    def __init__(self) -> None:
        self.payloads: dict[str, bytes] = {}
        self.errors: dict[str, Exception] = {}
        self.interrupted: dict[str, tuple[bytes, Exception]] = {}
        self.calls: list[str] = []

    def serve(self, url: str, data: bytes) -> None:
        self.payloads[url] = data

    def fail(self, url: str, exc: Exception) -> None:
        self.errors[url] = exc

    def interrupt(self, url: str, partial: bytes, exc: Exception) -> None:
        self.interrupted[url] = (partial, exc)

    def urlopen(self, url: str, timeout: float | None = None) -> io.BytesIO:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.interrupted:
            return InterruptedBody(*self.interrupted[url])
        if url not in self.payloads:
            raise urllib.error.HTTPError(url, 404, "Not Found", None, None)
        return io.BytesIO(self.payloads[url])


@pytest.fixture()
def network(monkeypatch: pytest.MonkeyPatch) -> FakeNetwork:
    fake = FakeNetwork()
    monkeypatch.setattr("rubypack.core.dep.fetcher.urllib.request.urlopen", fake.urlopen)
    return fake


@pytest.fixture()
def make_tarball():
    return build_tarball


@pytest.fixture()
def make_bundler_tarball():
    return bundler_tarball


@pytest.fixture()
def tree_of():
    return snapshot_tree
