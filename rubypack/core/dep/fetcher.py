"""制品拉取器

职责:
- 拉取制品归档（本地缓存优先 + 网络下载回退）
- 校验和验证
- 解压（支持剥离前导目录层级）

两条路径最终都走同一个 _extract()，保证解压结果一致。
每次成功拉取输出一行 "Downloaded [<url>]"，离线缓存为 file://，
网络下载为 https://，外部集成测试依赖这一行。

缓存目录默认只读：网络下载落在临时目录，用完即删；
只有 populate_cache=True 时才把下载结果写回缓存。
"""

from __future__ import annotations

import hashlib
import http.client
import logging
import os
import tarfile
import tempfile
import urllib.error
import urllib.request
import zlib
from collections.abc import Iterator
from pathlib import Path, PurePosixPath
from typing import BinaryIO
from urllib.parse import quote, urlparse
from urllib.request import url2pathname

from rubypack.core.dep.models import ExtractOptions, FetchResult, FetchSource
from rubypack.core.exceptions import FetchError, FetchErrorKind, PlacementError
from rubypack.utils.net import validate_url_scheme

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _strip(name: str, count: int) -> str | None:
    parts = PurePosixPath(name).parts
    if len(parts) <= count:
        return None
    return str(PurePosixPath(*parts[count:]))


def _strip_members(
    members: list[tarfile.TarInfo], count: int,
) -> Iterator[tarfile.TarInfo]:
    """等价于 tar --strip-components，层级不足的成员直接跳过"""
    for member in members:
        if count == 0:
            yield member
            continue
        name = _strip(member.name, count)
        if name is None:
            continue
        if member.islnk():
            # 硬链接目标同样是归档内路径
            target = _strip(member.linkname, count)
            if target is None:
                continue
            member.linkname = target
        member.name = name
        yield member


class ArtifactFetcher:
    """制品拉取器 - 本地缓存优先 + 网络下载"""

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        *,
        offline: bool = False,
        timeout: float | None = None,
        populate_cache: bool = False,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.offline = offline
        self.timeout = timeout
        self.populate_cache = populate_cache

    def cache_path(self, url: str) -> Path | None:
        """远程 URL 在缓存目录中对应的文件（URL 整体转义作文件名）"""
        if self.cache_dir is None:
            return None
        return self.cache_dir / quote(url, safe="")

    @staticmethod
    def is_valid(path: Path) -> bool:
        return path.is_file() and path.stat().st_size > 0

    def fetch_and_extract(
        self,
        remote_url: str,
        destination_dir: str | Path,
        options: ExtractOptions | None = None,
        *,
        sha256: str = "",
    ) -> FetchResult:
        """拉取并解压单个制品

        策略: 本地优先
          1. file:// URL 或缓存命中 → 直接从本地文件解压，不访问网络
          2. 否则下载到临时目录再解压（populate_cache 时写回缓存）

        Raises:
            ValidationError: URL 协议不被支持
            FetchError: 网络不可用 / 远端错误 / 解压失败 / 校验和不匹配
            PlacementError: 下载文件无法写入本地磁盘
        """
        scheme = validate_url_scheme(remote_url, context="artifact fetch")
        destination = Path(destination_dir)
        options = options or ExtractOptions()

        if scheme == "file":
            archive = Path(url2pathname(urlparse(remote_url).path))
            if not self.is_valid(archive):
                raise FetchError(
                    FetchErrorKind.NETWORK_UNAVAILABLE,
                    f"cached artifact not found: {archive}",
                    url=remote_url,
                )
            return self._finish(archive, remote_url, FetchSource.CACHED, destination, options, sha256)

        cached = self.cache_path(remote_url)
        if cached is not None and self.is_valid(cached):
            logger.debug("cache hit for %s: %s", remote_url, cached)
            return self._finish(
                cached, cached.resolve().as_uri(), FetchSource.CACHED,
                destination, options, sha256,
            )

        if self.offline:
            raise FetchError(
                FetchErrorKind.NETWORK_UNAVAILABLE,
                f"{remote_url} is not cached and network access is disabled",
                url=remote_url,
            )

        if cached is not None and self.populate_cache:
            self._download(remote_url, cached)
            return self._finish(cached, remote_url, FetchSource.NETWORK, destination, options, sha256)

        try:
            workdir = tempfile.TemporaryDirectory(prefix="rubypack-")
        except OSError as e:
            raise PlacementError(f"cannot create download directory for {remote_url}: {e}") from e
        with workdir as tmp:
            archive = Path(tmp) / (remote_url.rstrip("/").rsplit("/", 1)[-1] or "artifact")
            self._download(remote_url, archive)
            return self._finish(archive, remote_url, FetchSource.NETWORK, destination, options, sha256)

    def _finish(
        self,
        archive: Path,
        display_url: str,
        source: FetchSource,
        destination: Path,
        options: ExtractOptions,
        sha256: str,
    ) -> FetchResult:
        if sha256:
            self._verify_checksum(archive, sha256, display_url)
        self._extract(archive, destination, options)
        logger.info(
            "Downloaded [%s]", display_url,
            extra={"artifact_url": display_url, "fetch_source": source.value},
        )
        return FetchResult(
            url=display_url, source=source,
            archive_path=archive, destination=destination,
        )

    def _download(self, url: str, dest: Path) -> None:
        """流式下载到同目录临时文件，完成后原子替换

        网络侧失败抛 FetchError，本地写入失败（目录不可写、磁盘满）抛 PlacementError。
        """
        tmp: str | None = None
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(dest.parent), suffix=".part")
            with os.fdopen(fd, "wb") as out:
                self._stream(url, out)
            os.replace(tmp, dest)
        except OSError as e:
            raise PlacementError(f"cannot store download of {url} at {dest}: {e}") from e
        finally:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)

    def _stream(self, url: str, out: BinaryIO) -> None:
        """把响应体分块写入 out；out.write 的 OSError 原样上抛"""
        try:
            resp = urllib.request.urlopen(url, timeout=self.timeout)  # nosec B310
        except urllib.error.HTTPError as e:
            raise FetchError(
                FetchErrorKind.REMOTE_ERROR,
                f"download failed: {url} returned HTTP {e.code}",
                url=url, status_code=e.code,
            ) from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise FetchError(
                FetchErrorKind.NETWORK_UNAVAILABLE,
                f"download failed: {url} - {e}",
                url=url,
            ) from e

        with resp:
            while True:
                try:
                    chunk = resp.read(_CHUNK_SIZE)
                except (http.client.HTTPException, OSError) as e:
                    raise FetchError(
                        FetchErrorKind.NETWORK_UNAVAILABLE,
                        f"download interrupted: {url} - {e!r}",
                        url=url,
                    ) from e
                if not chunk:
                    break
                out.write(chunk)

    def _verify_checksum(self, path: Path, expected: str, url: str) -> None:
        sha = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha.update(chunk)
        actual = sha.hexdigest()
        if actual != expected.lower():
            # 缓存中的坏文件删除，下次重新下载
            if self.cache_dir is not None and path.parent == self.cache_dir:
                path.unlink(missing_ok=True)
            raise FetchError(
                FetchErrorKind.CHECKSUM_MISMATCH,
                f"checksum mismatch for {url}: expected {expected}, got {actual}",
                url=url,
            )
        logger.debug("checksum ok: %s", path.name)

    @staticmethod
    def _extract(archive: Path, destination: Path, options: ExtractOptions) -> None:
        destination.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive) as tf:
                members = list(_strip_members(tf.getmembers(), options.strip_components))
                tf.extractall(path=str(destination), members=members, filter="data")  # noqa: S202
        except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
            raise FetchError(
                FetchErrorKind.EXTRACTION_FAILED,
                f"cannot extract {archive.name}: {e}",
                url=archive.as_uri() if archive.is_absolute() else str(archive),
            ) from e
