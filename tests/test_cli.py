"""命令行接口测试"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from rubypack import __version__
from rubypack.cli import main
from rubypack.core.dep.fetcher import ArtifactFetcher
from rubypack.utils.logger import downloaded_urls, reset_logging

BUNDLER_URL = "https://buildpacks.cloudfoundry.org/dependencies/bundler/bundler-2.4.0.tgz"


@pytest.fixture(autouse=True)
def _isolate_logging(monkeypatch: pytest.MonkeyPatch):
    """CLI 会重配根日志器，测试结束后恢复 pytest 自己的 handler"""
    monkeypatch.delenv("RUBYPACK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("RUBYPACK_LOG_JSON", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    reset_logging()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


@pytest.fixture()
def manifest(tmp_path: Path) -> Path:
    path = tmp_path / "manifest.yml"
    path.write_text(yaml.dump({
        "dependencies": [
            {"name": "bundler", "version": v} for v in ("2.3.0", "2.3.1", "2.4.0")
        ],
    }))
    return path


def _invoke(tmp_path: Path, *args: str):
    config = tmp_path / "no-such-config.yml"
    return CliRunner().invoke(main, ["-c", str(config), *args])


class TestVersions:
    def test_marks_selected(self, tmp_path: Path, manifest: Path) -> None:
        result = _invoke(tmp_path, "versions", "bundler", "--line", "2.3", "--manifest", str(manifest))
        assert result.exit_code == 0, result.output
        assert "2.3.1 <- selected" in result.output
        assert "2.4.0 <- selected" not in result.output

    def test_unknown_dependency(self, tmp_path: Path, manifest: Path) -> None:
        result = _invoke(tmp_path, "versions", "yarn", "--manifest", str(manifest))
        assert result.exit_code == 1
        assert "is not in the manifest" in result.output

    def test_missing_manifest(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path, "versions", "bundler", "--manifest", str(tmp_path / "nope.yml"))
        assert result.exit_code == 1
        assert "manifest not found" in result.output


class TestInstall:
    def test_offline_from_cache(self, tmp_path: Path, manifest: Path, make_bundler_tarball) -> None:
        cache = tmp_path / "cache"
        cached = ArtifactFetcher(cache).cache_path(BUNDLER_URL)
        make_bundler_tarball(cached)
        dep_dir = tmp_path / "deps"

        result = _invoke(
            tmp_path, "install", "bundler", "--dep-dir", str(dep_dir),
            "--manifest", str(manifest), "--cache-dir", str(cache), "--offline",
        )

        assert result.exit_code == 0, result.output
        assert f"bundler 2.4.0 -> {dep_dir / 'bundler-2.4.0'} (cached)" in result.output
        assert downloaded_urls(result.output)[0].startswith("file://")
        assert (dep_dir / "bin" / "bundle").is_symlink()

    def test_offline_cache_miss(self, tmp_path: Path, manifest: Path, network) -> None:
        result = _invoke(
            tmp_path, "install", "bundler", "--dep-dir", str(tmp_path / "deps"),
            "--manifest", str(manifest), "--cache-dir", str(tmp_path / "cache"), "--offline",
        )
        assert result.exit_code == 1
        assert "network access is disabled" in result.output
        assert network.calls == []

    def test_settings_from_config_file(
        self, tmp_path: Path, manifest: Path, network, make_bundler_tarball,
    ) -> None:
        mirror = "https://mirror.example.com/{name}/{version}.tgz"
        data = make_bundler_tarball(tmp_path / "src" / "b.tgz", "2.3.1").read_bytes()
        network.serve("https://mirror.example.com/bundler/2.3.1.tgz", data)
        config = tmp_path / "rubypack.yml"
        config.write_text(yaml.dump({
            "manifest": str(manifest),
            "cache_dir": str(tmp_path / "cache"),
            "url_templates": {"bundler": mirror},
        }))

        result = CliRunner().invoke(main, [
            "-c", str(config), "install", "bundler",
            "--dep-dir", str(tmp_path / "deps"), "--line", "2.3",
        ])

        assert result.exit_code == 0, result.output
        assert "(network)" in result.output
        assert network.calls == ["https://mirror.example.com/bundler/2.3.1.tgz"]

    def test_populate_cache_flag(
        self, tmp_path: Path, manifest: Path, network, make_bundler_tarball,
    ) -> None:
        network.serve(BUNDLER_URL, make_bundler_tarball(tmp_path / "src" / "b.tgz").read_bytes())
        cache = tmp_path / "cache"
        args = ["install", "bundler", "--manifest", str(manifest), "--cache-dir", str(cache)]

        plain = _invoke(tmp_path, *args, "--dep-dir", str(tmp_path / "d1"))
        assert plain.exit_code == 0, plain.output
        assert not cache.exists()

        populated = _invoke(tmp_path, *args, "--dep-dir", str(tmp_path / "d2"), "--populate-cache")
        assert populated.exit_code == 0, populated.output
        assert downloaded_urls(populated.output) == [BUNDLER_URL]
        assert ArtifactFetcher(cache).cache_path(BUNDLER_URL).is_file()

        offline = _invoke(tmp_path, *args, "--dep-dir", str(tmp_path / "d3"), "--offline")
        assert offline.exit_code == 0, offline.output
        assert downloaded_urls(offline.output)[0].startswith("file://")

    def test_unusable_cache_dir_reports_error(
        self, tmp_path: Path, manifest: Path, network, make_bundler_tarball,
    ) -> None:
        network.serve(BUNDLER_URL, make_bundler_tarball(tmp_path / "src" / "b.tgz").read_bytes())
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        result = _invoke(
            tmp_path, "install", "bundler", "--dep-dir", str(tmp_path / "deps"),
            "--manifest", str(manifest), "--cache-dir", str(blocker / "cache"), "--populate-cache",
        )

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "cannot store download" in result.output

    def test_unknown_preset(self, tmp_path: Path, manifest: Path) -> None:
        result = _invoke(
            tmp_path, "install", "yarn", "--dep-dir", str(tmp_path / "deps"),
            "--manifest", str(manifest),
        )
        assert result.exit_code == 1
        assert "no installer preset" in result.output


class TestVendorPlugins:
    def test_vendor(self, tmp_path: Path) -> None:
        plugin = tmp_path / "bp" / "plugins" / "rails_log_stdout"
        plugin.mkdir(parents=True)
        (plugin / "init.rb").write_text("# plugin\n")
        app = tmp_path / "app"
        app.mkdir()

        args = ["vendor-plugins", "rails_log_stdout", "--build-dir", str(app),
                "--buildpack-dir", str(tmp_path / "bp")]
        first = _invoke(tmp_path, *args)
        second = _invoke(tmp_path, *args)

        assert first.exit_code == 0, first.output
        assert "vendored: rails_log_stdout" in first.output
        assert second.exit_code == 0
        assert "vendored:" not in second.output

    def test_missing_plugin(self, tmp_path: Path) -> None:
        result = _invoke(
            tmp_path, "vendor-plugins", "ghost", "--build-dir", str(tmp_path),
            "--buildpack-dir", str(tmp_path / "bp"),
        )
        assert result.exit_code == 1
        assert "failed to vendor plugins: ghost" in result.output


class TestCheckLockfile:
    @pytest.mark.parametrize("phase", ["supply", "finalize"])
    def test_missing(self, tmp_path: Path, phase: str) -> None:
        result = _invoke(tmp_path, "check-lockfile", "--build-dir", str(tmp_path), "--phase", phase)
        assert result.exit_code == 1
        assert "gemfile.lock required. please check it in." in result.output

    def test_present(self, tmp_path: Path) -> None:
        (tmp_path / "Gemfile.lock").write_text("GEM\n")
        result = _invoke(tmp_path, "check-lockfile", "--build-dir", str(tmp_path))
        assert result.exit_code == 0
        assert "Gemfile.lock present" in result.output


def test_version_option(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "--version")
    assert result.exit_code == 0
    assert __version__ in result.output
