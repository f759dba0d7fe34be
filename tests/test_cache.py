from __future__ import annotations

from pathlib import Path

from goprotoc.core.cache import CacheLayout, distribution_key, sanitize_import_path


def test_distribution_key_is_pure_and_url_safe():
    url = "https://example.com/protoc-27.2-linux-x86_64.zip"
    key = distribution_key(url)
    assert key == distribution_key(url)
    assert len(key) == 43
    assert "=" not in key and "/" not in key and "+" not in key


def test_distribution_key_differs_per_url():
    assert distribution_key("https://a/protoc.zip") != distribution_key("https://b/protoc.zip")


def test_sanitize_import_path():
    assert sanitize_import_path("github.com/acme/api-v2") == "github_com_acme_api_v2"


def test_layout_paths(tmp_path: Path):
    layout = CacheLayout.default(tmp_path)
    assert layout.distribution_path("abc") == tmp_path / "protoc" / "abc"
    assert layout.distribution_archive("abc") == tmp_path / "protoc" / "abc.zip"
    assert layout.plugin_dir("protoc-gen-go", "v1.34.2") == tmp_path / "protoc-gen-go" / "v1.34.2"


def test_layout_default_uses_user_cache_dir(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("goprotoc.core.cache.user_cache_dir", lambda environ=None: tmp_path)
    assert CacheLayout.default().root == tmp_path / ".go_protoc"
