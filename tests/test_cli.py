import json

import pytest
from typer.testing import CliRunner

from reqcache import cli
from reqcache.workflows.errors import StatusError
from reqcache.workflows.request_args import BodyJSON, Header, Param, QueryParam

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("REQCACHE_CACHE_DIR", "REQCACHE_CONCURRENCY", "REQCACHE_RETRY_COUNT"):
        monkeypatch.delenv(name, raising=False)


def test_get_passes_headers_query_and_options(monkeypatch, tmp_path):
    seen = {}

    def fake_get_url(url, *args, config=None):
        seen["url"] = url
        seen["args"] = args
        seen["config"] = config
        return "<html/>"

    monkeypatch.setattr(cli, "get_url", fake_get_url)
    result = runner.invoke(
        cli.app,
        [
            "--cache-dir", str(tmp_path / "c"),
            "--retries", "1",
            "--retry-sleep-ms", "0",
            "get", "https://example.com/a",
            "-H", "Accept: text/html",
            "-q", "page=2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert result.stdout == "<html/>"
    assert seen["url"] == "https://example.com/a"
    assert seen["args"] == (Header({"Accept": "text/html"}), QueryParam({"page": "2"}))
    assert isinstance(seen["args"][0], Header)
    assert seen["config"].cache_dir == tmp_path / "c"
    assert seen["config"].max_retries == 1
    assert seen["config"].retry_sleep == 0.0


def test_get_failure_exits_3(monkeypatch):
    def fake_get_url(url, *args, config=None):
        raise StatusError("http status code: 503", status=503, attempts=4)

    monkeypatch.setattr(cli, "get_url", fake_get_url)
    result = runner.invoke(cli.app, ["get", "https://example.com/a"])

    assert result.exit_code == 3
    assert "503" in result.output


def test_get_rejects_malformed_header():
    result = runner.invoke(cli.app, ["get", "https://example.com/a", "-H", "no-colon"])
    assert result.exit_code == 2


def test_post_builds_form_and_json_bodies(monkeypatch):
    calls = []

    def fake_post_url(url, *args, config=None):
        calls.append(args)
        return "ok"

    monkeypatch.setattr(cli, "post_url", fake_post_url)

    assert runner.invoke(cli.app, ["post", "https://example.com/a", "-f", "a=b"]).exit_code == 0
    assert runner.invoke(cli.app, ["post", "https://example.com/a", "--json", '{"k": [1]}']).exit_code == 0
    assert calls[0] == (Param({"a": "b"}),)
    assert isinstance(calls[0][0], Param)
    assert calls[1] == (BodyJSON({"k": [1]}),)


def test_post_rejects_invalid_json():
    result = runner.invoke(cli.app, ["post", "https://example.com/a", "--json", "{nope"])
    assert result.exit_code == 2


def test_batch_prints_summary_and_propagates_exit_code(monkeypatch, tmp_path):
    manifest = tmp_path / "urls.txt"
    manifest.write_text("https://example.com/a\nhttps://example.com/b\n", encoding="utf-8")
    seen = {}

    def fake_run_batch(urls, *args, config, include_bodies=False, soft_fail=False, out_path=None, **kwargs):
        seen["urls"] = urls
        seen["soft_fail"] = soft_fail
        return {"counts": {"total": 2, "ok": 1, "failed": 1}, "items": []}, 0 if soft_fail else 3

    monkeypatch.setattr(cli, "run_batch", fake_run_batch)

    result = runner.invoke(cli.app, ["batch", str(manifest)])
    assert result.exit_code == 3
    assert json.loads(result.stdout)["counts"]["failed"] == 1
    assert seen["urls"] == ["https://example.com/a", "https://example.com/b"]

    result = runner.invoke(cli.app, ["batch", str(manifest), "--soft-fail"])
    assert result.exit_code == 0
    assert seen["soft_fail"] is True


def test_batch_missing_manifest_exits_2(tmp_path):
    result = runner.invoke(cli.app, ["batch", str(tmp_path / "missing.txt")])
    assert result.exit_code == 2


def test_check_exit_codes(monkeypatch):
    monkeypatch.setattr(cli, "check_url", lambda url, timeout: url.endswith("/up"))

    up = runner.invoke(cli.app, ["check", "https://example.com/up"])
    down = runner.invoke(cli.app, ["check", "https://example.com/down"])

    assert up.exit_code == 0 and "ok" in up.stdout
    assert down.exit_code == 1 and "unavailable" in down.stdout


def test_rm_cache_requires_cache_dir():
    result = runner.invoke(cli.app, ["rm-cache", "https://example.com/a"])
    assert result.exit_code == 2


def test_rm_cache_deletes_entry(tmp_path):
    from reqcache.workflows.cache_store import CacheStore

    root = tmp_path / "cache"
    store = CacheStore(root)
    key = store.key_for("GET", "https://example.com/a")
    store.write(key, b"cached")

    result = runner.invoke(cli.app, ["--cache-dir", str(root), "rm-cache", "https://example.com/a"])

    assert result.exit_code == 0, result.output
    assert not store.exists(key)


def test_doctor_prints_report():
    result = runner.invoke(cli.app, ["doctor"])
    assert result.exit_code in (0, 2)
    assert "reqcache doctor" in result.stdout


def test_get_and_post_reject_blank_url_with_usage_exit():
    assert runner.invoke(cli.app, ["get", "   "]).exit_code == 2
    assert runner.invoke(cli.app, ["post", "   "]).exit_code == 2
