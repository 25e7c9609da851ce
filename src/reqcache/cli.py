from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
from dotenv import load_dotenv

from .consumer import load_manifest, run_batch
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.errors import ReqCacheError
from .workflows.fetcher import curl_url, get_url, post_url, remove_cache, render_url
from .workflows.fetcher_utils import check_url
from .workflows.request_args import BodyJSON, Header, Param, QueryParam
from .workflows.web_fetch import FetchConfig

app = typer.Typer(no_args_is_help=True, help="Cached, retrying HTTP fetches.")


def _parse_pairs(values: Optional[List[str]], sep: str, label: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for raw in values or []:
        key, found, value = raw.partition(sep)
        if not found or not key.strip():
            raise typer.BadParameter(f"{label} must look like 'key{sep}value': {raw!r}")
        pairs[key.strip()] = value.strip()
    return pairs


def _config(ctx: typer.Context) -> FetchConfig:
    return ctx.obj["config"]


def _fail(exc: Exception, code: int = 3) -> NoReturn:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=code)


@app.callback()
def main(
    ctx: typer.Context,
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Persist responses under this directory."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent batch fetches."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request timeout (seconds)."),
    retries: Optional[int] = typer.Option(None, "--retries", min=0, help="Retries after a non-200 status."),
    retry_sleep_ms: Optional[int] = typer.Option(None, "--retry-sleep-ms", min=0, help="Pause between retries."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = FetchConfig.from_env()
    if cache_dir is not None:
        config.cache_dir = cache_dir
    if concurrency is not None:
        config.concurrency = concurrency
    if timeout is not None:
        config.timeout = timeout
    if retries is not None:
        config.max_retries = retries
    if retry_sleep_ms is not None:
        config.retry_sleep = retry_sleep_ms / 1000.0
    ctx.obj = {"config": config}


@app.command("get")
def get_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to fetch."),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Request header 'Key: Value'."),
    query: Optional[List[str]] = typer.Option(None, "--query", "-q", help="Query parameter 'key=value'."),
) -> None:
    """GET a URL and print the body."""
    args: List[Any] = []
    headers = _parse_pairs(header, ":", "header")
    if headers:
        args.append(Header(headers))
    params = _parse_pairs(query, "=", "query")
    if params:
        args.append(QueryParam(params))
    try:
        body = get_url(url, *args, config=_config(ctx))
    except ValueError as exc:
        _fail(exc, code=2)
    except ReqCacheError as exc:
        _fail(exc)
    sys.stdout.write(body)


@app.command("post")
def post_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to post to."),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Request header 'Key: Value'."),
    form: Optional[List[str]] = typer.Option(None, "--form", "-f", help="Form field 'key=value'."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Raw request body."),
    json_body: Optional[str] = typer.Option(None, "--json", help="JSON request body."),
) -> None:
    """POST to a URL and print the body."""
    args: List[Any] = []
    headers = _parse_pairs(header, ":", "header")
    if headers:
        args.append(Header(headers))
    fields = _parse_pairs(form, "=", "form field")
    if fields:
        args.append(Param(fields))
    if data is not None:
        args.append(data)
    if json_body is not None:
        try:
            args.append(BodyJSON(json.loads(json_body)))
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"--json is not valid JSON: {exc}")
    try:
        body = post_url(url, *args, config=_config(ctx))
    except ValueError as exc:
        _fail(exc, code=2)
    except ReqCacheError as exc:
        _fail(exc)
    sys.stdout.write(body)


@app.command("batch")
def batch_cmd(
    ctx: typer.Context,
    path_or_dash: str = typer.Argument(..., help="Path to a URL manifest or '-' for stdin."),
    out: Optional[Path] = typer.Option(None, "--out", help="Also write the JSON summary to this file."),
    bodies: bool = typer.Option(False, "--bodies", help="Include response bodies in the summary."),
    soft_fail: bool = typer.Option(False, "--soft-fail", help="Exit 0 even if some items fail."),
) -> None:
    """GET every URL in a manifest and print a JSON summary."""
    try:
        urls = load_manifest(path_or_dash)
    except (OSError, ValueError) as exc:
        _fail(exc, code=2)
    try:
        summary, exit_code = run_batch(
            urls,
            config=_config(ctx),
            include_bodies=bodies,
            soft_fail=soft_fail,
            out_path=out,
        )
    except ReqCacheError as exc:
        _fail(exc)
    sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    raise typer.Exit(code=exit_code)


@app.command("render")
def render_cmd(ctx: typer.Context, url: str = typer.Argument(..., help="URL to render.")) -> None:
    """Render a URL in headless Chromium and print the <body> markup."""
    try:
        body = render_url(url, config=_config(ctx))
    except ReqCacheError as exc:
        _fail(exc)
    sys.stdout.write(body)


@app.command("curl")
def curl_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to fetch."),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Request header 'Key: Value'."),
) -> None:
    """Fetch a URL through the external curl command."""
    try:
        body = curl_url(url, _parse_pairs(header, ":", "header"), config=_config(ctx))
    except ReqCacheError as exc:
        _fail(exc)
    sys.stdout.write(body)


@app.command("check")
def check_cmd(ctx: typer.Context, url: str = typer.Argument(..., help="URL to probe with HEAD.")) -> None:
    """Exit 0 when a HEAD request answers 200, 1 otherwise."""
    try:
        ok = check_url(url, timeout=_config(ctx).timeout)
    except ReqCacheError as exc:
        _fail(exc)
    typer.echo("ok" if ok else "unavailable")
    raise typer.Exit(code=0 if ok else 1)


@app.command("rm-cache")
def rm_cache_cmd(ctx: typer.Context, url: str = typer.Argument(..., help="URL whose GET entry to delete.")) -> None:
    """Delete the cached GET entry for a URL."""
    config = _config(ctx)
    if config.cache_dir is None:
        typer.echo("error: no cache directory configured (use --cache-dir)", err=True)
        raise typer.Exit(code=2)
    try:
        remove_cache(url, config=config)
    except ValueError as exc:
        _fail(exc, code=2)
    except ReqCacheError as exc:
        _fail(exc)


@app.command("doctor")
def doctor_cmd(ctx: typer.Context) -> None:
    """Print environment and dependency diagnostics."""
    report = build_doctor_report(config=_config(ctx))
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    app()
