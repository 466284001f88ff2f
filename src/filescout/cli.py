from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .consumer import CATEGORIES, run_download, run_scan, validate_category

app = typer.Typer(add_help_option=False, no_args_is_help=False)


def _minimal_help() -> str:
    return """filescout (resource discovery CLI)

Usage:
  filescout scan <url|path> [--enrich] [--type <CATEGORY>] [--json]
  filescout download <url|path> --out <DIR> [--type <CATEGORY>] [--match <TEXT>] [--enrich] [--soft-fail] [--json]

Common options:
  --enrich        HEAD-probe ambiguous items for their real name and type.
  --type          Keep one category: images, documents, videos, audio, archives, fonts, downloads.
  --json          Print the JSON summary to stdout only.
  --verbose       Log progress to stderr (before the command).

Discoverability:
  --help-full     Expanded help + env vars + exit codes.
  --find <query>  Search commands, flags, env vars.
"""


def _help_full() -> str:
    return """filescout CLI

Commands:
  scan        List downloadable resources referenced by a page or local HTML file.
  download    Save matching resources into a directory, one at a time.

Discovery covers links, images (src and srcset), audio/video sources,
object/embed data, open shadow roots and same-origin frames. Links without a
file extension are kept when they look like downloads (download attribute,
/download-style paths, "download" text or classes).

Env vars:
  FILESCOUT_HEAD_TIMEOUT       Per-probe timeout in seconds (default 5).
  FILESCOUT_HEAD_CACHE_TTL     Probe cache lifetime in seconds (default 60).
  FILESCOUT_HEAD_CACHE_MAX     Cache size that triggers a stale sweep (default 500).
  FILESCOUT_PROBE_CONCURRENCY  Concurrent probes (default 16).
  FILESCOUT_DOWNLOAD_PAUSE     Seconds between downloads (default 0.2).
  FILESCOUT_DOWNLOAD_TIMEOUT   Per-download timeout in seconds (default 300).
  FILESCOUT_PAGE_TIMEOUT       Page and frame fetch timeout (default 30).
  FILESCOUT_MAX_FRAME_DEPTH    Nested frame depth (default 3).
  FILESCOUT_USER_AGENT         User-Agent header.
  FILESCOUT_COOKIES            "name=value; other=value" sent with every request.

Exit codes:
  0  success
  1  at least one download failed (unless --soft-fail)
  2  input error (missing file, unknown category)
  3  fatal error (page fetch failed, unexpected exception)
"""


_FIND_INDEX = [
    ("command", "scan", "List downloadable resources on a page."),
    ("command", "download", "Save matching resources into a directory."),
    ("flag", "--enrich", "HEAD-probe ambiguous items."),
    ("flag", "--type", "Keep one category of resources."),
    ("flag", "--match", "Keep resources whose name or URL contains TEXT."),
    ("flag", "--out", "Directory downloads are written into."),
    ("flag", "--json", "Print the JSON summary to stdout only."),
    ("flag", "--soft-fail", "Exit 0 even if some downloads fail."),
    ("flag", "--verbose", "Log progress to stderr."),
    ("flag", "--help-full", "Expanded help, env vars, exit codes."),
    ("flag", "--find", "Search commands, flags, env vars."),
    ("env", "FILESCOUT_HEAD_TIMEOUT", "Per-probe timeout in seconds."),
    ("env", "FILESCOUT_HEAD_CACHE_TTL", "Probe cache lifetime in seconds."),
    ("env", "FILESCOUT_PROBE_CONCURRENCY", "Concurrent probes."),
    ("env", "FILESCOUT_DOWNLOAD_PAUSE", "Seconds between downloads."),
    ("env", "FILESCOUT_COOKIES", "Cookies sent with every request."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _category_option(value: Optional[str]) -> Optional[str]:
    try:
        return validate_category(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _print_scan(summary: Dict[str, Any]) -> None:
    items = summary.get("items") or []
    for item in items:
        size = item.get("size")
        size_text = f"  {size} bytes" if size is not None else ""
        marker = " (inferred)" if item.get("isInferredDownload") else ""
        typer.echo(f"{item.get('extension', ''):>8}  {item.get('filename', '')}{marker}{size_text}")
        typer.echo(f"          {item.get('finalUrl') or item.get('url', '')}")
    typer.echo(f"{len(items)} resource(s) found")


def _print_download(summary: Dict[str, Any]) -> None:
    for item in summary.get("items") or []:
        if item.get("ok"):
            typer.echo(f"saved   {item.get('path')}")
        else:
            typer.echo(f"failed  {item.get('filename')}: {item.get('error')}", err=True)
    counts = summary.get("counts") or {}
    typer.echo(f"{counts.get('ok', 0)} saved, {counts.get('failed', 0)} failed")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
) -> None:
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)
    _configure_logging(verbose)


@app.command("scan", add_help_option=True)
def scan_cmd(
    target: str = typer.Argument(..., help="Page URL or local HTML file."),
    enrich: bool = typer.Option(False, "--enrich", help="HEAD-probe ambiguous items."),
    category: Optional[str] = typer.Option(None, "--type", help=f"One of: {', '.join(CATEGORIES)}."),
    json_out: bool = typer.Option(False, "--json", help="Print summary JSON to stdout only."),
) -> None:
    """List downloadable resources referenced by a page."""
    wanted = _category_option(category)
    try:
        summary, exit_code = run_scan(target, enrich=enrich, category=wanted)
    except FileNotFoundError as exc:
        if not json_out:
            typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)
    except Exception as exc:
        if not json_out:
            typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)
    if json_out:
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    else:
        _print_scan(summary)
    raise typer.Exit(code=exit_code)


@app.command("download", add_help_option=True)
def download_cmd(
    target: str = typer.Argument(..., help="Page URL or local HTML file."),
    out: Path = typer.Option(..., "--out", help="Directory downloads are written into."),
    category: Optional[str] = typer.Option(None, "--type", help=f"One of: {', '.join(CATEGORIES)}."),
    match: Optional[str] = typer.Option(None, "--match", help="Keep resources whose name or URL contains TEXT."),
    enrich: bool = typer.Option(False, "--enrich", help="HEAD-probe ambiguous items before saving."),
    soft_fail: bool = typer.Option(False, "--soft-fail", help="Exit 0 even if some downloads fail."),
    json_out: bool = typer.Option(False, "--json", help="Print summary JSON to stdout only."),
) -> None:
    """Save matching resources into a directory, one at a time."""
    wanted = _category_option(category)
    try:
        summary, exit_code = run_download(
            target,
            out_dir=out,
            category=wanted,
            match=match,
            enrich=enrich,
            soft_fail=soft_fail,
        )
    except FileNotFoundError as exc:
        if not json_out:
            typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)
    except Exception as exc:
        if not json_out:
            typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)
    if json_out:
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    else:
        _print_download(summary)
    raise typer.Exit(code=exit_code)

