from __future__ import annotations

import argparse
import datetime as dt
import os
import sys
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import yaml

from .assets import sync_assets, sync_sources, update_cname
from .changelog import build_changelog
from .config import DEFAULT_CONFIG, SiteConfig, read_site_config
from .files import MARKDOWN_SUFFIX, list_markdown
from .mathblock import Typesetter, typeset
from .pages import collect_pages, resolve_theme_dir, submit_site_pages
from .render import MarkdownRenderer, make_environment
from .utils import BuildError, clean_output_dir

NOTE_TIME_FMT = "%Y-%m-%d %H:%M"
STARTER_CONFIG = {
    "base": {"path": "/"},
    "dir": {"source": "notes", "site": "site", "page": "page", "raw": "raw"},
    "wiki": {"theme": "default", "log": False, "logmax": 20, "favicon": False, "email": ""},
    "custom": {"mathjax": True, "autospacing": False},
    "deploy": {"cname": ""},
}


def join_futures(futures: list[Future]) -> list[BaseException]:
    errors = []
    for future in futures:
        exc = future.exception()
        if exc is not None:
            errors.append(exc)
    return errors


def build_site(
    config: SiteConfig,
    typesetter: Typesetter = typeset,
    workers: int = 0,
    clean: bool = False,
) -> bool:
    """Regenerate the whole site. Returns False when any output failed to render or write."""
    theme_dir = resolve_theme_dir(config)
    files = list_markdown(config.source_path)
    if clean:
        clean_output_dir(config.site_path, config.root)
    config.site_path.mkdir(parents=True, exist_ok=True)

    env = make_environment(theme_dir)
    renderer = MarkdownRenderer.from_config(config)
    if workers <= 0:
        workers = os.cpu_count() or 1
    workers = max(2, min(workers, 32))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        side_jobs = [
            executor.submit(sync_assets, config, theme_dir),
            executor.submit(sync_sources, config),
            executor.submit(update_cname, config),
        ]
        write_jobs = []
        if config.log:
            write_jobs.append(executor.submit(build_changelog, env, config))

        try:
            pages, categories = collect_pages(files, config, renderer, typesetter)
        finally:
            side_errors = join_futures(side_jobs)
        write_jobs.extend(submit_site_pages(executor, env, config, categories))
        write_errors = join_futures(write_jobs)

    for exc in side_errors:
        print(f"WARNING: asset sync failed: {exc}", file=sys.stderr)
    for exc in write_errors:
        print(f"Error when compiling page: {exc}", file=sys.stderr)
    print(f"Pages generated: {len(pages)} in {len(categories)} categories.")
    return not write_errors


def create_note(config: SiteConfig, name: str, category: str = "") -> Path:
    path = config.source_path / name
    if path.suffix != MARKDOWN_SUFFIX:
        path = path.with_name(path.name + MARKDOWN_SUFFIX)
    if path.exists():
        raise BuildError(f"Note already exists: {path}")
    now = dt.datetime.now().strftime(NOTE_TIME_FMT)
    header = f"title: {path.stem}\ncategory: {category}\ntime: {now}\n\n---\n\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(header, encoding="utf-8")
    return path


def init_project(config_path: Path) -> SiteConfig:
    """Write a starter config and an empty notes directory next to it."""
    if config_path.exists():
        raise BuildError(f"Config already exists: {config_path}")
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.safe_dump(STARTER_CONFIG, sort_keys=False), encoding="utf-8")
    config = read_site_config(config_path)
    config.source_path.mkdir(parents=True, exist_ok=True)
    return config


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minori", description="Markdown notebook to static site generator.")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help="Path to site config file (YAML/TOML/JSON).",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("init", help="Create a config file and notes directory.")

    build = commands.add_parser("build", aliases=["done"], help="Generate the site files.")
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Remove the site directory before building.",
    )
    build.add_argument(
        "--workers",
        default=0,
        type=int,
        help="Number of worker threads for syncing and writing (0 = auto).",
    )

    note = commands.add_parser("note", help="Create a new note file.")
    note.add_argument("name", help="Note file name, relative to the source directory.")
    note.add_argument("--category", default="", help="Category written into the note header.")

    commands.add_parser("help", help="Display this help.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)
    if args.command in (None, "help"):
        parser.print_help()
        return 0

    try:
        if args.command == "init":
            config = init_project(Path(args.config))
            print(f"Project created in: {config.root}")
            return 0
        config = read_site_config(Path(args.config))
        if args.command == "note":
            path = create_note(config, args.name, args.category)
            print(f"Note created: {path}")
            return 0
        start = time.perf_counter()
        ok = build_site(config, workers=args.workers, clean=args.clean)
    except BuildError as exc:
        print(exc, file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    if not ok:
        print(f"Build failed after {elapsed:.2f}s.", file=sys.stderr)
        return 1
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {config.site_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
