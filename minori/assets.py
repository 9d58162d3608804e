from __future__ import annotations

import shutil
import sys
from pathlib import Path

from pygments.formatters import HtmlFormatter

from .config import SiteConfig
from .render import HIGHLIGHT_CLASS

CNAME_FILE = "CNAME"
FAVICON_FILE = "favicon.ico"
STATIC_DIR = "static"
ASSETS_DIR = "assets"
HIGHLIGHT_CSS = "pygments.css"
HIGHLIGHT_STYLE = "default"


def copy_tree(src: Path, dest: Path) -> bool:
    """Mirror ``src`` into ``dest`` leaving out dotfiles. Failures are reported, not raised."""
    dest.mkdir(parents=True, exist_ok=True)
    if not src.is_dir():
        print(f"WARNING: nothing to copy, directory not found: {src}", file=sys.stderr)
        return False
    try:
        shutil.copytree(src, dest, ignore=shutil.ignore_patterns(".*"), dirs_exist_ok=True)
    except (OSError, shutil.Error) as exc:
        print(f"WARNING: failed to copy {src} to {dest}: {exc}", file=sys.stderr)
        return False
    return True


def sync_assets(config: SiteConfig, theme_dir: Path) -> bool:
    ok = copy_tree(theme_dir / ASSETS_DIR, config.site_path / ASSETS_DIR)
    ok = copy_tree(config.root / STATIC_DIR, config.site_path / STATIC_DIR) and ok
    if config.markdown.highlight:
        ok = write_highlight_css(config.site_path / ASSETS_DIR) and ok
    if config.favicon:
        ok = sync_favicon(config) and ok
    print("Assets synced.")
    return ok


def sync_favicon(config: SiteConfig) -> bool:
    src = config.root / FAVICON_FILE
    if not src.is_file():
        print("WARNING: favicon configured but not found.", file=sys.stderr)
        return False
    try:
        config.site_path.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, config.site_path / FAVICON_FILE)
    except OSError as exc:
        print(f"WARNING: failed to copy favicon: {exc}", file=sys.stderr)
        return False
    return True


def sync_sources(config: SiteConfig) -> bool:
    ok = copy_tree(config.source_path, config.raw_path)
    if ok:
        print("Source files synced.")
    return ok


def update_cname(config: SiteConfig) -> bool:
    path = config.site_path / CNAME_FILE
    try:
        if config.cname:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"{config.cname}\n", encoding="utf-8")
            print(f"Custom CNAME set to: {config.cname}")
        elif path.exists():
            print("Removing custom CNAME file as config set to empty.")
            path.unlink(missing_ok=True)
        else:
            print("Custom CNAME not set, skipping.")
    except OSError as exc:
        print(f"WARNING: failed to update {path}: {exc}", file=sys.stderr)
        return False
    return True


def write_highlight_css(dest: Path) -> bool:
    css = HtmlFormatter(style=HIGHLIGHT_STYLE).get_style_defs(f".{HIGHLIGHT_CLASS}")
    try:
        dest.mkdir(parents=True, exist_ok=True)
        dest.joinpath(HIGHLIGHT_CSS).write_text(css, encoding="utf-8")
    except OSError as exc:
        print(f"WARNING: failed to write {HIGHLIGHT_CSS}: {exc}", file=sys.stderr)
        return False
    return True
