from __future__ import annotations

import sys
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Environment

from .config import SiteConfig
from .content import (
    FrontMatterError,
    Page,
    append_last_update,
    last_update_time,
    parse_front_matter,
    spacing,
)
from .files import page_link
from .mathblock import Typesetter, resolve_math, typeset
from .render import MarkdownRenderer, render_template
from .utils import BuildError

BUNDLED_THEMES = Path(__file__).resolve().parent / "themes"
INDEX_TEMPLATE = "index.html"
PAGE_TEMPLATE = "page.html"


@dataclass
class Category:
    name: str
    pages: list[Page] = field(default_factory=list)


def resolve_theme_dir(config: SiteConfig) -> Path:
    """Project themes win over the bundled ones of the same name."""
    for base in (config.root / "themes", BUNDLED_THEMES):
        candidate = base / config.theme
        if candidate.is_dir():
            return candidate
    raise BuildError(f"Theme not found: {config.theme}")


def source_url(config: SiteConfig, path: Path) -> str:
    rel = path.relative_to(config.source_path).as_posix()
    return f"{config.base_path}{config.raw_dir}/{rel}"


def load_page(
    path: Path,
    config: SiteConfig,
    renderer: MarkdownRenderer,
    typesetter: Typesetter = typeset,
) -> Page:
    text = path.read_text(encoding="utf-8")
    meta = parse_front_matter(text)
    updated = last_update_time(path, meta.time, config.lastupdate_source, config.time_format)
    body = append_last_update(meta.body, config.lastupdate, updated, source_url(config, path))
    body = resolve_math(body, config.math, typesetter, source=str(path))
    title, category = meta.title, meta.category
    if config.autospacing:
        title, category = spacing(title), spacing(category)
    return Page(
        title=title,
        category=category,
        link=page_link(path, config.source_path),
        content=renderer.render(body),
        time=meta.time,
        source=path.relative_to(config.source_path).as_posix(),
    )


def add_to_categories(categories: list[Category], page: Page) -> None:
    for category in categories:
        if category.name == page.category:
            category.pages.append(page)
            return
    categories.append(Category(page.category, [page]))


def collect_pages(
    files: list[Path],
    config: SiteConfig,
    renderer: MarkdownRenderer,
    typesetter: Typesetter = typeset,
) -> tuple[list[Page], list[Category]]:
    """Run every note through parse, math and markdown, one file at a time."""
    pages: list[Page] = []
    categories: list[Category] = []
    for path in files:
        print(f"Parsing: {path}")
        try:
            page = load_page(path, config, renderer, typesetter)
        except FrontMatterError as exc:
            print(
                f"Error when reading content properties ({exc}). "
                f"Expected title/category/time lines followed by '---'. File: {path}",
                file=sys.stderr,
            )
            continue
        except UnicodeDecodeError as exc:
            print(f"Error when reading file as UTF-8 ({exc}). File: {path}", file=sys.stderr)
            continue
        pages.append(page)
        add_to_categories(categories, page)
    return pages, categories


def page_dest(config: SiteConfig, page: Page) -> Path:
    return config.pages_path / page.link.lstrip("/")


def build_index(env: Environment, config: SiteConfig, categories: list[Category]) -> Path:
    return render_template(
        env,
        INDEX_TEMPLATE,
        config.site_path,
        {"config": config, "categories": categories, "page": None},
    )


def build_page(env: Environment, config: SiteConfig, categories: list[Category], page: Page) -> Path:
    return render_template(
        env,
        PAGE_TEMPLATE,
        page_dest(config, page),
        {"config": config, "categories": categories, "page": page},
    )


def submit_site_pages(
    executor: Executor,
    env: Environment,
    config: SiteConfig,
    categories: list[Category],
) -> list[Future]:
    futures = [executor.submit(build_index, env, config, categories)]
    for category in categories:
        for page in category.pages:
            futures.append(executor.submit(build_page, env, config, categories, page))
    return futures
