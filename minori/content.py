from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

HEADER_END = "\n---\n"
TITLE_RE = re.compile(r"^title:\s?(.*)$", re.IGNORECASE)
CATEGORY_RE = re.compile(r"^category:\s?(.*)$", re.IGNORECASE)
TIME_RE = re.compile(r"^time:\s?(.*)$", re.IGNORECASE)

CJK = (
    "\u2e80-\u2eff\u2f00-\u2fdf\u3040-\u309f\u30a0-\u30fa\u30fc-\u30ff"
    "\u3100-\u312f\u3200-\u32ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
)
CJK_ANS_RE = re.compile(rf"([{CJK}])([A-Za-z0-9@$%^&*+=|/\\-])")
ANS_CJK_RE = re.compile(rf"([A-Za-z0-9~!$%^&*+=|;:,.?/\\-])([{CJK}])")


class FrontMatterError(ValueError):
    pass


class FrontMatter(NamedTuple):
    title: str
    category: str
    time: str
    body: str


@dataclass(frozen=True)
class Page:
    title: str
    category: str
    link: str
    content: str
    time: str = ""
    source: str = ""


def _header_value(pattern: re.Pattern, line: str, label: str) -> str:
    match = pattern.match(line.rstrip("\r"))
    if match is None:
        raise FrontMatterError(f"missing '{label}:' header line")
    return match.group(1)


def parse_front_matter(text: str) -> FrontMatter:
    """Split a note into its three header fields and the markdown body.

    The header is every line before the first ``---`` line. Its first three
    lines are read positionally as ``title:``, ``category:`` and ``time:``.
    """
    text = text.lstrip("\ufeff")
    end = text.find(HEADER_END)
    if end == -1:
        raise FrontMatterError("header delimiter '---' not found")
    lines = text[:end].split("\n")
    if len(lines) < 3:
        raise FrontMatterError("header needs title, category and time lines")
    title = _header_value(TITLE_RE, lines[0], "title")
    category = _header_value(CATEGORY_RE, lines[1], "category")
    time = _header_value(TIME_RE, lines[2], "time")
    return FrontMatter(title, category, time, text[end + len(HEADER_END) :])


def spacing(text: str) -> str:
    """Insert a space wherever CJK characters touch half-width letters or digits."""
    text = CJK_ANS_RE.sub(r"\1 \2", text)
    return ANS_CJK_RE.sub(r"\1 \2", text)


def last_update_time(path: Path, header_time: str, source: str, time_format: str) -> str:
    if source == "frontmatter" and header_time.strip():
        return header_time.strip()
    return dt.datetime.fromtimestamp(path.stat().st_mtime).strftime(time_format)


def append_last_update(body: str, template: str, mtime: str, source_url: str) -> str:
    footer = (
        template.replace("%n%", "\n")
        .replace("%mtime%", mtime)
        .replace("%sourcepath%", source_url)
    )
    return body + footer
