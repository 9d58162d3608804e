from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from jinja2 import Environment

from .config import SiteConfig
from .render import render_template

CHANGELOG_TEMPLATE = "changes.html"
CHANGELOG_DIR = "changelog"
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
# hash, abbreviated hash, subject, committer name, committer date
LOG_FORMAT = "%x1f".join(["%H", "%h", "%s", "%cn", "%cd"]) + "%x1e"


class ChangelogError(RuntimeError):
    pass


@dataclass(frozen=True)
class Commit:
    hash: str
    abbrev_hash: str
    subject: str
    author: str
    date: str


def parse_log(output: str) -> list[Commit]:
    commits = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(FIELD_SEP)
        if len(fields) != 5:
            raise ChangelogError(f"Unexpected git log record: {record!r}")
        commits.append(Commit(*fields))
    return commits


def read_commits(repo: Path, max_count: int) -> list[Commit]:
    cmd = [
        "git",
        "-C",
        str(repo),
        "log",
        f"--max-count={max_count}",
        "--date=iso",
        f"--format={LOG_FORMAT}",
        "--",
        ".",
    ]
    try:
        cp = subprocess.run(
            cmd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
        )
    except FileNotFoundError as exc:
        raise ChangelogError("git command not found") from exc
    if cp.returncode != 0:
        raise ChangelogError(cp.stderr.strip() or f"git log exited with {cp.returncode}")
    return parse_log(cp.stdout)


def build_changelog(
    env: Environment,
    config: SiteConfig,
    reader: Optional[Callable[[Path, int], list[Commit]]] = None,
) -> Path:
    """Render recent history of the source tree to ``<site>/changelog/index.html``.

    History that cannot be read is reported and rendered as an empty list.
    Template and write errors propagate to the caller.
    """
    reader = reader or read_commits
    try:
        commits = reader(config.source_path, config.log_max)
    except ChangelogError as exc:
        print(f"WARNING: could not read git history for {config.source_path}: {exc}", file=sys.stderr)
        commits = []
    return render_template(
        env,
        CHANGELOG_TEMPLATE,
        config.site_path / CHANGELOG_DIR,
        {"config": config, "categories": [], "page": None, "commits": commits},
    )
