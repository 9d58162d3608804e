from __future__ import annotations

from pathlib import Path

from .utils import BuildError

MARKDOWN_SUFFIX = ".md"


def is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def list_files(root: Path) -> list[Path]:
    """Every regular file under ``root`` skipping dotfiles and dot-directories.

    The result is sorted by relative POSIX path so a given tree always
    yields the same order.
    """
    if not root.is_dir():
        raise BuildError(f"Source directory not found: {root}")
    files = [path for path in root.rglob("*") if path.is_file() and not is_hidden(path, root)]
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def list_markdown(root: Path) -> list[Path]:
    return [path for path in list_files(root) if path.suffix == MARKDOWN_SUFFIX]


def page_link(path: Path, root: Path) -> str:
    rel = path.relative_to(root).with_suffix("")
    return "/" + rel.as_posix()
